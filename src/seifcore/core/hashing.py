""" Hashing helpers: SHA3-256 digests and DiskKey derivation. """

import hashlib
from pathlib import Path
from typing import Union


CHUNK_SIZE = 65536  # 64KB
DISK_KEY_SIZE = 32


def hash256(data: Union[bytes, str]) -> bytes:
    # SHA3-256 digest of a buffer; strings are hashed as UTF-8.
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha3_256(data).digest()


def calculate_sha3_256(file_path: Path) -> str:

    # Calculates the SHA3-256 hash of a file.

    sha3 = hashlib.sha3_256()
    with open(file_path, 'rb') as f:
        while True:
            data = f.read(CHUNK_SIZE)
            if not data:
                break
            sha3.update(data)
    return sha3.hexdigest()


def derive_disk_key(material: Union[bytes, bytearray, str]) -> bytes:
    """Turn caller supplied key material into a 32-byte DiskKey.

    Material shorter than the AES-256 key size is stretched with
    :func:`hash256`; longer material is cut to its first 32 bytes.
    """
    if isinstance(material, str):
        material = material.encode("utf-8")
    material = bytes(material)
    if len(material) < DISK_KEY_SIZE:
        return hash256(material)
    return material[:DISK_KEY_SIZE]
