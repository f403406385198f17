"""Encrypted single-blob files.

File layout: ``nonce (12 bytes) || AES-256-GCM ciphertext || tag (16 bytes)``.

Nothing else is stored; whether the file decrypts under a given DiskKey is
the only thing that distinguishes a good file from a wrong key or corruption.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from seifcore.core.hashing import DISK_KEY_SIZE
from seifcore.core.locks import get_path_lock
from seifcore.core.status import Status

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16


def _check_key(key: bytes) -> None:
    if len(key) != DISK_KEY_SIZE:
        raise ValueError(f"disk key must be {DISK_KEY_SIZE} bytes, got {len(key)}")


def seal(key: bytes, plaintext: bytes) -> bytes:
    """Return ``nonce || ciphertext`` for ``plaintext`` under ``key``."""
    _check_key(key)
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def open_sealed(key: bytes, blob: bytes) -> Optional[bytes]:
    """Inverse of :func:`seal`; returns ``None`` when authentication fails."""
    _check_key(key)
    if len(blob) < NONCE_SIZE + TAG_SIZE:
        return None
    nonce, ct = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, ct, None)
    except InvalidTag:
        return None


def write_encrypted(path: Path | str, key: bytes, plaintext: bytes) -> None:
    """
    Seal ``plaintext`` and atomically replace ``path`` with the result.

    The blob is written to a temporary file in the destination directory and
    moved into place, so readers see either the old or the new content.
    I/O errors propagate to the caller.
    """
    path = Path(path)
    blob = seal(key, plaintext)
    path.parent.mkdir(parents=True, exist_ok=True)

    with get_path_lock(path):
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
    logger.debug("wrote %d encrypted bytes to %s", len(blob), path)


def read_encrypted(path: Path | str, key: bytes) -> Tuple[Status, Optional[bytes]]:
    """
    Read and open the blob at ``path``.

    Returns ``(Status.FILE_NOT_FOUND, None)`` when there is no file,
    ``(Status.DECRYPTION_ERROR, None)`` when the key is wrong or the file is
    damaged, and ``(Status.SUCCESS, plaintext)`` otherwise.
    """
    path = Path(path)
    _check_key(key)
    with get_path_lock(path):
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            logger.debug("no encrypted file at %s", path)
            return Status.FILE_NOT_FOUND, None

    plaintext = open_sealed(key, blob)
    if plaintext is None:
        logger.debug("could not open encrypted file %s", path)
        return Status.DECRYPTION_ERROR, None
    return Status.SUCCESS, plaintext
