"""Argon2id derivation of DiskKey material from a passphrase."""

import json
import os
from pathlib import Path
from typing import Dict

from argon2.low_level import Type, hash_secret_raw

DEFAULT_TIME_COST = 3
DEFAULT_MEMORY_COST = 65536
DEFAULT_PARALLELISM = 1


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_disk_key_from_password(
    password,
    salt: bytes,
    time_cost: int = DEFAULT_TIME_COST,
    memory_cost: int = DEFAULT_MEMORY_COST,
    parallelism: int = DEFAULT_PARALLELISM,
) -> bytes:
    """
    Derive a 32-byte DiskKey from a password using Argon2id.
    The result is already full length, so ``derive_disk_key`` uses it as is.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=32,
        type=Type.ID,
    )


def kdf_params_to_dict(salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> Dict:
    return {
        "algo": "argon2id",
        "salt": salt.hex(),
        "time": time_cost,
        "memory": memory_cost,
        "parallelism": parallelism,
    }


def load_or_create_params(path: Path) -> Dict:
    """
    Read KDF parameters stored beside the key files, creating them on first use.
    The salt is not secret; losing it makes the derived DiskKey unrecoverable.
    """
    path = Path(path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            params = json.load(f)
        if params.get("algo") != "argon2id":
            raise ValueError(f"unsupported KDF in {path}: {params.get('algo')!r}")
        return params

    params = kdf_params_to_dict(generate_salt(), DEFAULT_TIME_COST, DEFAULT_MEMORY_COST, DEFAULT_PARALLELISM)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(params, f)
    return params


def derive_from_params(password, params: Dict) -> bytes:
    return derive_disk_key_from_password(
        password,
        bytes.fromhex(params["salt"]),
        time_cost=int(params.get("time", DEFAULT_TIME_COST)),
        memory_cost=int(params.get("memory", DEFAULT_MEMORY_COST)),
        parallelism=int(params.get("parallelism", DEFAULT_PARALLELISM)),
    )
