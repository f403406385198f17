"""Security helpers: link cipher, encrypted secret store and generator lifecycle.

This package provides:
- AES-256-GCM sealed files keyed by a 32-byte DiskKey
- an ECIES (secp521r1) keypair stored encrypted on disk
- a shared, persistable pseudo-random generator with an explicit lifecycle
- a PCG keystream layered under AES-GCM for messages in transit
- Argon2id and OS keyring helpers for obtaining DiskKey material
"""

from .codec import read_encrypted, write_encrypted
from .entropy import EntropyStrength, SystemEntropySource
from .kdf import generate_salt, derive_disk_key_from_password
from .lifecycle import GeneratorLifecycle, LifecycleState
from .link_cipher import LinkCipher
from .secret_store import KeyPair, SecretStore

__all__ = [
    "read_encrypted",
    "write_encrypted",
    "EntropyStrength",
    "SystemEntropySource",
    "generate_salt",
    "derive_disk_key_from_password",
    "GeneratorLifecycle",
    "LifecycleState",
    "LinkCipher",
    "KeyPair",
    "SecretStore",
]
