"""Seedable stream generator with serializable state.

Each draw runs ChaCha20 keyed by the current stream key with the position
counter as nonce, returns all but the first 32 bytes of keystream and keeps
those 32 bytes as the next stream key. Older output cannot be recomputed from
a captured state.

State layout (40 bytes): ``stream key (32) || position (8, big-endian)``.
"""

from __future__ import annotations

import struct

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from seifcore.core.hashing import hash256

KEY_SIZE = 32
STATE_SIZE = KEY_SIZE + 8


class DeterministicGenerator:
    """Not thread-safe on its own; the lifecycle serializes access."""

    def __init__(self, key: bytes, position: int = 0):
        if len(key) != KEY_SIZE:
            raise ValueError(f"generator key must be {KEY_SIZE} bytes")
        self._key = bytes(key)
        self._position = position

    @classmethod
    def from_seed(cls, seed_material: bytes) -> "DeterministicGenerator":
        return cls(hash256(seed_material))

    @classmethod
    def from_state(cls, state: bytes) -> "DeterministicGenerator":
        if len(state) != STATE_SIZE:
            raise ValueError(f"generator state must be {STATE_SIZE} bytes, got {len(state)}")
        (position,) = struct.unpack(">Q", state[KEY_SIZE:])
        return cls(state[:KEY_SIZE], position)

    @property
    def position(self) -> int:
        return self._position

    def _nonce(self) -> bytes:
        # 4-byte block counter followed by a 12-byte nonce built from the position.
        return b"\x00" * 4 + struct.pack("<Q", self._position) + b"\x00" * 4

    def generate(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("number of bytes must be non-negative")
        cipher = Cipher(algorithms.ChaCha20(self._key, self._nonce()), mode=None)
        stream = cipher.encryptor().update(b"\x00" * (KEY_SIZE + n))
        self._key = stream[:KEY_SIZE]
        self._position = (self._position + 1) % (1 << 64)
        return stream[KEY_SIZE:]

    def serialize(self) -> bytes:
        return self._key + struct.pack(">Q", self._position)
