"""Keystream-under-AEAD cipher for messages in transit.

encrypt: ``message XOR keystream`` sealed with AES-256-GCM
decrypt: AES-256-GCM open, then XOR with the same keystream bytes

Usage contract
--------------
The keystream comes from a PCG generator private to each :class:`LinkCipher`
and seeded at construction. Decryption only reproduces the message when the
decrypting instance's generator sits at the same position the encrypting
instance's did, i.e. both were built from the same seed and have processed
the same number of bytes since. Pair instances one-to-one per direction and
feed messages in the same order on both sides; nothing here detects drift.
A drifted pair still passes the AEAD check and returns wrong bytes.

The AEAD nonce is fixed to all zeros, so every ``key`` must be used for a
single session only. This is not enforced.
"""

from __future__ import annotations

import logging
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from seifcore.core.exceptions import AuthenticationError, InvalidKeyLengthError

from .keystream import PCGKeystream

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE = bytes(16)


def _xor(data: bytes, stream: bytes) -> bytes:
    return (int.from_bytes(data, "big") ^ int.from_bytes(stream, "big")).to_bytes(len(data), "big")


class LinkCipher:
    def __init__(self, seed: Union[bytes, bytearray, int]):
        self._keystream = PCGKeystream(seed)

    @property
    def position(self) -> int:
        """Keystream bytes consumed so far."""
        return self._keystream.bytes_drawn

    @staticmethod
    def _check_key(key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise InvalidKeyLengthError(
                f"Incorrect Arguments. Please provide a key of size {KEY_LENGTH} bytes"
            )

    def encrypt(self, key: bytes, message: bytes) -> bytes:
        self._check_key(key)
        message = bytes(message)
        intermediate = _xor(message, self._keystream.read(len(message)))
        return AESGCM(bytes(key)).encrypt(NONCE, intermediate, None)

    def decrypt(self, key: bytes, cipher: bytes) -> bytes:
        """
        Open ``cipher`` and strip the keystream.

        Raises ``AuthenticationError`` for a wrong key or altered ciphertext;
        in that case no keystream is consumed.
        """
        self._check_key(key)
        try:
            intermediate = AESGCM(bytes(key)).decrypt(NONCE, bytes(cipher), None)
        except InvalidTag as exc:
            logger.debug("link cipher authentication failed for %d-byte input", len(cipher))
            raise AuthenticationError("message authentication failed") from exc
        return _xor(intermediate, self._keystream.read(len(intermediate)))
