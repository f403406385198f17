"""ECIES on secp521r1: key generation, public-key encryption and decryption.

Ciphertext layout::

    ephemeral public point (X9.62 uncompressed, 133 bytes)
    nonce (12 bytes)
    AES-256-GCM ciphertext || tag (16 bytes)

The AES key is HKDF-SHA256 over the ECDH shared secret, salted with the
ephemeral point so every message gets its own key.
"""

from __future__ import annotations

import os
from typing import Callable, Tuple

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from seifcore.core.exceptions import AuthenticationError, InvalidKeyError, KeyGenerationError

CURVE = ec.SECP521R1()
CURVE_ORDER = int(
    "01FF" + "FFFFFFFF" * 7 + "FFFFFFFA"
    "51868783BF2F966B7FCC0148F709A5D03BB5C9B8899C47AEBB6FB71E91386409",
    16,
)
SCALAR_SIZE = 66
POINT_SIZE = 1 + 2 * SCALAR_SIZE
NONCE_SIZE = 12
TAG_SIZE = 16
HKDF_INFO = b"seifcore-ecies"

RandomBytes = Callable[[int], bytes]


def _derive_scalar(random_bytes: RandomBytes) -> int:
    # 16 extra bytes keep the modular reduction bias negligible.
    raw = random_bytes(SCALAR_SIZE + 16)
    return int.from_bytes(raw, "big") % (CURVE_ORDER - 1) + 1


def validate_key_pair(private_key: ec.EllipticCurvePrivateKey, public_key: ec.EllipticCurvePublicKey) -> None:
    """Raise ``KeyGenerationError`` unless the pair is a consistent secp521r1 pair."""
    if private_key.curve.name != CURVE.name or public_key.curve.name != CURVE.name:
        raise KeyGenerationError("key is not on secp521r1")
    d = private_key.private_numbers().private_value
    if not 1 <= d < CURVE_ORDER:
        raise KeyGenerationError("private scalar out of range")
    encoded = public_key.public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    try:
        decoded = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, encoded)
    except ValueError as exc:
        raise KeyGenerationError("public point is not on the curve") from exc
    if decoded.public_numbers() != private_key.public_key().public_numbers():
        raise KeyGenerationError("public key does not match private key")


def kx_generate(random_bytes: RandomBytes) -> Tuple[ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey]:
    """Derive a keypair whose private scalar comes from ``random_bytes``."""
    try:
        private_key = ec.derive_private_key(_derive_scalar(random_bytes), CURVE)
    except ValueError as exc:
        raise KeyGenerationError(f"could not derive private key: {exc}") from exc
    public_key = private_key.public_key()
    validate_key_pair(private_key, public_key)
    return public_key, private_key


def kx_encrypt(public_key: ec.EllipticCurvePublicKey, message: bytes) -> bytes:
    """Encrypt ``message`` to ``public_key`` using fresh OS randomness."""
    ephemeral = ec.generate_private_key(CURVE)
    shared = ephemeral.exchange(ec.ECDH(), public_key)
    point = ephemeral.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    key = _message_key(shared, point)
    nonce = os.urandom(NONCE_SIZE)
    return point + nonce + AESGCM(key).encrypt(nonce, message, None)


def kx_decrypt(private_key: ec.EllipticCurvePrivateKey, blob: bytes) -> bytes:
    """Inverse of :func:`kx_encrypt`; raises ``AuthenticationError`` on any mismatch."""
    if len(blob) < POINT_SIZE + NONCE_SIZE + TAG_SIZE:
        raise AuthenticationError("ciphertext too short")
    point = blob[:POINT_SIZE]
    nonce = blob[POINT_SIZE:POINT_SIZE + NONCE_SIZE]
    ct = blob[POINT_SIZE + NONCE_SIZE:]
    try:
        ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, point)
    except ValueError as exc:
        raise AuthenticationError("invalid ephemeral public key") from exc
    shared = private_key.exchange(ec.ECDH(), ephemeral)
    try:
        return AESGCM(_message_key(shared, point)).decrypt(nonce, ct, None)
    except InvalidTag as exc:
        raise AuthenticationError("message authentication failed") from exc


def _message_key(shared: bytes, point: bytes) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=point, info=HKDF_INFO)
    return hkdf.derive(shared)


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def private_key_to_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_key_to_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_private_key(data: bytes) -> ec.EllipticCurvePrivateKey:
    try:
        key = serialization.load_der_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyError("malformed private key") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey) or key.curve.name != CURVE.name:
        raise InvalidKeyError("private key is not a secp521r1 key")
    return key


def load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    try:
        key = serialization.load_der_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyError("malformed public key") from exc
    if not isinstance(key, ec.EllipticCurvePublicKey) or key.curve.name != CURVE.name:
        raise InvalidKeyError("public key is not a secp521r1 key")
    return key
