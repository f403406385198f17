"""
Encrypted-at-rest storage for an ECIES keypair.

Structure Map for reference:
==============================
 - <folder>/
      - <prefix>.private.key   (sealed PKCS#8 DER private key)
      - <prefix>.public.key    (sealed SubjectPublicKeyInfo DER public key)
      - <prefix>.rng.state     (sealed generator state, owned by GeneratorLifecycle)
==============================

All three files are sealed under the same DiskKey, derived once from the
material handed to :class:`SecretStore`. Keys leave the store hex-encoded.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from seifcore.core.exceptions import (
    AuthenticationError,
    InvalidKeyError,
    KeyGenerationError,
    SeifError,
)
from seifcore.core.hashing import derive_disk_key
from seifcore.core.locks import get_path_lock
from seifcore.core.status import Status, StatusResult
from seifcore.core.worker import AsyncWorker, get_default_worker

from . import keyexchange
from .codec import read_encrypted, write_encrypted
from .lifecycle import GeneratorLifecycle, KeyMaterial

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = ".ecies"


@dataclass(frozen=True)
class KeyPair:
    """Hex-encoded public/private key strings."""

    public_key: str
    private_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"enc": self.public_key, "dec": self.private_key}

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key[:16]}..., private_key=<hidden>)"


LoadCallback = Callable[[StatusResult, Optional[KeyPair]], None]


class SecretStore:
    """Generate, persist and load one keypair per ``(DiskKey, folder)``."""

    def __init__(
        self,
        key_material: KeyMaterial,
        folder: Path | str,
        lifecycle: GeneratorLifecycle,
        worker: Optional[AsyncWorker] = None,
        prefix: str = DEFAULT_PREFIX,
    ):
        self._disk_key = derive_disk_key(key_material)
        self.folder = Path(folder).expanduser()
        self.lifecycle = lifecycle
        self._worker = worker
        self.prefix = prefix

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    @property
    def private_key_path(self) -> Path:
        return self.folder / f"{self.prefix}.private.key"

    @property
    def public_key_path(self) -> Path:
        return self.folder / f"{self.prefix}.public.key"

    @property
    def state_path(self) -> Path:
        return self.folder / f"{self.prefix}.rng.state"

    def has_keys(self) -> bool:
        return self.private_key_path.exists() and self.public_key_path.exists()

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    def generate_key_pair(self) -> KeyPair:
        """
        Generate a fresh keypair and persist both halves.

        If the shared generator is not ready it is initialized first, with
        its state file configured as ``<prefix>.rng.state`` in this folder.

        Raises:
            EntropyError: the generator could not be seeded.
            KeyGenerationError: key derivation, validation or writing failed.
        """
        with get_path_lock(self.folder):
            if self.lifecycle.initialize_if_needed(self._disk_key, self.state_path) is not None:
                logger.info("generator was not ready, initialized before key generation")
            public_key, private_key = keyexchange.kx_generate(self.lifecycle.get_bytes)
            private_der = keyexchange.private_key_to_bytes(private_key)
            public_der = keyexchange.public_key_to_bytes(public_key)
            try:
                write_encrypted(self.private_key_path, self._disk_key, private_der)
                write_encrypted(self.public_key_path, self._disk_key, public_der)
            except OSError as exc:
                raise KeyGenerationError(f"could not persist keypair: {exc}") from exc

        logger.info("generated keypair in %s", self.folder)
        return KeyPair(public_key=public_der.hex(), private_key=private_der.hex())

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_key_pair_sync(self) -> Tuple[StatusResult, Optional[KeyPair]]:
        """
        Read both key files; blocking form of :meth:`load_key_pair`.

        The private key is read first, a missing or undecryptable private key
        is reported without opening the public key file.
        """
        with get_path_lock(self.folder):
            status, private_der = read_encrypted(self.private_key_path, self._disk_key)
            if status is not Status.SUCCESS:
                logger.info("private key not loaded from %s: %s", self.folder, status.name)
                return StatusResult.from_status(status), None

            status, public_der = read_encrypted(self.public_key_path, self._disk_key)
            if status is not Status.SUCCESS:
                logger.info("public key not loaded from %s: %s", self.folder, status.name)
                return StatusResult.from_status(status), None

        try:
            keyexchange.load_private_key(private_der)
            keyexchange.load_public_key(public_der)
        except InvalidKeyError as exc:
            logger.warning("stored keys in %s are corrupt: %s", self.folder, exc)
            return StatusResult.failure(Status.DECRYPTION_ERROR), None

        return StatusResult.success(), KeyPair(public_key=public_der.hex(), private_key=private_der.hex())

    def load_key_pair(self, callback: Optional[LoadCallback] = None) -> Future:
        """
        Load the keypair on a background thread.

        ``callback(result, keypair)`` is called exactly once; ``keypair`` is
        ``None`` unless ``result.status`` is SUCCESS.
        """
        worker = self._worker or get_default_worker()
        return worker.submit(self.load_key_pair_sync, callback)

    def delete_keys(self) -> None:
        """Remove both key files, leaving the generator state alone."""
        with get_path_lock(self.folder):
            for path in (self.private_key_path, self.public_key_path):
                path.unlink(missing_ok=True)
        logger.info("deleted keypair in %s", self.folder)

    # ------------------------------------------------------------------
    # Public-key encryption
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt_message(public_key_hex: str, message: bytes) -> str:
        """
        Encrypt ``message`` to a hex public key; returns hex ciphertext.

        Raises ``InvalidKeyError`` for a malformed key.
        """
        try:
            public_der = bytes.fromhex(public_key_hex)
        except (ValueError, TypeError) as exc:
            raise InvalidKeyError("public key is not valid hex") from exc
        public_key = keyexchange.load_public_key(public_der)
        try:
            return keyexchange.kx_encrypt(public_key, bytes(message)).hex()
        except ValueError as exc:
            raise SeifError(f"encryption failed: {exc}") from exc

    @staticmethod
    def decrypt_message(private_key_hex: str, cipher_hex: str) -> bytes:
        """
        Decrypt hex ciphertext with a hex private key.

        Raises ``InvalidKeyError`` for a malformed key and
        ``AuthenticationError`` when the ciphertext was altered, truncated or
        made for another key.
        """
        try:
            private_der = bytes.fromhex(private_key_hex)
        except (ValueError, TypeError) as exc:
            raise InvalidKeyError("private key is not valid hex") from exc
        private_key = keyexchange.load_private_key(private_der)
        try:
            blob = bytes.fromhex(cipher_hex)
        except (ValueError, TypeError) as exc:
            raise AuthenticationError("ciphertext is not valid hex") from exc
        return keyexchange.kx_decrypt(private_key, blob)
