"""
Lifecycle of the shared pseudo-random generator.

One :class:`GeneratorLifecycle` is meant to be created by the application,
handed to whatever needs random bytes (for example :class:`SecretStore`), and
destroyed at shutdown so its state is flushed to disk encrypted under the
DiskKey it was configured with.

States::

    UNINITIALIZED -> INITIALIZING -> READY -> DESTROYED
                          |                      |
                          +-> UNINITIALIZED      +-> (initialize / reload)
                              (EntropyError)

The generator can become READY in two ways:

- :meth:`initialize` gathers fresh entropy, retrying at increasing effort
- :meth:`is_initialized` reloads a previously saved state from disk
"""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Optional, Union

from seifcore.core.exceptions import (
    EntropyError,
    EntropyUnavailableError,
    GeneratorNotInitializedError,
)
from seifcore.core.hashing import derive_disk_key
from seifcore.core.locks import get_path_lock
from seifcore.core.status import Status, StatusResult
from seifcore.core.worker import AsyncWorker, get_default_worker

from .codec import read_encrypted, write_encrypted
from .entropy import EntropySource, EntropyStrength, SystemEntropySource, classify_effort
from .generator import STATE_SIZE, DeterministicGenerator

logger = logging.getLogger(__name__)

MAX_ENTROPY_ATTEMPTS = 6

KeyMaterial = Union[bytes, bytearray, str]


class LifecycleState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DESTROYED = "destroyed"


class GeneratorLifecycle:
    """Synchronized owner of the process-wide generator."""

    def __init__(
        self,
        entropy_source: Optional[EntropySource] = None,
        max_attempts: int = MAX_ENTROPY_ATTEMPTS,
        worker: Optional[AsyncWorker] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._entropy_source = entropy_source or SystemEntropySource()
        self._max_attempts = max_attempts
        self._worker = worker
        self._lock = threading.RLock()
        self._state = LifecycleState.UNINITIALIZED
        self._generator: Optional[DeterministicGenerator] = None
        self._disk_key: Optional[bytes] = None
        self._path: Optional[Path] = None
        self._strength: Optional[EntropyStrength] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def is_ready(self) -> bool:
        return self.state is LifecycleState.READY

    @property
    def path(self) -> Optional[Path]:
        with self._lock:
            return self._path

    def entropy_strength(self) -> EntropyStrength:
        """
        Strength of the last successful :meth:`initialize`.

        A generator that was only ever reloaded from disk reports
        ``EntropyStrength.WEAK``, since nothing is known about how its state was
        seeded.
        """
        with self._lock:
            return self._strength or EntropyStrength.WEAK

    # ------------------------------------------------------------------
    # Probe / reload
    # ------------------------------------------------------------------

    def is_initialized_sync(self, key_material: KeyMaterial, path: Path | str) -> StatusResult:
        """Try to adopt the state saved at ``path``; blocking form of :meth:`is_initialized`."""
        disk_key = derive_disk_key(key_material)
        path = Path(path)

        with get_path_lock(path):
            status, state = read_encrypted(path, disk_key)
        if status is not Status.SUCCESS:
            logger.info("generator state at %s not loaded: %s", path, status.name)
            return StatusResult.from_status(status)

        try:
            generator = DeterministicGenerator.from_state(state)
        except ValueError as exc:
            logger.warning("generator state at %s is corrupt: %s", path, exc)
            return StatusResult.failure(Status.DECRYPTION_ERROR)

        with self._lock:
            self._generator = generator
            self._disk_key = disk_key
            self._path = path
            self._state = LifecycleState.READY
        logger.info("generator state restored from %s", path)
        return StatusResult.success()

    def is_initialized(
        self,
        key_material: KeyMaterial,
        path: Path | str,
        callback: Optional[Callable[[StatusResult, None], None]] = None,
    ) -> Future:
        """
        Probe ``path`` for saved state on a background thread.

        ``callback(result, None)`` is invoked once: FILE_NOT_FOUND when there
        is no state file, DECRYPTION_ERROR when the key does not match or the
        state is damaged, SUCCESS once the live generator has adopted it.
        """
        worker = self._worker or get_default_worker()
        return worker.submit(lambda: self.is_initialized_sync(key_material, path), callback)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def initialize(self, key_material: KeyMaterial, path: Path | str) -> EntropyStrength:
        """
        Seed a fresh generator from the entropy source.

        Attempts run at effort levels ``0 .. max_attempts - 1``; the first
        success makes the generator READY. The new state is not written to
        disk until :meth:`save_state` or :meth:`destroy`.

        Raises:
            EntropyError: every attempt came up short, or the source failed.
        """
        disk_key = derive_disk_key(key_material)
        path = Path(path)

        with self._lock:
            previous = self._state
            self._state = LifecycleState.INITIALIZING
            try:
                seed, effort = self._gather_seed()
            except BaseException:
                self._state = (
                    LifecycleState.UNINITIALIZED if previous is not LifecycleState.READY else previous
                )
                raise

            self._generator = DeterministicGenerator.from_seed(seed)
            self._disk_key = disk_key
            self._path = path
            self._strength = classify_effort(effort)
            self._state = LifecycleState.READY

        logger.info("generator initialized at effort %d (%s)", effort, self._strength.value)
        return self._strength

    def initialize_if_needed(self, key_material: KeyMaterial, path: Path | str) -> Optional[EntropyStrength]:
        """Call :meth:`initialize` unless the generator is already READY; atomic."""
        with self._lock:
            if self._state is LifecycleState.READY:
                return None
            return self.initialize(key_material, path)

    def _gather_seed(self) -> tuple[bytes, int]:
        for effort in range(self._max_attempts):
            try:
                seed = self._entropy_source.gather(effort)
            except EntropyUnavailableError as exc:
                logger.debug("entropy attempt %d failed: %s", effort, exc)
                continue
            except Exception as exc:
                logger.error("entropy source failed at attempt %d: %s", effort, exc)
                raise EntropyError(f"entropy source failed: {exc}") from exc
            if seed:
                return seed, effort
            logger.debug("entropy attempt %d returned no data", effort)
        logger.error("no usable entropy after %d attempts", self._max_attempts)
        raise EntropyError()

    # ------------------------------------------------------------------
    # Use
    # ------------------------------------------------------------------

    def get_bytes(self, n: int) -> bytes:
        """Draw ``n`` bytes; each draw advances the generator atomically."""
        if n < 0:
            raise ValueError("number of bytes must be non-negative")
        with self._lock:
            if self._state is not LifecycleState.READY or self._generator is None:
                raise GeneratorNotInitializedError()
            return self._generator.generate(n)

    # ------------------------------------------------------------------
    # Persistence / teardown
    # ------------------------------------------------------------------

    def save_state(self) -> None:
        """Encrypt the live state and write it to the configured path."""
        with self._lock:
            if self._state is not LifecycleState.READY or self._generator is None:
                raise GeneratorNotInitializedError()
            path, disk_key = self._path, self._disk_key
            state = self._generator.serialize()
            # state must be serialized and written before any further draw
            with get_path_lock(path):
                write_encrypted(path, disk_key, state)
        logger.info("generator state (%d bytes) saved to %s", STATE_SIZE, path)

    def destroy(self) -> None:
        """Save the state, then drop the in-memory generator."""
        with self._lock:
            self.save_state()
            self._generator = None
            self._state = LifecycleState.DESTROYED
        logger.info("generator destroyed")

    def __enter__(self) -> "GeneratorLifecycle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.is_ready:
            self.destroy()
