"""
Unit tests for GeneratorLifecycle: probing, seeding with retries, drawing
bytes, and persisting state across instances.
"""

import threading
from pathlib import Path

import pytest

from seifcore.core.exceptions import (
    EntropyError,
    EntropyUnavailableError,
    GeneratorNotInitializedError,
)
from seifcore.core.status import Status
from seifcore.core.worker import AsyncWorker
from seifcore.security.codec import write_encrypted
from seifcore.security.entropy import EntropyStrength
from seifcore.security.lifecycle import GeneratorLifecycle, LifecycleState

KEY = bytes([0xB6, 0x8F, 0xE4, 0x3F, 0x0D, 0x1A])
WRONG_KEY = bytes([0xB2, 0x8F, 0xE4, 0x3F, 0x0D])


class ScriptedEntropySource:
    """Comes up short until ``succeed_at`` effort, then returns fixed material."""

    def __init__(self, succeed_at: int = 0, error: Exception = None):
        self.succeed_at = succeed_at
        self.error = error
        self.efforts = []

    def gather(self, effort: int) -> bytes:
        self.efforts.append(effort)
        if self.error is not None:
            raise self.error
        if effort < self.succeed_at:
            raise EntropyUnavailableError(f"short at {effort}")
        return b"\x5a" * 64


@pytest.fixture
def worker():
    w = AsyncWorker(max_workers=2)
    yield w
    w.shutdown()


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / ".ecies.rng.state"


@pytest.fixture
def lifecycle(worker):
    return GeneratorLifecycle(worker=worker)


def probe(lifecycle, worker, key, path):
    """Run the async probe and return the single callback result."""
    results = []
    lifecycle.is_initialized(key, path, lambda result, payload: results.append((result, payload)))
    worker.wait(timeout=10)
    assert len(results) == 1
    result, payload = results[0]
    assert payload is None
    return result


# ============================================================================
# Probe
# ============================================================================


def test_probe_before_any_state(lifecycle, worker, state_path):
    result = probe(lifecycle, worker, KEY, state_path)
    assert result.status is Status.FILE_NOT_FOUND
    assert lifecycle.state is LifecycleState.UNINITIALIZED


def test_probe_after_destroy_succeeds(lifecycle, worker, state_path):
    lifecycle.initialize(KEY, state_path)
    lifecycle.destroy()

    result = probe(lifecycle, worker, KEY, state_path)
    assert result.status is Status.SUCCESS
    assert lifecycle.is_ready
    assert len(lifecycle.get_bytes(32)) == 32


def test_probe_wrong_key(lifecycle, worker, state_path):
    lifecycle.initialize(KEY, state_path)
    lifecycle.destroy()

    fresh = GeneratorLifecycle(worker=worker)
    result = probe(fresh, worker, WRONG_KEY, state_path)
    assert result.status is Status.DECRYPTION_ERROR
    assert not fresh.is_ready


def test_probe_wrong_size_state_is_decryption_error(lifecycle, state_path):
    """A state that decrypts but has the wrong size is treated as damaged."""
    from seifcore.core.hashing import derive_disk_key

    write_encrypted(state_path, derive_disk_key(KEY), b"too short")
    result = lifecycle.is_initialized_sync(KEY, state_path)
    assert result.status is Status.DECRYPTION_ERROR
    assert not lifecycle.is_ready


def test_probe_future_resolves(lifecycle, state_path):
    result, payload = lifecycle.is_initialized(KEY, state_path).result(timeout=10)
    assert result.status is Status.FILE_NOT_FOUND
    assert payload is None


# ============================================================================
# Initialize
# ============================================================================


def test_get_bytes_before_initialize(lifecycle):
    with pytest.raises(GeneratorNotInitializedError):
        lifecycle.get_bytes(32)


def test_initialize_and_draw(lifecycle, state_path):
    strength = lifecycle.initialize(KEY, state_path)
    assert strength in EntropyStrength
    assert lifecycle.state is LifecycleState.READY
    assert lifecycle.path == state_path

    data = lifecycle.get_bytes(32)
    assert len(data) == 32
    assert data != b"\x00" * 32
    assert lifecycle.get_bytes(32) != data


def test_initialize_does_not_write_state(lifecycle, state_path):
    lifecycle.initialize(KEY, state_path)
    assert not state_path.exists()


@pytest.mark.parametrize(
    "succeed_at, strength",
    [
        (0, EntropyStrength.STRONG),
        (1, EntropyStrength.STRONG),
        (2, EntropyStrength.MEDIUM),
        (3, EntropyStrength.MEDIUM),
        (4, EntropyStrength.WEAK),
        (5, EntropyStrength.WEAK),
    ],
)
def test_strength_reflects_retries(state_path, succeed_at, strength):
    source = ScriptedEntropySource(succeed_at=succeed_at)
    lifecycle = GeneratorLifecycle(entropy_source=source)

    assert lifecycle.initialize(KEY, state_path) is strength
    assert lifecycle.entropy_strength() is strength
    assert source.efforts == list(range(succeed_at + 1))


def test_entropy_exhausted(state_path):
    source = ScriptedEntropySource(succeed_at=6)
    lifecycle = GeneratorLifecycle(entropy_source=source)

    with pytest.raises(EntropyError):
        lifecycle.initialize(KEY, state_path)
    assert source.efforts == [0, 1, 2, 3, 4, 5]
    assert lifecycle.state is LifecycleState.UNINITIALIZED
    with pytest.raises(GeneratorNotInitializedError):
        lifecycle.get_bytes(1)


def test_custom_attempt_limit(state_path):
    source = ScriptedEntropySource(succeed_at=2)
    lifecycle = GeneratorLifecycle(entropy_source=source, max_attempts=2)
    with pytest.raises(EntropyError):
        lifecycle.initialize(KEY, state_path)
    assert source.efforts == [0, 1]


def test_source_os_error_is_entropy_error(state_path):
    source = ScriptedEntropySource(error=OSError("no device"))
    lifecycle = GeneratorLifecycle(entropy_source=source)
    with pytest.raises(EntropyError):
        lifecycle.initialize(KEY, state_path)
    assert source.efforts == [0]


def test_failed_reinitialize_keeps_ready_generator(state_path):
    source = ScriptedEntropySource()
    lifecycle = GeneratorLifecycle(entropy_source=source)
    lifecycle.initialize(KEY, state_path)

    source.succeed_at = 99
    with pytest.raises(EntropyError):
        lifecycle.initialize(KEY, state_path)
    assert lifecycle.is_ready
    assert len(lifecycle.get_bytes(8)) == 8


def test_invalid_attempt_limit():
    with pytest.raises(ValueError):
        GeneratorLifecycle(max_attempts=0)


def test_strength_before_initialize_is_weak(lifecycle):
    assert lifecycle.entropy_strength() is EntropyStrength.WEAK


# ============================================================================
# Persistence
# ============================================================================


def test_reload_continues_saved_stream(state_path):
    """Two lifecycles restored from the same save draw the same bytes."""
    original = GeneratorLifecycle()
    original.initialize(KEY, state_path)
    original.get_bytes(16)
    original.destroy()

    first = GeneratorLifecycle()
    second = GeneratorLifecycle()
    assert first.is_initialized_sync(KEY, state_path).ok
    assert second.is_initialized_sync(KEY, state_path).ok
    assert first.get_bytes(64) == second.get_bytes(64)


def test_save_state_without_generator(lifecycle):
    with pytest.raises(GeneratorNotInitializedError):
        lifecycle.save_state()


def test_save_state_writes_file(lifecycle, state_path):
    lifecycle.initialize(KEY, state_path)
    lifecycle.save_state()
    assert state_path.exists()
    assert lifecycle.is_ready


def test_destroy_blocks_further_draws(lifecycle, state_path):
    lifecycle.initialize(KEY, state_path)
    lifecycle.destroy()
    assert lifecycle.state is LifecycleState.DESTROYED
    assert state_path.exists()
    with pytest.raises(GeneratorNotInitializedError):
        lifecycle.get_bytes(1)


def test_destroy_before_initialize(lifecycle):
    with pytest.raises(GeneratorNotInitializedError):
        lifecycle.destroy()


def test_context_manager_saves_on_exit(state_path):
    with GeneratorLifecycle() as lifecycle:
        lifecycle.initialize(KEY, state_path)
    assert lifecycle.state is LifecycleState.DESTROYED
    assert GeneratorLifecycle().is_initialized_sync(KEY, state_path).ok


# ============================================================================
# Concurrency
# ============================================================================


def test_concurrent_draws_are_distinct(lifecycle, state_path):
    lifecycle.initialize(KEY, state_path)
    outputs = []
    outputs_lock = threading.Lock()

    def draw():
        for _ in range(20):
            chunk = lifecycle.get_bytes(16)
            with outputs_lock:
                outputs.append(chunk)

    threads = [threading.Thread(target=draw) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outputs) == 80
    assert len(set(outputs)) == 80


# ============================================================================
# Unexpected source failures
# ============================================================================


class BrokenEntropySource:
    def __init__(self, error: Exception):
        self.error = error

    def gather(self, effort: int) -> bytes:
        raise self.error


@pytest.mark.parametrize("error", [RuntimeError("driver crashed"), NotImplementedError("no urandom")])
def test_unexpected_source_error_resets_state(state_path, error):
    lifecycle = GeneratorLifecycle(entropy_source=BrokenEntropySource(error))

    with pytest.raises(EntropyError) as excinfo:
        lifecycle.initialize(KEY, state_path)
    assert excinfo.value.__cause__ is error
    assert lifecycle.state is LifecycleState.UNINITIALIZED


def test_unexpected_source_error_keeps_ready_generator(state_path):
    source = ScriptedEntropySource()
    lifecycle = GeneratorLifecycle(entropy_source=source)
    lifecycle.initialize(KEY, state_path)

    source.error = RuntimeError("driver crashed")
    with pytest.raises(EntropyError):
        lifecycle.initialize(KEY, state_path)
    assert lifecycle.state is LifecycleState.READY
    assert len(lifecycle.get_bytes(8)) == 8
    lifecycle.destroy()
    assert state_path.exists()


def test_initialize_if_needed(state_path):
    source = ScriptedEntropySource()
    lifecycle = GeneratorLifecycle(entropy_source=source)

    assert lifecycle.initialize_if_needed(KEY, state_path) is EntropyStrength.STRONG
    assert lifecycle.initialize_if_needed(KEY, state_path) is None
    assert source.efforts == [0]
