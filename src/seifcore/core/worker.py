"""
Background task runner with single-shot status callbacks.

A task is any zero-argument callable returning ``(status, payload)``. It runs
on a thread pool, never on the submitting thread, and its outcome is handed
back to the context the caller submitted from:

- inside a running asyncio loop the callback is scheduled on that loop
  with ``call_soon_threadsafe``
- otherwise the outcome is queued for the submitting thread and delivered
  there when that thread calls :meth:`AsyncWorker.run_callbacks` or
  :meth:`AsyncWorker.wait`

Every submission produces exactly one callback invocation. Failures always
arrive as a non-success :class:`StatusResult` with a ``None`` payload.
Submitted tasks cannot be cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .exceptions import StatusError
from .status import Status, StatusResult

logger = logging.getLogger(__name__)

Outcome = Tuple[StatusResult, Any]
Task = Callable[[], Any]
Callback = Callable[[StatusResult, Any], None]

def _as_result(status: Union[Status, StatusResult]) -> StatusResult:
    if isinstance(status, StatusResult):
        return status
    if isinstance(status, Status):
        return StatusResult.from_status(status)
    raise TypeError(f"task returned {status!r}, expected a Status")

def run_task(task: Task) -> Outcome:
    """Run ``task`` and fold its return value or exception into an outcome."""
    try:
        outcome = task()
        if isinstance(outcome, tuple):
            status, payload = outcome
        else:
            status, payload = outcome, None
        result = _as_result(status)
    except StatusError as exc:
        logger.warning("background task failed with %s: %s", exc.status.name, exc)
        return StatusResult.failure(exc.status, str(exc)), None
    except Exception as exc:
        logger.exception("background task raised an unexpected error")
        return StatusResult.failure(Status.DECRYPTION_ERROR, f"Unknown Error: {exc}"), None

    if not result.ok:
        payload = None
    return result, payload

def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None

class _Channel:
    """Completed callbacks waiting for one submitting thread to drain them."""

    def __init__(self):
        self.queue: "queue.SimpleQueue[Tuple[Callback, StatusResult, Any]]" = queue.SimpleQueue()
        self.undelivered = 0

class AsyncWorker:
    """Thread pool plus a result channel back to each submitting thread."""

    def __init__(self, max_workers: Optional[int] = None, name: str = "seifcore-worker"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._channels: Dict[int, _Channel] = {}
        self._lock = threading.Lock()

    def _channel(self) -> _Channel:
        ident = threading.get_ident()
        with self._lock:
            channel = self._channels.get(ident)
            if channel is None:
                channel = _Channel()
                self._channels[ident] = channel
            return channel

    def submit(self, task: Task, callback: Optional[Callback] = None) -> "Future[Outcome]":
        """
        Schedule ``task`` on the pool.

        The returned future resolves to the ``(StatusResult, payload)`` pair,
        which lets callers enforce their own timeout. The future is never
        completed with an exception. Raises ``RuntimeError`` once the worker
        has been shut down; nothing is then left pending.
        """
        loop = _running_loop()
        future = self._executor.submit(run_task, task)
        if callback is None:
            return future
        channel = None
        if loop is None:
            channel = self._channel()
            with self._lock:
                channel.undelivered += 1
        future.add_done_callback(partial(self._route, loop, channel, callback))
        return future

    async def run(self, task: Task) -> Outcome:
        """Awaitable form of :meth:`submit` for asyncio callers."""
        return await asyncio.wrap_future(self._executor.submit(run_task, task))

    def _route(
        self,
        loop: Optional[asyncio.AbstractEventLoop],
        channel: Optional[_Channel],
        callback: Callback,
        future: Future,
    ) -> None:
        result, payload = future.result()
        if channel is not None:
            channel.queue.put((callback, result, payload))
            return
        try:
            loop.call_soon_threadsafe(callback, result, payload)
        except RuntimeError:
            # The submitting loop is gone; the result has nowhere to go.
            logger.warning("dropping %s result, event loop is closed", result.status.name)

    def _deliver(self, channel: _Channel, item: Tuple[Callback, StatusResult, Any]) -> None:
        callback, result, payload = item
        with self._lock:
            channel.undelivered -= 1
        callback(result, payload)

    @property
    def pending(self) -> int:
        """Callbacks submitted from the calling thread that have not run yet."""
        with self._lock:
            channel = self._channels.get(threading.get_ident())
            return channel.undelivered if channel is not None else 0

    def run_callbacks(self) -> int:
        """Deliver the calling thread's completed callbacks; never blocks."""
        channel = self._channel()
        delivered = 0
        while True:
            try:
                item = channel.queue.get_nowait()
            except queue.Empty:
                return delivered
            self._deliver(channel, item)
            delivered += 1

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        Block until every callback submitted from this thread has been delivered.

        Callbacks submitted from other threads are left for those threads.
        Raises ``TimeoutError`` if ``timeout`` seconds pass first; tasks keep
        running in the background and their callbacks stay queued.
        """
        channel = self._channel()
        deadline = None if timeout is None else time.monotonic() + timeout
        delivered = 0
        while self.pending > 0:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"{self.pending} callback(s) still pending")
            try:
                item = channel.queue.get(timeout=remaining)
            except queue.Empty:
                raise TimeoutError(f"{self.pending} callback(s) still pending") from None
            self._deliver(channel, item)
            delivered += 1
        return delivered

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AsyncWorker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

_default_worker: Optional[AsyncWorker] = None
_default_worker_lock = threading.Lock()

def get_default_worker() -> AsyncWorker:
    """Return the lazily created module-level worker."""
    global _default_worker
    with _default_worker_lock:
        if _default_worker is None:
            _default_worker = AsyncWorker()
        return _default_worker
