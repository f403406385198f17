"""Process-wide registry of per-path locks.

Writers (save, destroy, generate) and readers (load, probe) of the same
encrypted file take the same lock, so a reader never sees a half written blob.
"""

import os
import threading

path_locks = {}
path_locks_lock = threading.Lock()


def _normalize(path) -> str:
    return os.path.abspath(os.fspath(path))


def get_path_lock(path) -> threading.RLock:
    """Return the lock object for a given file or folder path."""
    key = _normalize(path)
    with path_locks_lock:
        lock = path_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            path_locks[key] = lock
        return lock
