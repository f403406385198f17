"""Runtime settings for seifcore, read from ``SEIF_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_FILE_PREFIX = ".ecies"
DEFAULT_MAX_ENTROPY_ATTEMPTS = 6
DEFAULT_WORKER_THREADS = 4


@dataclass
class Settings:
    """Container for the knobs the store, lifecycle and CLI need."""

    key_folder: Path
    file_prefix: str = DEFAULT_FILE_PREFIX
    max_entropy_attempts: int = DEFAULT_MAX_ENTROPY_ATTEMPTS
    worker_threads: int = DEFAULT_WORKER_THREADS
    log_level: int = logging.INFO
    disk_key_hex: Optional[str] = None


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


def _level_from_env(env: Mapping[str, str]) -> int:
    raw = env.get("SEIF_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        raise ValueError(f"SEIF_LOG_LEVEL is not a logging level: {raw!r}")
    return level


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build :class:`Settings` from the environment.

    ``SEIF_KEY_FOLDER`` defaults to ``~/.seif``. ``SEIF_DISK_KEY`` is optional
    and only consulted by the command line front end.
    """
    if env is None:
        env = os.environ

    folder = env.get("SEIF_KEY_FOLDER") or str(Path.home() / ".seif")
    return Settings(
        key_folder=Path(folder).expanduser(),
        file_prefix=env.get("SEIF_FILE_PREFIX") or DEFAULT_FILE_PREFIX,
        max_entropy_attempts=_int_from_env(
            env, "SEIF_MAX_ENTROPY_ATTEMPTS", DEFAULT_MAX_ENTROPY_ATTEMPTS
        ),
        worker_threads=_int_from_env(env, "SEIF_WORKER_THREADS", DEFAULT_WORKER_THREADS),
        log_level=_level_from_env(env),
        disk_key_hex=env.get("SEIF_DISK_KEY") or None,
    )
