"""Status codes shared by the store, the generator lifecycle and the worker.

The integer codes (``0`` for success, small negatives for failures) appear in
serialized payloads only; inside Python always pass :class:`Status` members.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class Status(enum.Enum):
    SUCCESS = 0
    FILE_NOT_FOUND = -1
    DECRYPTION_ERROR = -2
    ENTROPY_ERROR = -3
    GENERATOR_NOT_INITIALIZED = -4

    @property
    def code(self) -> int:
        return self.value

    @property
    def default_message(self) -> str:
        return _DEFAULT_MESSAGES[self]


_DEFAULT_MESSAGES = {
    Status.SUCCESS: "Success",
    Status.FILE_NOT_FOUND: "File Not Found",
    Status.DECRYPTION_ERROR: "Decryption Error",
    Status.ENTROPY_ERROR: "Not enough entropy!",
    Status.GENERATOR_NOT_INITIALIZED: "Generator not initialized",
}


@dataclass(frozen=True)
class StatusResult:
    """A status plus the human readable message delivered with it."""

    status: Status
    message: str

    @classmethod
    def success(cls) -> "StatusResult":
        return cls(Status.SUCCESS, Status.SUCCESS.default_message)

    @classmethod
    def failure(cls, status: Status, message: Optional[str] = None) -> "StatusResult":
        if status is Status.SUCCESS:
            raise ValueError("failure() requires a non-success status")
        return cls(status, message or status.default_message)

    @classmethod
    def from_status(cls, status: Status) -> "StatusResult":
        if status is Status.SUCCESS:
            return cls.success()
        return cls.failure(status)

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    @property
    def code(self) -> int:
        return self.status.code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}
