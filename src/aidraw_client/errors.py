"""Error taxonomy shared by every adapter.

Every error carries a short ``message`` that is safe to show to an end user.
Transport details (socket errors, raw status lines) stay in the chained
``__cause__`` and in the logs.
"""

from __future__ import annotations

from typing import Literal

TransportCause = Literal["timeout", "offline", "unknown"]


class AdapterError(Exception):
    """Base class for all adapter-level failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AdapterError):
    """Caller supplied invalid input. Never retried."""


class TransportError(AdapterError):
    """Network failure, request timeout, or an unreadable response."""

    def __init__(self, message: str, *, cause: TransportCause = "unknown") -> None:
        super().__init__(message)
        self.cause = cause


class BusinessError(AdapterError):
    """Backend answered with ``success=false`` or a non-2xx status."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TaskTimeoutError(AdapterError):
    """Polling exhausted its attempt budget without a terminal task state."""


class PollCancelledError(AdapterError):
    """The caller cancelled a polling loop before it reached a terminal state."""


class StorageError(AdapterError):
    """The local key-value store could not be read or written."""
