"""Error taxonomy raised by the client runtime."""

from __future__ import annotations

from typing import Any, Optional


class YeepError(Exception):
    """Base error for all client failures."""


class ValidationError(YeepError, ValueError):
    """Raised when caller-supplied input is malformed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class StateError(YeepError, RuntimeError):
    """Raised when an operation is invoked in the wrong lifecycle state."""


class DecodeError(YeepError):
    """Raised when a session token cannot be parsed for its expiry claim."""


class ServiceError(YeepError):
    """Raised when the remote service replies with ``ok: false``."""

    def __init__(self, message: str, code: Any = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details if details is not None else []

    def __repr__(self) -> str:
        return f"ServiceError(code={self.code!r}, message={self.message!r})"


class SchemaError(ServiceError):
    """Raised when the schema document does not have the expected shape."""


class TransportError(YeepError):
    """Raised for network failures reported by the transport."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(TransportError):
    """Raised when a request exceeds the configured timeout."""


class RequestCancelledError(TransportError):
    """Raised when a request is aborted through its cancel handle."""


__all__ = [
    "YeepError",
    "ValidationError",
    "StateError",
    "DecodeError",
    "ServiceError",
    "SchemaError",
    "TransportError",
    "RequestTimeoutError",
    "RequestCancelledError",
]
