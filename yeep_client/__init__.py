"""Schema-driven client with managed bearer/cookie sessions."""

from yeep_client.client import YeepClient
from yeep_client.config import ClientSettings, get_settings
from yeep_client.errors import (
    DecodeError,
    RequestCancelledError,
    RequestTimeoutError,
    SchemaError,
    ServiceError,
    StateError,
    TransportError,
    ValidationError,
    YeepError,
)
from yeep_client.network import OperationTable
from yeep_client.session import SessionManager, SessionState

__all__ = [
    "YeepClient",
    "ClientSettings",
    "get_settings",
    "OperationTable",
    "SessionManager",
    "SessionState",
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
