from .base import BaseTransport, RawResponse
from .dummy import DummyTransport, TransportCall
from .requests_transport import RequestsTransport

__all__ = [
    "BaseTransport",
    "RawResponse",
    "DummyTransport",
    "TransportCall",
    "RequestsTransport",
]
