"""Network stack (transport/envelope/dispatcher) for the remote service."""

from yeep_client.network.cancellation import CancelHandle, CancelRegistry
from yeep_client.network.dispatcher import (
    Operation,
    OperationDispatcher,
    OperationNamespace,
    OperationTable,
    SchemaDocument,
)
from yeep_client.network.envelope import RequestEnvelope
from yeep_client.network.transport import BaseTransport, DummyTransport, RawResponse, RequestsTransport

__all__ = [
    "CancelHandle",
    "CancelRegistry",
    "Operation",
    "OperationDispatcher",
    "OperationNamespace",
    "OperationTable",
    "SchemaDocument",
    "RequestEnvelope",
    "BaseTransport",
    "DummyTransport",
    "RawResponse",
    "RequestsTransport",
]
