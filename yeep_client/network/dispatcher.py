"""Schema-driven operation dispatcher.

The remote service publishes a schema document listing its operations. The
dispatcher fetches it once, keeps every operation declared with the configured
HTTP method and compiles them into an immutable :class:`OperationTable`, so that
``table["role.info"]`` and ``table.role.info`` both resolve to the same bound
:class:`Operation`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from yeep_client.errors import SchemaError
from yeep_client.network.envelope import RequestEnvelope, payload_dict

LOGGER = logging.getLogger(__name__)

Requester = Callable[..., Awaitable[Any]]


class SchemaInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str


class SchemaWire(BaseModel):
    """Wire shape of the schema document (an OpenAPI subset)."""

    model_config = ConfigDict(extra="ignore")

    info: SchemaInfo
    paths: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


@dataclass(frozen=True)
class OperationSpec:
    identifier: str
    method: str
    path: str


@dataclass(frozen=True)
class SchemaDocument:
    version: str
    operations: tuple[OperationSpec, ...]

    @classmethod
    def parse(cls, raw: Any) -> SchemaDocument:
        try:
            wire = SchemaWire.model_validate(raw)
        except PydanticValidationError as exc:
            raise SchemaError("Invalid schema document", details=exc.errors()) from exc
        operations: List[OperationSpec] = []
        for path, item in wire.paths.items():
            for method, operation in item.items():
                if not isinstance(operation, Mapping):
                    continue
                identifier = operation.get("operationId")
                if not isinstance(identifier, str) or not identifier:
                    LOGGER.debug("Skipping %s %s without operationId", method.upper(), path)
                    continue
                operations.append(OperationSpec(identifier=identifier, method=method.lower(), path=path))
        return cls(version=wire.info.version, operations=tuple(operations))


@dataclass(frozen=True)
class Operation:
    """Bound remote operation; awaiting a call issues one request."""

    identifier: str
    method: str
    path: str
    requester: Requester = field(repr=False, compare=False)

    async def __call__(
        self,
        payload: Any = None,
        /,
        *,
        cancel_key: Optional[str] = None,
        **fields: Any,
    ) -> Any:
        body: Dict[str, Any] = dict(payload_dict(payload) or {})
        body.update(fields)
        return await self.requester(self.method, self.path, body, cancel_key=cancel_key)


class _Traversal:
    __slots__ = ()

    def _lookup(self, table: OperationTable, identifier: str) -> Any:
        operation = table._operations.get(identifier)
        if operation is not None:
            return operation
        if identifier in table._namespaces:
            return OperationNamespace(table, identifier)
        raise AttributeError(f"No operation or namespace named {identifier!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")


class OperationNamespace(_Traversal):
    """Read-only view over the operations sharing an identifier prefix."""

    __slots__ = ("_table", "_prefix")

    def __init__(self, table: OperationTable, prefix: str) -> None:
        object.__setattr__(self, "_table", table)
        object.__setattr__(self, "_prefix", prefix)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._lookup(self._table, f"{self._prefix}.{name}")

    def __dir__(self) -> List[str]:
        return self._table._children(self._prefix)

    def __repr__(self) -> str:
        return f"OperationNamespace({self._prefix!r})"


class OperationTable(_Traversal, Mapping[str, Operation]):
    """Immutable mapping from dotted identifier to :class:`Operation`."""

    __slots__ = ("version", "_operations", "_namespaces")

    def __init__(self, version: str, operations: Mapping[str, Operation]) -> None:
        namespaces = set()
        for identifier in operations:
            segments = identifier.split(".")
            for depth in range(1, len(segments)):
                namespaces.add(".".join(segments[:depth]))
        object.__setattr__(self, "version", version)
        object.__setattr__(self, "_operations", MappingProxyType(dict(operations)))
        object.__setattr__(self, "_namespaces", frozenset(namespaces))

    def __getitem__(self, identifier: str) -> Operation:
        return self._operations[identifier]

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._lookup(self, name)

    def __dir__(self) -> List[str]:
        return self._children("")

    def __repr__(self) -> str:
        return f"OperationTable(version={self.version!r}, operations={len(self)})"

    def _children(self, prefix: str) -> List[str]:
        start = f"{prefix}." if prefix else ""
        names = set()
        for identifier in list(self._operations) + list(self._namespaces):
            if identifier.startswith(start):
                rest = identifier[len(start):]
                if rest:
                    names.add(rest.split(".", 1)[0])
        return sorted(names)


# public attributes of the table itself; namespaces with these names are
# reachable through item access only
RESERVED_NAMES = frozenset(name for name in dir(OperationTable) if not name.startswith("_"))


def build_table(document: SchemaDocument, requester: Requester, *, method: str = "post") -> OperationTable:
    """Compile the qualifying operations of ``document`` into a table."""

    wanted = method.lower()
    operations: Dict[str, Operation] = {}
    for spec in document.operations:
        if spec.method != wanted:
            continue
        if any(not segment for segment in spec.identifier.split(".")):
            LOGGER.warning("Skipping malformed operation identifier %r", spec.identifier)
            continue
        if spec.identifier in operations:
            LOGGER.warning(
                "Duplicate operation identifier %s (%s); keeping %s",
                spec.identifier,
                spec.path,
                operations[spec.identifier].path,
            )
            continue
        operations[spec.identifier] = Operation(
            identifier=spec.identifier,
            method=spec.method,
            path=spec.path,
            requester=requester,
        )
    table = OperationTable(document.version, operations)
    clashes = sorted(set(operations) & table._namespaces)
    if clashes:
        LOGGER.warning("Operations shadow namespaces of the same name: %s", ", ".join(clashes))
    hidden = sorted({identifier.split(".", 1)[0] for identifier in operations} & RESERVED_NAMES)
    if hidden:
        LOGGER.warning(
            "Operation names %s collide with table attributes; use api[\"...\"] to reach them",
            ", ".join(hidden),
        )
    return table


class OperationDispatcher:
    """Fetches the schema once and hands out the compiled operation table."""

    def __init__(
        self,
        envelope: RequestEnvelope,
        *,
        schema_path: str = "/api/docs",
        operation_method: str = "post",
    ) -> None:
        self._envelope = envelope
        self._schema_path = schema_path
        self._operation_method = operation_method.lower()
        self._table: Optional[OperationTable] = None
        self._generation = 0
        self._resolve_task: Optional[asyncio.Task[OperationTable]] = None

    @property
    def resolved(self) -> bool:
        return self._table is not None

    async def resolve(self) -> OperationTable:
        """Return the operation table, fetching the schema on first use.

        Concurrent callers share one in-flight fetch. A failed fetch is not
        remembered; the next call starts a new one.
        """

        if self._table is not None:
            return self._table
        task = self._resolve_task
        if task is None or task.done():
            task = asyncio.create_task(self._load(self._generation), name="schema-resolve")
            task.add_done_callback(self._on_resolved)
            self._resolve_task = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._resolve_task is task:
                self._resolve_task = None

    def reset(self) -> None:
        """Forget the compiled table so the next resolve refetches the schema."""

        self._generation += 1
        self._table = None
        self._resolve_task = None

    async def _load(self, generation: int) -> OperationTable:
        LOGGER.debug("Fetching schema document from %s", self._schema_path)
        raw = await self._envelope.request("get", self._schema_path)
        document = SchemaDocument.parse(raw)
        table = build_table(document, self._envelope.request, method=self._operation_method)
        if generation == self._generation:
            self._table = table
        LOGGER.info("Resolved %s operations (service version %s)", len(table), table.version)
        return table

    @staticmethod
    def _on_resolved(task: asyncio.Task[OperationTable]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Schema fetch failed: %s", exc)
