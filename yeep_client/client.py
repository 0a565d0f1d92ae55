"""Client facade wiring transport, envelope, dispatcher and session."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from yeep_client.config import AuthType, ClientSettings
from yeep_client.errors import ValidationError
from yeep_client.network.cancellation import CancelRegistry
from yeep_client.network.dispatcher import OperationDispatcher, OperationTable
from yeep_client.network.envelope import ErrorObserver, RequestEnvelope
from yeep_client.network.transport.base import BaseTransport
from yeep_client.network.transport.requests_transport import RequestsTransport
from yeep_client.session.manager import SessionManager
from yeep_client.session.strategies import STRATEGIES, SessionStrategy

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[ClientSettings], BaseTransport]


@dataclass
class YeepClient:
    """Entry point: ``await client.api()`` for operations, ``client.session`` for auth.

    Every instance owns its transport, cancel registry, operation table and
    session; nothing is shared between clients.
    """

    settings: ClientSettings
    transport_factory: TransportFactory = RequestsTransport
    on_error: Optional[ErrorObserver] = None

    transport: BaseTransport = field(init=False, repr=False)
    envelope: RequestEnvelope = field(init=False, repr=False)
    dispatcher: OperationDispatcher = field(init=False, repr=False)
    strategy: SessionStrategy = field(init=False, repr=False)
    session: SessionManager = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.on_error is not None and not callable(self.on_error):
            raise ValidationError(
                "on_error",
                f'Invalid "on_error" property; expected callable, received {type(self.on_error).__name__}',
            )
        auth_type = self.settings.resolved_auth_type
        self.transport = self.transport_factory(self.settings)
        self.envelope = RequestEnvelope(
            self.transport,
            header_provider=self._auth_headers,
            cancel_registry=CancelRegistry(),
            on_error=self.on_error,
        )
        self.dispatcher = OperationDispatcher(
            self.envelope,
            schema_path=self.settings.schema_path,
            operation_method=self.settings.operation_method,
        )
        self.strategy = STRATEGIES[auth_type](self.dispatcher)
        self.session = SessionManager(self.strategy, self.settings)
        LOGGER.debug(
            "Initialised client for %s (auth=%s, transport=%s)",
            self.settings.base_url,
            auth_type,
            type(self.transport).__name__,
        )

    @classmethod
    def create(
        cls,
        base_url: str,
        *,
        auth_type: Optional[AuthType] = None,
        on_error: Optional[ErrorObserver] = None,
        transport_factory: TransportFactory = RequestsTransport,
        **overrides: Any,
    ) -> YeepClient:
        settings = ClientSettings(base_url=base_url, auth_type=auth_type, **overrides)
        return cls(settings=settings, transport_factory=transport_factory, on_error=on_error)

    @property
    def auth_type(self) -> str:
        return self.strategy.name

    async def api(self) -> OperationTable:
        """Return the operation table, discovering it on first use."""

        return await self.dispatcher.resolve()

    def cancel(self, key: str) -> bool:
        """Abort the in-flight request issued with ``cancel_key=key``."""

        return self.envelope.cancel(key)

    async def close(self) -> None:
        await self.session.close()
        self.envelope.cancel_all()
        await self.transport.close()

    def _auth_headers(self) -> dict[str, str]:
        return self.strategy.headers()
