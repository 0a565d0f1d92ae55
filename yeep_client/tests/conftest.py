from __future__ import annotations

from typing import Any, Callable, Dict

import jwt
import pytest

from yeep_client.config import ClientSettings
from yeep_client.network.dispatcher import OperationDispatcher
from yeep_client.network.envelope import RequestEnvelope
from yeep_client.network.transport.dummy import DummyTransport
from yeep_client.session.manager import SessionManager
from yeep_client.session.strategies import STRATEGIES

BASE_URL = "http://demo.yeep.com"
NOW = 1_700_000_000.0
SESSION_OPERATIONS = (
    "session.issueToken",
    "session.destroyToken",
    "session.refreshToken",
    "session.setCookie",
    "session.destroyCookie",
    "session.refreshCookie",
)


def op_path(identifier: str) -> str:
    return f"/api/{identifier}"


def schema_document(*identifiers: str, version: str = "1.0.0") -> Dict[str, Any]:
    paths: Dict[str, Any] = {"/api/docs": {"get": {"operationId": "docs"}}}
    for identifier in identifiers or ("widget.info", "role.info", "user.list") + SESSION_OPERATIONS:
        paths[op_path(identifier)] = {"post": {"operationId": identifier}}
    return {"openapi": "3.0.0", "info": {"title": "demo", "version": version}, "paths": paths}


def make_token(exp: float, **payload: Any) -> str:
    return jwt.encode({"exp": int(exp), "payload": payload or {"user": "coyote"}}, "shhhhh", algorithm="HS256")


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(base_url=BASE_URL, refresh_retry_jitter=0.0)


@pytest.fixture
def transport() -> DummyTransport:
    dummy = DummyTransport()
    dummy.route("GET", "/api/docs", schema_document())
    return dummy


@pytest.fixture
def build_manager(transport: DummyTransport) -> Callable[..., SessionManager]:
    """Assemble envelope, dispatcher, strategy and manager around ``transport``."""

    def _build(
        settings: ClientSettings | None = None,
        *,
        auth_type: str = "bearer",
        clock: Callable[[], float] = lambda: NOW,
    ) -> SessionManager:
        resolved = settings or ClientSettings(base_url=BASE_URL, refresh_retry_jitter=0.0)
        strategy_box: list = []
        envelope = RequestEnvelope(transport, header_provider=lambda: strategy_box[0].headers())
        dispatcher = OperationDispatcher(envelope)
        strategy = STRATEGIES[auth_type](dispatcher)
        strategy_box.append(strategy)
        return SessionManager(strategy, resolved, clock=clock)

    return _build
