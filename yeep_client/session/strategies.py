"""Session strategies: how credentials become an authenticated context."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from yeep_client.errors import DecodeError, SchemaError, StateError, ValidationError
from yeep_client.network.dispatcher import Operation, OperationDispatcher, OperationTable
from yeep_client.session.state import SessionKind, SessionState, SessionTracker
from yeep_client.session.tokens import decode_token

LOGGER = logging.getLogger(__name__)

ISSUE_TOKEN = "session.issueToken"
DESTROY_TOKEN = "session.destroyToken"
REFRESH_TOKEN = "session.refreshToken"
SET_COOKIE = "session.setCookie"
DESTROY_COOKIE = "session.destroyCookie"
REFRESH_COOKIE = "session.refreshCookie"


def _type_name(value: Any) -> str:
    return "None" if value is None else type(value).__name__


def validate_credentials(credentials: Any) -> Dict[str, Any]:
    """Check ``user`` then ``password``; return a plain dict copy."""

    if not isinstance(credentials, Mapping):
        raise ValidationError(
            "credentials",
            f'Invalid "credentials" argument; expected mapping, received {_type_name(credentials)}',
        )
    for name in ("user", "password"):
        value = credentials.get(name)
        if not isinstance(value, str):
            raise ValidationError(
                name,
                f'Invalid "{name}" property; expected string, received {_type_name(value)}',
            )
    return dict(credentials)


def _operation(api: OperationTable, identifier: str) -> Operation:
    try:
        return api[identifier]
    except KeyError:
        raise SchemaError(f"Service does not expose the {identifier} operation") from None


def _token_from(response: Any) -> str:
    token = response.get("token") if isinstance(response, Mapping) else None
    if not isinstance(token, str) or not token:
        raise DecodeError("Service response did not include a session token")
    return token


class SessionStrategy(ABC):
    """Capability set shared by every session variant."""

    name: ClassVar[str]
    tracks_expiry: ClassVar[bool] = False

    def __init__(self, dispatcher: OperationDispatcher, tracker: Optional[SessionTracker] = None) -> None:
        self._dispatcher = dispatcher
        self._tracker = tracker or SessionTracker()

    @property
    def state(self) -> SessionState:
        return self._tracker.state

    @property
    def tracker(self) -> SessionTracker:
        return self._tracker

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._tracker.state.expires_at

    @abstractmethod
    async def login(self, credentials: Mapping[str, Any]) -> Any:
        ...

    @abstractmethod
    async def logout(self) -> None:
        ...

    @abstractmethod
    async def refresh(self) -> Any:
        ...

    @abstractmethod
    def hydrate(self, props: Mapping[str, Any]) -> None:
        ...

    def headers(self) -> Dict[str, str]:
        return {}


class BearerStrategy(SessionStrategy):
    """Token-in-header sessions; the token expiry is tracked locally."""

    name = "bearer"
    tracks_expiry = True

    async def login(self, credentials: Mapping[str, Any]) -> Any:
        """Issue a session token and return the payload embedded in it."""

        if self.state.token:
            raise StateError("Session token already exists; did you forget to call logout()?")
        body = validate_credentials(credentials)
        api = await self._dispatcher.resolve()
        response = await _operation(api, ISSUE_TOKEN)(body)
        token = _token_from(response)
        decoded = decode_token(token)
        self._tracker.transition(SessionState.bearer(token, decoded.expires_at))
        LOGGER.info("Bearer session issued (expires %s)", decoded.expires_at.isoformat())
        return decoded.payload

    async def logout(self) -> None:
        """Destroy the session token; local state is cleared only on success."""

        token = self.state.token
        if not token:
            raise StateError("Session token not found; there is no active session to destroy")
        api = await self._dispatcher.resolve()
        await _operation(api, DESTROY_TOKEN)({"token": token})
        self._tracker.transition(SessionState.unauthenticated())
        LOGGER.info("Bearer session destroyed")

    def hydrate(self, props: Mapping[str, Any]) -> None:
        """Adopt an externally persisted token without contacting the service."""

        if self.state.token:
            raise StateError("Session token already exists; you cannot hydrate an existing session")
        if not isinstance(props, Mapping):
            raise ValidationError(
                "props",
                f'Invalid "props" argument; expected mapping, received {_type_name(props)}',
            )
        token = props.get("token")
        if not isinstance(token, str):
            raise ValidationError(
                "token",
                f'Invalid "token" property; expected string, received {_type_name(token)}',
            )
        decoded = decode_token(token)
        self._tracker.transition(SessionState.bearer(token, decoded.expires_at))
        LOGGER.info("Bearer session hydrated (expires %s)", decoded.expires_at.isoformat())

    async def refresh(self) -> Any:
        token = self.state.token
        if not token:
            raise StateError("Session token not found; there is no active session to refresh")
        api = await self._dispatcher.resolve()
        response = await _operation(api, REFRESH_TOKEN)({"token": token})
        new_token = _token_from(response)
        decoded = decode_token(new_token)
        if self.state.token != token:
            raise StateError("Session changed while the refresh was in flight")
        self._tracker.transition(SessionState.bearer(new_token, decoded.expires_at))
        LOGGER.info("Bearer session refreshed (expires %s)", decoded.expires_at.isoformat())
        return decoded.payload

    def headers(self) -> Dict[str, str]:
        token = self.state.token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}


class CookieStrategy(SessionStrategy):
    """Server-side sessions carried by the transport's cookie jar."""

    name = "cookie"

    async def login(self, credentials: Mapping[str, Any]) -> Any:
        body = validate_credentials(credentials)
        api = await self._dispatcher.resolve()
        response = await _operation(api, SET_COOKIE)(body)
        self._enter_cookie_state()
        LOGGER.info("Cookie session set")
        return response

    async def logout(self) -> None:
        api = await self._dispatcher.resolve()
        await _operation(api, DESTROY_COOKIE)()
        if self.state.authenticated:
            self._tracker.transition(SessionState.unauthenticated())
        LOGGER.info("Cookie session destroyed")

    async def refresh(self) -> Any:
        api = await self._dispatcher.resolve()
        response = await _operation(api, REFRESH_COOKIE)()
        self._enter_cookie_state()
        return response

    def hydrate(self, props: Mapping[str, Any]) -> None:
        raise StateError("Cookie sessions cannot be hydrated; the session lives server-side")

    def _enter_cookie_state(self) -> None:
        if self.state.kind is not SessionKind.COOKIE:
            self._tracker.transition(SessionState.cookie())


STRATEGIES: Dict[str, type[SessionStrategy]] = {
    BearerStrategy.name: BearerStrategy,
    CookieStrategy.name: CookieStrategy,
}
