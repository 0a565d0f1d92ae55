"""Request envelope: auth headers, cancellation and error normalization.

Every call to the remote service, including the schema fetch, passes through
:class:`RequestEnvelope`. The service convention is that each decoded body
carries ``ok``; a body with ``ok: false`` is turned into :class:`ServiceError`.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional

from pydantic import BaseModel

from yeep_client.errors import RequestCancelledError, ServiceError, TransportError, YeepError
from yeep_client.network.cancellation import CancelRegistry
from yeep_client.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)

ErrorObserver = Callable[[YeepError], Awaitable[None] | None]
HeaderProvider = Callable[[], Mapping[str, str]]

BASE_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def payload_dict(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_none=True, by_alias=True)
    return payload


def normalize_error(data: Mapping[str, Any]) -> ServiceError:
    """Build a :class:`ServiceError` from an ``ok: false`` body."""

    error = data.get("error")
    if not isinstance(error, Mapping):
        return ServiceError("Service reported a failure without error details")
    message = error.get("message")
    if not isinstance(message, str) or not message:
        message = "Service reported a failure"
    return ServiceError(message, error.get("code"), error.get("details"))


class RequestEnvelope:
    """Wraps transport calls with the cross-cutting request concerns."""

    def __init__(
        self,
        transport: BaseTransport,
        *,
        header_provider: Optional[HeaderProvider] = None,
        cancel_registry: Optional[CancelRegistry] = None,
        on_error: Optional[ErrorObserver] = None,
    ) -> None:
        self.transport = transport
        self.header_provider = header_provider
        self.cancel_registry = cancel_registry or CancelRegistry()
        self.on_error = on_error

    async def request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        *,
        cancel_key: Optional[str] = None,
    ) -> Any:
        headers = dict(BASE_HEADERS)
        if self.header_provider is not None:
            headers.update(self.header_provider())
        handle = self.cancel_registry.issue(cancel_key) if cancel_key else None
        try:
            response = await self.transport.send(
                method,
                path,
                headers=headers,
                body=payload_dict(payload),
                cancel=handle,
            )
            data = response.data
            if isinstance(data, Mapping) and data.get("ok") is False:
                raise normalize_error(data)
            return data
        except RequestCancelledError:
            LOGGER.debug("Request %s %s cancelled", method.upper(), path)
            raise
        except (ServiceError, TransportError) as exc:
            LOGGER.debug("Request %s %s failed: %r", method.upper(), path, exc)
            await self._notify(exc)
            raise
        finally:
            if handle is not None:
                self.cancel_registry.release(cancel_key, handle)

    def cancel(self, key: str) -> bool:
        """Abort the in-flight request issued under ``key``."""

        return self.cancel_registry.cancel(key)

    def cancel_all(self) -> None:
        self.cancel_registry.cancel_all()

    async def _notify(self, exc: YeepError) -> None:
        if self.on_error is None:
            return
        try:
            result = self.on_error(exc)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            LOGGER.exception("Error observer failed for %r", exc)
