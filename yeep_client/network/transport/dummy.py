"""In-memory transport for offline use and tests."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from yeep_client.errors import TransportError
from yeep_client.network.cancellation import CancelHandle
from yeep_client.network.transport.base import BaseTransport, RawResponse, race_cancel

LOGGER = logging.getLogger(__name__)

Reply = Any


@dataclass(frozen=True)
class TransportCall:
    method: str
    path: str
    headers: Mapping[str, str]
    body: Any


class DummyTransport(BaseTransport):
    """Answers requests from registered routes and records every call.

    A reply may be a decoded body, a ``RawResponse``, an exception instance to
    raise, or a callable ``(body, headers)`` returning any of those (optionally
    awaitable). Replies queued with ``once=True`` are consumed before the
    persistent reply for the same route.
    """

    def __init__(self, settings=None, *, latency: float = 0.0) -> None:
        self._settings = settings
        self.latency = latency
        self.calls: List[TransportCall] = []
        self.closed = False
        self._routes: Dict[Tuple[str, str], Reply] = {}
        self._once: Dict[Tuple[str, str], Deque[Reply]] = defaultdict(deque)

    def route(self, method: str, path: str, reply: Reply, *, once: bool = False) -> None:
        key = (method.upper(), path)
        if once:
            self._once[key].append(reply)
        else:
            self._routes[key] = reply

    def calls_to(self, path: str) -> List[TransportCall]:
        return [call for call in self.calls if call.path == path]

    async def send(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str],
        body: Any = None,
        cancel: Optional[CancelHandle] = None,
    ) -> RawResponse:
        call = TransportCall(method=method.upper(), path=path, headers=dict(headers), body=body)
        self.calls.append(call)
        LOGGER.debug("Dummy transport send(): %s %s", call.method, path)
        return await race_cancel(self._respond(call), cancel)

    async def close(self) -> None:
        LOGGER.debug("Dummy transport close()")
        self.closed = True

    async def _respond(self, call: TransportCall) -> RawResponse:
        if self.latency:
            await asyncio.sleep(self.latency)
        key = (call.method, call.path)
        pending = self._once.get(key)
        if pending:
            reply = pending.popleft()
        elif key in self._routes:
            reply = self._routes[key]
        else:
            raise TransportError(f"No route for {call.method} {call.path}", status_code=404)
        if callable(reply) and not isinstance(reply, BaseException):
            reply = reply(call.body, call.headers)
            if inspect.isawaitable(reply):
                reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, RawResponse):
            return reply
        return RawResponse(status_code=200, data=reply)
