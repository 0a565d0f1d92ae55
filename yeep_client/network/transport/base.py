"""Transport abstractions for the remote service."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Mapping, Optional, TypeVar

from yeep_client.errors import RequestCancelledError
from yeep_client.network.cancellation import CancelHandle

T = TypeVar("T")


@dataclass(frozen=True)
class RawResponse:
    """Decoded HTTP response handed back by a transport."""

    status_code: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)


class BaseTransport(ABC):
    """Executes one HTTP request against the remote service."""

    @abstractmethod
    async def send(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str],
        body: Any = None,
        cancel: Optional[CancelHandle] = None,
    ) -> RawResponse:
        ...

    async def close(self) -> None:
        return None


async def race_cancel(awaitable: Awaitable[T], cancel: Optional[CancelHandle]) -> T:
    """Await ``awaitable`` unless ``cancel`` fires first."""

    if cancel is None:
        return await awaitable
    if cancel.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCancelledError(cancel.reason or "request cancelled")
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()
    if work.done():
        return work.result()
    work.cancel()
    raise RequestCancelledError(cancel.reason or "request cancelled")
