"""Cooperative cancellation handles keyed by logical request."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

LOGGER = logging.getLogger(__name__)


class CancelHandle:
    """One-shot signal telling the transport to abort an in-flight request."""

    def __init__(self, key: Optional[str] = None) -> None:
        self.key = key
        self.reason: Optional[str] = None
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "request cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancelHandle(key={self.key!r}, cancelled={self.cancelled})"


class CancelRegistry:
    """Keeps at most one outstanding handle per request key."""

    def __init__(self) -> None:
        self._handles: Dict[str, CancelHandle] = {}

    def issue(self, key: str) -> CancelHandle:
        """Return a fresh handle for ``key``, cancelling the previous one first."""

        previous = self._handles.pop(key, None)
        if previous is not None:
            LOGGER.debug("Superseding in-flight request for key %s", key)
            previous.cancel(f"superseded by a newer request for {key!r}")
        handle = CancelHandle(key)
        self._handles[key] = handle
        return handle

    def release(self, key: str, handle: CancelHandle) -> None:
        """Forget ``handle`` once its request settled; newer handles are kept."""

        if self._handles.get(key) is handle:
            del self._handles[key]

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)
