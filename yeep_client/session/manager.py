"""Session lifecycle manager.

Owns the live session (through its strategy), the single refresh timer and the
listeners notified about lifecycle events. Bearer sessions are renewed
unattended shortly before the token expires; a failed renewal is reported on
the ``error`` event and retried with exponential backoff until it succeeds or
the caller logs out. Cookie sessions expire server-side, so no timer is kept for
them.

Events and listener arguments:

- ``login``: the value returned by the strategy (token payload or response)
- ``hydrate``: the new :class:`SessionState`
- ``refresh``: the value returned by the strategy
- ``logout``: no arguments
- ``error``: the exception raised by an automatic refresh
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from yeep_client.config import ClientSettings
from yeep_client.errors import StateError, ValidationError
from yeep_client.session.concurrency import ConcurrencyGuard
from yeep_client.session.state import SessionKind, SessionState
from yeep_client.session.strategies import SessionStrategy

LOGGER = logging.getLogger(__name__)

EVENTS = frozenset({"login", "hydrate", "refresh", "logout", "error"})
SESSION_KEY = "session"

Listener = Callable[..., Awaitable[None] | None]


@dataclass
class RefreshTimer:
    """The one pending refresh of a manager."""

    delay: float
    retries: int
    due_at: float
    handle: asyncio.TimerHandle = field(repr=False, compare=False)


class SessionManager:
    """Drives login/logout/hydrate and the unattended refresh loop."""

    def __init__(
        self,
        strategy: SessionStrategy,
        settings: ClientSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.strategy = strategy
        self._clock = clock
        self._margin = float(settings.refresh_margin_seconds)
        self._retry_floor = float(settings.refresh_retry_floor_seconds)
        self._retry_max = float(settings.refresh_retry_max_delay_seconds)
        self._jitter = float(settings.refresh_retry_jitter)
        self._visibility_tracking = settings.resolved_visibility_tracking
        self._guard = ConcurrencyGuard()
        self._timer: Optional[RefreshTimer] = None
        self._hidden = False
        # the shared strategy refresh, joined by manual and timer-driven callers
        self._refresh_task: Optional[asyncio.Task[Any]] = None
        self._auto_task: Optional[asyncio.Task[None]] = None
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    @property
    def state(self) -> SessionState:
        return self.strategy.state

    @property
    def authenticated(self) -> bool:
        return self.strategy.state.authenticated

    @property
    def refresh_timer(self) -> Optional[RefreshTimer]:
        return self._timer

    def headers(self) -> Dict[str, str]:
        return self.strategy.headers()

    # Caller-facing lifecycle

    async def login(self, credentials: Mapping[str, Any]) -> Any:
        with self._guard.acquire(SESSION_KEY):
            result = await self.strategy.login(credentials)
            if self.strategy.tracks_expiry:
                self._schedule(self._delay_after_login())
        await self._emit("login", result)
        return result

    async def logout(self) -> None:
        with self._guard.acquire(SESSION_KEY):
            # the timer goes even when the remote call below fails
            self.cancel_refresh()
            await self.strategy.logout()
        await self._emit("logout")

    async def hydrate(self, props: Mapping[str, Any]) -> None:
        with self._guard.acquire(SESSION_KEY):
            self.strategy.hydrate(props)
            if self.strategy.tracks_expiry:
                self._schedule(self._delay_until_expiry())
        await self._emit("hydrate", self.strategy.state)

    async def refresh(self) -> Any:
        """Refresh on demand; errors are raised to the caller.

        A refresh already in flight (manual or timer-driven) is joined rather
        than repeated, so only one ``refreshToken`` call is made per token.
        """

        task = self._start_refresh()
        if task is asyncio.current_task():
            raise StateError("refresh() cannot be awaited from a refresh listener")
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise StateError("Session refresh was aborted before it completed") from None
            raise

    def handle_visibility_change(self, visible: bool) -> None:
        """React to the host page being hidden or shown again.

        While hidden no refresh is scheduled, including the reschedule of a
        refresh that was already in flight when the page went away.
        """

        if not self._visibility_tracking:
            return
        if not visible:
            LOGGER.debug("Host hidden; pausing session refresh")
            self._hidden = True
            self._cancel_timer()
            return
        self._hidden = False
        if self._timer is not None or self._refreshing():
            return
        if self.strategy.tracks_expiry and self.strategy.state.kind is SessionKind.BEARER:
            LOGGER.debug("Host visible again; refreshing session now")
            self._schedule(0.0)

    def cancel_refresh(self) -> None:
        """Drop the pending timer and abort any refresh in flight."""

        self._cancel_timer()
        current = asyncio.current_task()
        for task in (self._auto_task, self._refresh_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._auto_task = None
        self._refresh_task = None

    async def close(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in (self._auto_task, self._refresh_task) if task is not None and task is not current]
        self.cancel_refresh()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # Listeners

    def add_listener(self, event: str, listener: Listener) -> None:
        if event not in EVENTS:
            raise ValidationError("event", f"Unknown session event {event!r}; expected one of {sorted(EVENTS)}")
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    async def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                LOGGER.exception("Session %s listener failed: %s", event, listener)

    # Refresh scheduling

    def _delay_after_login(self) -> float:
        expires_at = self.strategy.expires_at
        assert expires_at is not None
        return max(0.0, expires_at.timestamp() - self._clock() - self._margin)

    def _delay_until_expiry(self) -> float:
        expires_at = self.strategy.expires_at
        assert expires_at is not None
        remaining = expires_at.timestamp() - self._clock()
        delay = remaining if remaining < self._margin else remaining - self._margin
        return max(0.0, delay)

    def _retry_delay(self, previous: float) -> float:
        delay = min(self._retry_max, (previous or self._retry_floor) * 2)
        if self._jitter:
            delay *= random.uniform(1 - self._jitter, 1 + self._jitter)
        return max(self._retry_floor, delay)

    def _schedule(self, delay: float, retries: int = 0) -> None:
        self._cancel_timer()
        if self._hidden:
            LOGGER.debug("Host hidden; session refresh deferred until visible")
            return
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, self._fire, delay, retries)
        self._timer = RefreshTimer(delay=delay, retries=retries, due_at=loop.time() + delay, handle=handle)
        LOGGER.debug("Next session refresh in %.2fs (retry %s)", delay, retries)

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.handle.cancel()

    def _refreshing(self) -> bool:
        return any(task is not None and not task.done() for task in (self._auto_task, self._refresh_task))

    def _start_refresh(self) -> asyncio.Task[Any]:
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._perform_refresh(), name="session-refresh")
            task.add_done_callback(self._on_refresh_done)
            self._refresh_task = task
        return task

    def _on_refresh_done(self, task: asyncio.Task[Any]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    def _fire(self, delay: float, retries: int) -> None:
        self._timer = None
        self._auto_task = asyncio.get_running_loop().create_task(
            self._auto_refresh(delay, retries),
            name="session-auto-refresh",
        )

    async def _auto_refresh(self, delay: float, retries: int) -> None:
        try:
            await asyncio.shield(self._start_refresh())
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if self.strategy.state.kind is SessionKind.BEARER:
                next_delay = self._retry_delay(delay)
                LOGGER.warning(
                    "Session refresh failed (attempt %s): %s; retrying in %.2fs",
                    retries + 1,
                    exc,
                    next_delay,
                )
                self._schedule(next_delay, retries + 1)
            else:
                LOGGER.warning("Session refresh failed after the session ended: %s", exc)
            await self._emit("error", exc)
        finally:
            if self._auto_task is asyncio.current_task():
                self._auto_task = None

    async def _perform_refresh(self) -> Any:
        result = await self.strategy.refresh()
        if self.strategy.tracks_expiry:
            self._schedule(self._delay_until_expiry())
        await self._emit("refresh", result)
        return result
