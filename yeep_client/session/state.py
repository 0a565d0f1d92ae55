"""Session state tracking for a client instance."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from yeep_client.errors import StateError


class SessionKind(enum.Enum):
    """Tag of the live session variant."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    BEARER = "BEARER"
    COOKIE = "COOKIE"


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot; transitions replace the whole object."""

    kind: SessionKind = SessionKind.UNAUTHENTICATED
    token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None

    @classmethod
    def unauthenticated(cls) -> SessionState:
        return cls()

    @classmethod
    def bearer(cls, token: str, expires_at: datetime) -> SessionState:
        return cls(kind=SessionKind.BEARER, token=token, expires_at=expires_at)

    @classmethod
    def cookie(cls) -> SessionState:
        return cls(kind=SessionKind.COOKIE)

    @property
    def authenticated(self) -> bool:
        return self.kind is not SessionKind.UNAUTHENTICATED


@dataclass
class SessionTracker:
    """Holds the single live :class:`SessionState` and validates transitions."""

    state: SessionState = field(default_factory=SessionState.unauthenticated)
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: SessionState) -> None:
        """Swap in ``next_state``, validating the allowed transitions."""

        if not self._is_valid_transition(self.state.kind, next_state.kind):
            raise StateError(f"Invalid session transition {self.state.kind.value} → {next_state.kind.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    @staticmethod
    def _is_valid_transition(current: SessionKind, nxt: SessionKind) -> bool:
        allowed = {
            SessionKind.UNAUTHENTICATED: {SessionKind.BEARER, SessionKind.COOKIE},
            SessionKind.BEARER: {SessionKind.BEARER, SessionKind.UNAUTHENTICATED},
            SessionKind.COOKIE: {SessionKind.COOKIE, SessionKind.UNAUTHENTICATED},
        }
        return nxt in allowed.get(current, set())
