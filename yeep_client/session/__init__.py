"""Session lifecycle: state, strategies and the refresh-driving manager."""

from .manager import EVENTS, RefreshTimer, SessionManager
from .state import SessionKind, SessionState, SessionTracker
from .strategies import STRATEGIES, BearerStrategy, CookieStrategy, SessionStrategy
from .tokens import DecodedToken, decode_token

__all__ = [
    "EVENTS",
    "RefreshTimer",
    "SessionManager",
    "SessionKind",
    "SessionState",
    "SessionTracker",
    "STRATEGIES",
    "SessionStrategy",
    "BearerStrategy",
    "CookieStrategy",
    "DecodedToken",
    "decode_token",
]
