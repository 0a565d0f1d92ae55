"""Configuration primitives for the client."""

from .settings import AuthType, ClientSettings, get_settings

__all__ = ["AuthType", "ClientSettings", "get_settings"]
