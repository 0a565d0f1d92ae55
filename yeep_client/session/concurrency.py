"""Single-flight guard for session operations."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Set

from yeep_client.errors import StateError


class ConcurrencyGuard:
    """Tracks in-flight keys and rejects overlapping calls for the same key."""

    def __init__(self) -> None:
        self._inflight: Set[str] = set()

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        if key in self._inflight:
            raise StateError(f"A {key} operation is already in progress")
        self._inflight.add(key)
        try:
            yield
        finally:
            self._inflight.discard(key)
