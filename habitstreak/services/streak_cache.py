"""
Streak cache port.

The cache only ever holds copies of what the Streak Record Store returned;
dropping it (restart, clear(), NullStreakCache) never loses data. Values
must be immutable snapshots, never live ORM objects.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Hashable, Optional, Protocol

DEFAULT_TTL_SECONDS = 5 * 60


class StreakCache(Protocol):
    def get(self, key: Hashable) -> Optional[Any]: ...

    def set(self, key: Hashable, value: Any) -> None: ...

    def invalidate(self, key: Hashable) -> None: ...

    def clear(self) -> None: ...


class TTLStreakCache:
    """In-process dict with a fixed time-to-live per entry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullStreakCache:
    """Caching disabled: every lookup falls through to the store."""

    def get(self, key: Hashable) -> Optional[Any]:
        return None

    def set(self, key: Hashable, value: Any) -> None:
        pass

    def invalidate(self, key: Hashable) -> None:
        pass

    def clear(self) -> None:
        pass
