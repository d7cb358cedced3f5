"""Thread-safe time-bounded key-value store.

Purpose:
    Backing store for every process-local cache in the service: live sessions,
    per-session conversation buffers and fallback continuity records. Components
    built on it stay storage-agnostic: they only see `get`/`set`/`delete`.

Expiry model:
    - Each entry carries its own deadline (`set` time + ttl).
    - Reads check the deadline lazily and drop stale entries on access.
    - `sweep()` removes all stale entries; the API lifespan calls it periodically.
    - Writing an existing key restarts its ttl; reading does not.

Concurrency:
    Every operation holds a single `threading.Lock`, so each call is atomic per
    key. Read-modify-write sequences spanning two calls are not serialized.
"""

import threading
import time
from typing import Any, Callable, Iterator


class ExpiringStore:
    """Dictionary with per-entry time-to-live."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, deadline = entry
            if deadline <= self._clock():
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Apply `fn` to the live value (or `default`) and store the result.

        Runs under the store lock, so concurrent `update` calls on one key do not
        interleave. Returns the stored value.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            current = default
            if entry is not None and entry[1] > now:
                current = entry[0]
            value = fn(current)
            self._entries[key] = (value, now + self.ttl_seconds)
            return value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def contains(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [key for key, (_, deadline) in self._entries.items() if deadline <= now]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def keys(self) -> Iterator[str]:
        with self._lock:
            now = self._clock()
            live = [key for key, (_, deadline) in self._entries.items() if deadline > now]
        return iter(live)

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())

    def __contains__(self, key: str) -> bool:
        return self.contains(key)


_MISSING = object()
