"""Read-through cache for per-user task listings.

Keys are ``user_{id}_tasks_{status}_search_{md5(search)}``. Every task write
for a user calls :func:`invalidate_task_lists`, which drops the fixed
per-status keys and then everything under the user's ``user_{id}_tasks_``
prefix, so search-qualified listings never outlive a write.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import threading
import time
from typing import Any, Callable, Protocol, TypeVar

logger = logging.getLogger("taskhub.cache")

T = TypeVar("T")

LIST_STATUSES = ("all", "pending", "in_progress", "completed")


class CacheStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...

    def delete(self, *keys: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


class MemoryCacheStore:
    """In-process TTL cache; each operation is atomic under one lock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._data[key] = (now + ttl, copy.deepcopy(value))

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for key in doomed:
                del self._data[key]
            return len(doomed)

    def _purge_expired(self, now: float) -> None:
        # caller holds the lock; keys that are never read again go here
        for key in [k for k, (expires_at, _) in self._data.items() if expires_at <= now]:
            del self._data[key]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


# --- Key derivation ---------------------------------------------------------


def user_task_prefix(user_id: int) -> str:
    return f"user_{user_id}_tasks_"


def task_list_cache_key(user_id: int, status: str | None = None, search: str | None = None) -> str:
    """Deterministic key for one (user, status, search) listing."""
    digest = hashlib.md5((search or "").encode("utf-8")).hexdigest()
    return f"{user_task_prefix(user_id)}{status or 'all'}_search_{digest}"


# --- Operations -------------------------------------------------------------


def read_through(store: CacheStore, key: str, ttl: int, loader: Callable[[], T]) -> T:
    """Return the cached value for `key`, loading and storing it on a miss.

    A loader returning None is not cached.
    """
    cached = store.get(key)
    if cached is not None:
        logger.debug("cache hit key=%s", key)
        return cached
    logger.debug("cache miss key=%s", key)
    value = loader()
    if value is not None:
        store.set(key, value, ttl)
    return value


def invalidate(store: CacheStore, *keys: str) -> None:
    store.delete(*keys)


def invalidate_task_lists(store: CacheStore, user_id: int) -> None:
    """Drop every cached task listing of `user_id`, whatever the filter."""
    invalidate(store, *(task_list_cache_key(user_id, status) for status in LIST_STATUSES))
    dropped = store.delete_prefix(user_task_prefix(user_id))
    logger.debug("invalidated task lists user_id=%s search_keys=%s", user_id, dropped)
