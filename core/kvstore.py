"""Key-value store used for throttling counters and short-lived caches.

Callers never talk to a module-level dict directly. They obtain the active
store through :func:`get_kv_store`, which is built from the
``KV_STORE_BACKEND`` setting and can be replaced with :func:`set_kv_store`
(tests inject a fresh in-memory store this way).

The interface mirrors the subset of Django's cache API that DRF throttles
rely on, so a store can be assigned to a throttle's ``cache`` attribute.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from django.conf import settings
from django.core.cache import caches

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, timeout: Optional[float] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def incr(self, key: str, delta: int = 1, timeout: Optional[float] = None) -> int: ...

    def clear(self) -> None: ...


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]


class InMemoryKeyValueStore:
    """Process-local store with per-key expiry guarded by a lock."""

    def __init__(self, clock=time.monotonic):
        self._data: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live_entry(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            return default if entry is None else entry.value

    def set(self, key: str, value: Any, timeout: Optional[float] = None) -> None:
        with self._lock:
            expires_at = None if timeout is None else self._clock() + timeout
            self._data[key] = _Entry(value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def incr(self, key: str, delta: int = 1, timeout: Optional[float] = None) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                expires_at = None if timeout is None else self._clock() + timeout
                entry = _Entry(0, expires_at)
                self._data[key] = entry
            entry.value += delta
            return entry.value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class DjangoCacheKeyValueStore:
    """Store backed by a configured Django cache, shared between workers."""

    def __init__(self, alias: str = "default"):
        self._cache = caches[alias]

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def set(self, key: str, value: Any, timeout: Optional[float] = None) -> None:
        self._cache.set(key, value, timeout)

    def delete(self, key: str) -> None:
        self._cache.delete(key)

    def incr(self, key: str, delta: int = 1, timeout: Optional[float] = None) -> int:
        # add() is a no-op when the key exists, so the first writer sets the TTL
        self._cache.add(key, 0, timeout)
        return self._cache.incr(key, delta)

    def clear(self) -> None:
        self._cache.clear()


_store: Optional[KeyValueStore] = None
_store_lock = threading.Lock()


def build_kv_store(backend: Optional[str] = None) -> KeyValueStore:
    """Create a store for ``backend`` (``memory`` or ``django-cache``)."""

    backend = backend or getattr(settings, "KV_STORE_BACKEND", "memory")
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "django-cache":
        return DjangoCacheKeyValueStore()
    raise ValueError(f"Unknown KV_STORE_BACKEND: {backend!r}")


def get_kv_store() -> KeyValueStore:
    """Return the active store, building it on first use."""

    global _store
    with _store_lock:
        if _store is None:
            _store = build_kv_store()
            logger.debug("Key-value store initialised: %s", type(_store).__name__)
        return _store


def set_kv_store(store: Optional[KeyValueStore]) -> None:
    """Replace the active store. ``None`` rebuilds from settings on next use."""

    global _store
    with _store_lock:
        _store = store


__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "DjangoCacheKeyValueStore",
    "build_kv_store",
    "get_kv_store",
    "set_kv_store",
]
