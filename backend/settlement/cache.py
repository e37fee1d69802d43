# Overview: App-owned read cache over a cachetools TTL store, with explicit prefix invalidation.

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from cachetools import TTLCache

logger = logging.getLogger(__name__)

_MISSING = object()


class ReadCache:
    """
    In-process TTL cache for read paths (sale lookup, slip search).

    Owned by the app, not by module state: `init_app` binds the TTL and size
    from config and registers the instance on `app.extensions["read_cache"]`.
    Writers call `invalidate_prefix` after commit.
    """

    def __init__(self, ttl_seconds: int = 60, maxsize: int = 1024, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self.enabled = ttl_seconds > 0
        self._clock = clock
        self._lock = threading.Lock()
        self._store = self._new_store()

    def _new_store(self) -> TTLCache:
        return TTLCache(maxsize=self.maxsize, ttl=max(self.ttl_seconds, 1), timer=self._clock)

    def init_app(self, app) -> None:
        self.ttl_seconds = int(app.config.get("READ_CACHE_TTL_SECONDS", self.ttl_seconds))
        self.maxsize = int(app.config.get("READ_CACHE_MAXSIZE", self.maxsize))
        self.enabled = self.ttl_seconds > 0
        with self._lock:
            self._store = self._new_store()
        app.extensions["read_cache"] = self

    def get(self, key: str, default: Any = None) -> Any:
        if not self.enabled:
            return default
        with self._lock:
            return self._store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._store[key] = value

    def get_or_set(self, key: str, loader: Callable[[], Any]) -> Any:
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            logger.debug("Cache HIT: %s", key)
            return cached
        logger.debug("Cache MISS: %s", key)
        value = loader()
        self.set(key, value)
        return value

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in list(self._store.keys()) if k.startswith(prefix)]
            for key in doomed:
                self._store.pop(key, None)
        if doomed:
            logger.debug("Cache CLEARED: %s* (%d keys)", prefix, len(doomed))
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            self._store.expire()
            return len(self._store)
