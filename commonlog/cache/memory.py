"""
In-process cache: thread-safe key/value store with per-entry expiry.

Expired entries are evicted lazily on read and by a periodic APScheduler sweep,
so keys that are never read again don't accumulate.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from commonlog.config import settings

logger = structlog.get_logger()


class Cache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: float | None) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass
class _Entry:
    value: str
    expires_at: float | None  # None = never


class InMemoryCache:
    def __init__(
        self,
        sweep_interval: float | None = None,
        start_sweeper: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._data: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval or settings.CACHE_SWEEP_INTERVAL
        self._scheduler: BackgroundScheduler | None = None
        if start_sweeper:
            self.start()

    def start(self):
        """Start the background expiry sweep."""
        if self._scheduler:
            return
        self._scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1},
            daemon=True,
        )
        self._scheduler.add_job(
            self.cleanup_expired,
            trigger=IntervalTrigger(seconds=self._sweep_interval),
            id="commonlog-cache-sweep",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.debug("cache.sweeper_started", interval=self._sweep_interval)

    def close(self):
        """Stop the background sweep. Cached data stays readable."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.debug("cache.sweeper_stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _expired(self, entry: _Entry, now: float) -> bool:
        return entry.expires_at is not None and now >= entry.expires_at

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: str, ttl: float | None) -> None:
        expires_at = None if ttl is None else self._clock() + ttl
        with self._lock:
            self._data[key] = _Entry(value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def cleanup_expired(self) -> int:
        """Remove every expired entry. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._data.items() if self._expired(e, now)]
            for key in expired:
                del self._data[key]
        if expired:
            logger.info("cache.cleaned_up", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data


# Process-wide default, created on first use
_global_cache: Cache | None = None
_global_lock = threading.Lock()


def get_global_cache() -> Cache:
    global _global_cache
    with _global_lock:
        if _global_cache is None:
            _global_cache = InMemoryCache()
        return _global_cache


def set_global_cache(cache: Cache):
    """Swap the shared cache (tests, or an external client with the same interface)."""
    global _global_cache
    with _global_lock:
        _global_cache = cache


def close_global_cache():
    global _global_cache
    with _global_lock:
        if isinstance(_global_cache, InMemoryCache):
            _global_cache.close()
        _global_cache = None
