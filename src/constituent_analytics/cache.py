"""
Read-through caching for the expensive aggregate reports.

Backends store JSON-compatible values with a per-entry TTL. They are plain
synchronous objects; ``read_through`` calls them from a worker thread and never
lets a backend failure fail the request.
"""

from __future__ import annotations

import asyncio
import functools
import hashlib
import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from .config import CacheConfig
from .errors import CacheError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def cache_key(namespace: str, *parts: Any) -> str:
    return ":".join([namespace, *(str(part) for part in parts)])


class CachePort:
    """get/set-with-TTL; ``get`` returns ``None`` on a miss."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise CacheError(f"Value for {key} is not JSON serialisable", key=key) from exc


class MemoryCache(CachePort):
    """Process-local TTL map. Entries are kept as JSON text so callers never share mutable values."""

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.time):
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._store: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None
            expires_at, payload = entry
            if self._clock() >= expires_at:
                self._store.pop(key, None)
                return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = _encode(key, value)
        with self._lock:
            self._store.pop(key, None)
            if len(self._store) >= self.max_entries:
                self._evict()
            self._store[key] = (self._clock() + ttl_seconds, payload)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def _evict(self) -> None:
        now = self._clock()
        for stale in [key for key, (expires_at, _) in self._store.items() if expires_at <= now]:
            del self._store[stale]
        while len(self._store) >= self.max_entries:
            # oldest insertion first
            del self._store[next(iter(self._store))]

    def __len__(self) -> int:
        return len(self._store)


class LocalFileCache(CachePort):
    """One JSON file per key under ``directory``."""

    def __init__(self, directory: str, clock: Callable[[], float] = time.time):
        self.base_dir = Path(directory).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheError(f"Unreadable cache entry for {key}", key=key) from exc
        if not isinstance(record, dict) or record.get("key") != key:
            return None
        if self._clock() >= float(record.get("expires_at", 0)):
            path.unlink(missing_ok=True)
            return None
        return record.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        _encode(key, value)
        record = {"key": key, "expires_at": self._clock() + ttl_seconds, "value": value}
        try:
            self._entry_path(key).write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"Could not write cache entry for {key}", key=key) from exc

    def clear(self) -> None:
        for path in self.base_dir.glob("*.json"):
            path.unlink(missing_ok=True)

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]
        return self.base_dir / f"{self._sanitize_key(key)[:80]}-{digest}.json"

    @staticmethod
    def _sanitize_key(value: str) -> str:
        sanitized = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in value)
        return sanitized or "entry"


class NullCache(CachePort):
    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None

    def clear(self) -> None:
        return None


class SafeCache(CachePort):
    """Turns backend failures into misses so the cache can never fail a request."""

    def __init__(self, inner: CachePort):
        self.inner = inner

    def get(self, key: str) -> Optional[Any]:
        try:
            return self.inner.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            self.inner.set(key, value, ttl_seconds)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def clear(self) -> None:
        try:
            self.inner.clear()
        except Exception as exc:
            logger.warning("Cache clear failed: %s", exc)


def build_cache(config: CacheConfig) -> CachePort:
    if not config.enable or config.backend == "none":
        return NullCache()
    if config.backend == "local":
        try:
            return SafeCache(LocalFileCache(config.directory))
        except OSError as exc:
            logger.warning("Local cache directory %s unavailable, caching disabled: %s", config.directory, exc)
            return NullCache()
    return SafeCache(MemoryCache(max_entries=config.max_entries))


async def read_through(
    cache: CachePort, key: str, ttl_seconds: int, compute: Callable[[], Awaitable[T]]
) -> T:
    """Return the cached value for ``key``, or compute, store and return it."""
    safe = cache if isinstance(cache, SafeCache) else SafeCache(cache)
    hit = await asyncio.to_thread(safe.get, key)
    if hit is not None:
        logger.debug("Cache hit for %s", key)
        return hit
    value = await compute()
    await asyncio.to_thread(safe.set, key, value, ttl_seconds)
    return value


def cached(cache: CachePort, key: Callable[..., str], ttl_seconds: int):
    """Decorate a coroutine function so calls go through ``read_through``."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await read_through(cache, key(*args, **kwargs), ttl_seconds, lambda: func(*args, **kwargs))

        return wrapper

    return decorator
