from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple


class SubtitleCache(Protocol):
    """What the fetcher and search need from a cache backend."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...


class TTLCache:
    """Very small in-memory cache with optional TTL semantics.

    ``default_ttl=None`` keeps entries until the process exits. Optionally
    bounds the number of items via ``max_size``. When the cache exceeds
    ``max_size`` on set(), expired entries go first, then the ones closest
    to expiry (entries without expiry last).
    """

    def __init__(self, default_ttl: Optional[float] = None, max_size: int | None = None) -> None:
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._lock = threading.Lock()
        self._store: Dict[str, Tuple[float, Any]] = {}

    def _now(self) -> float:
        return time.time()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            expiry, value = item
            if expiry < self._now():
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl_value = self._default_ttl if ttl is None else ttl
        expiry = float("inf") if ttl_value is None else self._now() + ttl_value
        with self._lock:
            self._store[key] = (expiry, value)
            if self._max_size is not None and len(self._store) > self._max_size:
                self._prune()

    def _prune(self) -> None:
        now = self._now()
        expired_keys = [k for k, (exp, _v) in self._store.items() if exp < now]
        for k in expired_keys:
            if len(self._store) <= self._max_size:
                break
            self._store.pop(k, None)
        if len(self._store) > self._max_size:
            by_expiry = sorted(self._store.items(), key=lambda kv: kv[1][0])
            to_remove = len(self._store) - self._max_size
            for i in range(to_remove):
                self._store.pop(by_expiry[i][0], None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class SingleFlight:
    """Share one in-flight computation between concurrent callers of a key.

    Callers await the same task instead of holding a lock; the entry is
    dropped as soon as the task settles, so results are never kept here.
    """

    def __init__(self) -> None:
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: str, producer: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._forget(k, _t))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
