"""TTLCache — bounded-freshness memoization with single-flight loading.

Used to memoize provider health results. Concurrent callers asking for the
same stale key share one in-flight load instead of queueing behind a lock,
so a slow probe never serializes health queries.
"""
import asyncio
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Hashable

import structlog

log = structlog.get_logger()


class TTLCache:
    """Key/value cache whose entries expire ``ttl`` seconds after being set.

    The clock is injectable (defaults to ``time.monotonic``) so expiry can be
    driven deterministically from tests.
    """

    def __init__(
        self,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 128,
    ):
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self.ttl = ttl
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._inflight: dict[Hashable, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock(), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            log.debug("cache.evicted", key=str(evicted))

    def invalidate(self, key: Hashable | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_load(
        self, key: Hashable, loader: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value for ``key`` or load it exactly once.

        Failed loads are not cached; every waiter sees the exception.
        """
        missing = object()
        value = self.get(key, missing)
        if value is not missing:
            return value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            self._inflight[key] = task
        # shield: one waiter being cancelled must not kill the shared load
        return await asyncio.shield(task)

    async def _load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await loader()
            self.set(key, value)
            return value
        finally:
            self._inflight.pop(key, None)
