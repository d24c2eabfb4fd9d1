from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from typing import Callable

import structlog

from kingsaver.config import settings
from kingsaver.models import SlideshowResult, VideoResult

logger = structlog.get_logger()

CachedResult = VideoResult | SlideshowResult


@dataclass
class CacheEntry:
    result: CachedResult
    created_at: float


class ResultCache:
    """In-memory TTL cache of resolved results, keyed by the URL as submitted.

    Reads always re-check the entry age, so the periodic sweep only bounds
    memory. Construct one per process and pass it to every resolver.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        sweep_interval_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self._sweep_interval = (
            sweep_interval_seconds
            if sweep_interval_seconds is not None
            else settings.cache_sweep_interval_seconds
        )
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._store)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at >= self._ttl

    def get(self, url: str) -> CachedResult | None:
        entry = self._store.get(url)
        if entry is None or self._expired(entry, self._clock()):
            return None
        return entry.result

    def put(self, url: str, result: CachedResult) -> None:
        self._store[url] = CacheEntry(result=result, created_at=self._clock())

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        expired = [k for k, v in self._store.items() if self._expired(v, now)]
        for k in expired:
            del self._store[k]
        if expired:
            logger.debug("cache_swept", removed=len(expired), remaining=len(self._store))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None
