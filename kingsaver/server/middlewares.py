from __future__ import annotations

import asyncio
import contextlib
import re
import time
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable

import structlog
from aiohttp import web

from kingsaver.utils.formatters import truncate
from kingsaver.utils.link_detector import Platform, detect_platform

logger = structlog.get_logger()

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_UNTRACKED_PATHS = frozenset({"/health", "/favicon.ico"})
_STATIC_ASSET = re.compile(r"\.(?:css|js|map|png|jpe?g|gif|svg|ico|webp|woff2?)$", re.IGNORECASE)


def platform_from_path(path: str) -> str:
    """Best-effort platform tag for a request path, "web" when none is named."""
    lowered = path.lower()
    for platform in Platform:
        if platform.value in lowered:
            return platform.value
    return "web"


def _visit_platform(request: web.Request) -> str:
    target = request.query.get("url")
    detected = detect_platform(target) if target else None
    return detected.value if detected else platform_from_path(request.path)


@dataclass(frozen=True)
class Visit:
    method: str
    path: str
    status: int
    platform: str
    ip: str | None
    user_agent: str | None


class VisitRecorder:
    """Fire-and-forget visit log.

    ``record`` only enqueues; a background task drains the queue and emits
    one ``visit_recorded`` event per visit. When the queue is full the visit
    is dropped and counted, the request is never held up.
    """

    def __init__(self, max_pending: int = 1000) -> None:
        self._queue: asyncio.Queue[Visit] = asyncio.Queue(maxsize=max_pending)
        self._worker: asyncio.Task | None = None
        self.dropped = 0

    def record(self, request: web.Request, status: int) -> None:
        if request.path in _UNTRACKED_PATHS or _STATIC_ASSET.search(request.path):
            return
        forwarded = request.headers.get("X-Forwarded-For")
        visit = Visit(
            method=request.method,
            path=request.path,
            status=status,
            platform=_visit_platform(request),
            ip=forwarded.split(",")[0].strip() if forwarded else request.remote,
            user_agent=request.headers.get("User-Agent"),
        )
        try:
            self._queue.put_nowait(visit)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("visit_dropped", path=request.path, dropped=self.dropped)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._drain())

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def _drain(self) -> None:
        while True:
            visit = await self._queue.get()
            logger.info("visit_recorded", **asdict(visit))
            self._queue.task_done()


def logging_middleware(recorder: VisitRecorder | None = None):
    """Log every request with structured context and hand it to *recorder*."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        start = time.monotonic()
        logger.info(
            "request_received",
            method=request.method,
            path=request.path,
            query_preview=truncate(request.query_string, 120) or None,
        )
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as exc:
            status = exc.status
            raise
        finally:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "request_handled",
                method=request.method,
                path=request.path,
                status=status,
                duration_ms=duration_ms,
            )
            if recorder is not None:
                recorder.record(request, status)

    return middleware
