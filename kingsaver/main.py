from __future__ import annotations

import logging
import sys
from typing import AsyncIterator

import aiohttp
import structlog
from aiohttp import web

from kingsaver.config import settings
from kingsaver.scrapers import build_scrapers
from kingsaver.server.handlers import (
    CACHE_KEY,
    SCRAPERS_KEY,
    SESSION_KEY,
    VISITS_KEY,
    routes,
)
from kingsaver.server.middlewares import VisitRecorder, logging_middleware
from kingsaver.utils.cache import ResultCache
from kingsaver.utils.cookies import ensure_cookies_file
from kingsaver.utils.ytdlp import YtdlpExtractor


def configure_logging() -> None:
    """Set up structlog with JSON rendering for production, pretty for dev."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if sys.stderr.isatty()
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def _background(app: web.Application) -> AsyncIterator[None]:
    log = structlog.get_logger()
    session = aiohttp.ClientSession()
    app[SESSION_KEY] = session
    for scraper in app[SCRAPERS_KEY].values():
        scraper.session = session
    app[CACHE_KEY].start()
    app[VISITS_KEY].start()
    log.info("server_ready", platforms=sorted(app[SCRAPERS_KEY]))

    yield

    await app[VISITS_KEY].stop()
    await app[CACHE_KEY].stop()
    await session.close()
    log.info("server_stopped")


def create_app(
    extractor: YtdlpExtractor | None = None,
    cache: ResultCache | None = None,
) -> web.Application:
    """Build the web application. Dependencies can be injected for tests."""
    if extractor is None:
        extractor = YtdlpExtractor(cookies_file=ensure_cookies_file())
    cache = cache if cache is not None else ResultCache()
    recorder = VisitRecorder()

    app = web.Application(middlewares=[logging_middleware(recorder)])
    app[CACHE_KEY] = cache
    app[VISITS_KEY] = recorder
    app[SCRAPERS_KEY] = build_scrapers(cache, extractor)
    app.cleanup_ctx.append(_background)
    app.add_routes(routes)
    return app


def main() -> None:
    configure_logging()
    log = structlog.get_logger()
    log.info("starting_server", host=settings.host, port=settings.port, log_level=settings.log_level)
    web.run_app(create_app(), host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
