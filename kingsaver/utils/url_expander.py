"""Resolve share/short links to the canonical post URL.

Expansion is best-effort: a link that cannot be resolved is returned as-is
and the extractor gets a chance with the original URL.
"""

from __future__ import annotations

import asyncio

import aiohttp
import structlog

from kingsaver.config import settings
from kingsaver.errors import ExpansionFailed
from kingsaver.utils.link_detector import Platform, is_short_link

logger = structlog.get_logger()


async def _follow(session: aiohttp.ClientSession, method: str, url: str) -> str:
    async with session.request(
        method,
        url,
        allow_redirects=True,
        max_redirects=settings.max_redirects,
        timeout=aiohttp.ClientTimeout(total=settings.request_timeout_seconds),
    ) as resp:
        if not 200 <= resp.status < 400:
            raise ExpansionFailed(f"{method} {url} returned HTTP {resp.status}")
        return str(resp.url)


async def expand_url(
    url: str,
    platform: Platform,
    session: aiohttp.ClientSession | None = None,
) -> str:
    """Follow redirects for known short-link shapes, HEAD first then GET."""
    if not is_short_link(url, platform):
        return url

    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()

    try:
        for method in ("HEAD", "GET"):
            try:
                expanded = await _follow(session, method, url)
            except (aiohttp.ClientError, asyncio.TimeoutError, ExpansionFailed) as exc:
                logger.debug("url_expansion_attempt_failed", url=url, method=method, error=str(exc))
                continue
            logger.info("url_expanded", url=url, expanded=expanded, method=method)
            return expanded
    finally:
        if own_session:
            await session.close()

    logger.warning("url_expansion_failed", url=url, platform=platform)
    return url
