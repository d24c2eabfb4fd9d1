"""Best-effort rescue for posts yt-dlp says have no video (photo posts, carousels).

The page is fetched with mobile-browser headers, then Open Graph tags and the
responsive-image JSON blobs embedded in the markup are mined for image URLs.

Known limitation: the two ``config_width``/``src`` scans run one after the
other and their matches are concatenated, so the final image order only
approximates the slideshow order.
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any

import aiohttp
import structlog

from kingsaver.config import settings
from kingsaver.errors import ScrapeFailed
from kingsaver.utils.opengraph import parse_opengraph

logger = structlog.get_logger()

_MOBILE_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 10; SM-G960F) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Mobile Safari/537.36"
)

# Servers hand richer markup to requests that look like a real mobile browser
_BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": _MOBILE_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Upgrade-Insecure-Requests": "1",
}

# Responsive image blobs list width and src in either order
_WIDTH_THEN_SRC = re.compile(r'"config_width"\s*:\s*(\d+)[^}]*?"src"\s*:\s*"([^"]+)"')
_SRC_THEN_WIDTH = re.compile(r'"src"\s*:\s*"([^"]+)"[^}]*?"config_width"\s*:\s*(\d+)')
_DISPLAY_URL = re.compile(r'"display_url"\s*:\s*"([^"]+)"')

HIGH_RES_WIDTH = 1000
MIN_WIDTH = 640


@dataclass(frozen=True)
class ImageCandidate:
    url: str
    width: int


def _dbg(event: str, **kwargs: object) -> None:
    """Log at info level when debug_mode is on, otherwise debug."""
    if settings.debug_mode:
        logger.info(event, **kwargs)
    else:
        logger.debug(event, **kwargs)


def _unescape(url: str) -> str:
    return url.replace("\\u0026", "&").replace("\\/", "/")


def collect_candidates(html: str) -> list[ImageCandidate]:
    """Scan the whole document for width/src pairs, width-first pass then src-first pass."""
    candidates = [
        ImageCandidate(url=_unescape(m.group(2)), width=int(m.group(1)))
        for m in _WIDTH_THEN_SRC.finditer(html)
    ]
    candidates.extend(
        ImageCandidate(url=_unescape(m.group(1)), width=int(m.group(2)))
        for m in _SRC_THEN_WIDTH.finditer(html)
    )
    return candidates


def _dedupe(urls: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            unique.append(url)
    return unique


def select_images(
    candidates: list[ImageCandidate],
    html: str,
    og_images: list[str],
    limit: int | None = None,
) -> list[str]:
    """Pick the best image set, degrading resolution only when nothing better exists.

    Tiers: >=1000px, >=640px, ``display_url`` entries, any candidate, the first og:image.
    Scan order is preserved inside the chosen tier.
    """
    limit = limit or settings.max_fallback_images
    max_width = max((c.width for c in candidates), default=0)

    images: list[str] = []
    if max_width >= HIGH_RES_WIDTH:
        images = [c.url for c in candidates if c.width >= HIGH_RES_WIDTH]
    elif max_width >= MIN_WIDTH:
        images = [c.url for c in candidates if c.width >= MIN_WIDTH]

    if not images:
        images = [_unescape(m.group(1)) for m in _DISPLAY_URL.finditer(html)]
    if not images:
        images = [c.url for c in candidates]
    if not images:
        images = og_images[:1]

    _dbg(
        "fallback_images_selected",
        candidates=len(candidates),
        max_width=max_width,
        selected=len(images),
    )
    return _dedupe(images)[:limit]


def build_fallback(
    url: str,
    html: str,
    label: str = "Instagram",
    now: float | None = None,
) -> dict[str, Any]:
    """Build a scraper-shaped metadata dict from page HTML.

    An og:video tag means the post really is a video that yt-dlp missed.
    Raises ScrapeFailed when neither a video nor any image can be found.
    """
    og = parse_opengraph(html)
    stamp = int((now if now is not None else time.time()) * 1000)
    uploader = f"{label} User"
    uploader_id = f"{label.lower()}_user"

    if og.video:
        _dbg("fallback_og_video_found", url=url)
        return {
            "type": "video",
            "id": f"video_{stamp}",
            "title": og.title or f"{label} Video",
            "description": og.description,
            "thumbnail": og.image,
            "play": og.video,
            "uploader": uploader,
            "uploader_id": uploader_id,
        }

    images = select_images(collect_candidates(html), html, og.images)
    if not images:
        raise ScrapeFailed(f"no image metadata found in {url}")

    return {
        "type": "slideshow",
        "id": f"image_{stamp}",
        "title": og.title or f"{label} Photo",
        "description": og.description,
        "thumbnail": images[0],
        "images": images,
        "uploader": uploader,
        "uploader_id": uploader_id,
    }


async def fetch_page(url: str, session: aiohttp.ClientSession | None = None) -> str:
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()
    try:
        async with session.get(
            url,
            headers=_BROWSER_HEADERS,
            timeout=aiohttp.ClientTimeout(total=settings.request_timeout_seconds),
            allow_redirects=True,
        ) as resp:
            resp.raise_for_status()
            return await resp.text(encoding="utf-8", errors="ignore")
    finally:
        if own_session:
            await session.close()


async def scrape_fallback(
    url: str,
    label: str = "Instagram",
    session: aiohttp.ClientSession | None = None,
) -> dict[str, Any]:
    """Fetch *url* and recover video/image metadata from its markup."""
    _dbg("fallback_scrape_start", url=url)
    try:
        html = await fetch_page(url, session=session)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise ScrapeFailed(f"fetching {url} failed: {exc}") from exc

    return build_fallback(url, html, label=label)
