from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import structlog

from kingsaver.config import settings
from kingsaver.errors import UpstreamAPIError

logger = structlog.get_logger()


async def fetch_tikwm(url: str, session: aiohttp.ClientSession | None = None) -> dict[str, Any]:
    """Call the TikWM API and return the post ``data`` dict.

    The API answers ``{"code": 0, "data": {...}}`` on success and a nonzero
    code with a ``msg`` otherwise.
    """
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()

    try:
        async with session.post(
            settings.tikwm_api_url,
            json={"url": url, "hd": 1},
            timeout=aiohttp.ClientTimeout(total=settings.request_timeout_seconds),
        ) as resp:
            resp.raise_for_status()
            payload = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise UpstreamAPIError(f"tikwm request failed: {exc}") from exc
    finally:
        if own_session:
            await session.close()

    if payload.get("code") != 0:
        msg = payload.get("msg") or "Failed to get video information"
        logger.warning("tikwm_api_error", url=url, code=payload.get("code"), msg=msg)
        raise UpstreamAPIError(f"tikwm API error: {msg}", user_message=f"API Error: {msg}")

    data = payload.get("data")
    if not data:
        raise UpstreamAPIError("tikwm API returned empty data")

    return data
