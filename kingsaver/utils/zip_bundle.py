"""Assemble a ZIP of images on the fly, one source URL at a time.

Bytes are handed out after each entry is written, so the archive is never
held in memory as a whole. Sources that fail to download are skipped.
"""

from __future__ import annotations

import asyncio
import zipfile
from typing import AsyncIterator

import aiohttp
import structlog

from kingsaver.config import settings
from kingsaver.utils.formatters import extension_for_content_type

logger = structlog.get_logger()


class _ZipSink:
    """Write-only, non-seekable buffer that zipfile writes into."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


async def _fetch(session: aiohttp.ClientSession, url: str) -> tuple[bytes, str | None]:
    async with session.get(
        url,
        timeout=aiohttp.ClientTimeout(total=settings.request_timeout_seconds * 2),
    ) as resp:
        resp.raise_for_status()
        return await resp.read(), resp.headers.get("Content-Type")


async def stream_zip(
    urls: list[str],
    session: aiohttp.ClientSession,
    compresslevel: int | None = None,
) -> AsyncIterator[bytes]:
    """Yield ZIP archive bytes containing ``image_<n>.<ext>`` for each source URL."""
    sink = _ZipSink()
    level = compresslevel if compresslevel is not None else settings.zip_compression_level
    added = 0

    with zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=level) as archive:
        for index, url in enumerate(urls, start=1):
            try:
                data, content_type = await _fetch(session, url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.warning("zip_source_failed", url=url, index=index, error=str(exc))
                continue

            ext = extension_for_content_type(content_type, default=".jpg", images_only=True)
            archive.writestr(f"image_{index}{ext}", data)
            added += 1

            chunk = sink.drain()
            if chunk:
                yield chunk

    logger.info("zip_finalized", requested=len(urls), added=added)
    tail = sink.drain()
    if tail:
        yield tail
