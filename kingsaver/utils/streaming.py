"""Byte streams for downloads, consumed chunk by chunk by the HTTP layer.

Nothing happens when a stream object is created. The process is spawned (or
the request sent) on first iteration, and every failure surfaces as a
``DownloadStreamError`` raised from the iteration, since by then part of the
media may already have been delivered.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator
from urllib.parse import urlparse

import aiohttp
import structlog

from kingsaver.config import settings
from kingsaver.errors import DownloadStreamError
from kingsaver.utils.cookies import cookie_header_for, ensure_cookies_file
from kingsaver.utils.ytdlp import DESKTOP_USER_AGENT

logger = structlog.get_logger()


def quality_format_spec(selector: str | None) -> str:
    """Translate "hd" / "sd" / an explicit format id into a yt-dlp -f spec."""
    if not selector:
        return "best"
    if selector == "hd":
        return "best[height>=720]/best"
    if selector == "sd":
        return "best[height<720]/worst"
    return f"{selector}/best"


class ProcessStream:
    """stdout of an extractor process writing media to ``-o -``."""

    content_type = "video/mp4"

    def __init__(self, command: list[str], chunk_size: int | None = None) -> None:
        self.command = command
        self.chunk_size = chunk_size or settings.stream_chunk_size

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[bytes]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("stream_spawn_failed", binary=self.command[0], error=str(exc))
            raise DownloadStreamError(f"could not start {self.command[0]}: {exc}") from exc

        # stderr is drained concurrently so a chatty process never blocks on it
        stderr_task = asyncio.ensure_future(proc.stderr.read())
        sent = 0
        try:
            while True:
                chunk = await proc.stdout.read(self.chunk_size)
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk

            returncode = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
            if returncode != 0:
                logger.error(
                    "stream_process_failed",
                    returncode=returncode,
                    bytes_sent=sent,
                    stderr=stderr[-2000:],
                )
                raise DownloadStreamError(f"{self.command[0]} exited with code {returncode}")
            logger.info("stream_finished", bytes_sent=sent)
        finally:
            if proc.returncode is None:
                logger.info("stream_aborted", bytes_sent=sent)
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()


class HttpStream:
    """Direct GET of a media URL, passing the body through as it arrives."""

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
        chunk_size: int | None = None,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self.session = session
        self.chunk_size = chunk_size or settings.stream_chunk_size
        self.content_type: str | None = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[bytes]:
        session = self.session
        own_session = session is None
        if own_session:
            session = aiohttp.ClientSession()

        try:
            async with session.get(
                self.url,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=settings.request_timeout_seconds
                ),
            ) as resp:
                resp.raise_for_status()
                self.content_type = resp.headers.get("Content-Type")
                async for chunk in resp.content.iter_chunked(self.chunk_size):
                    yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("http_stream_failed", url=self.url, error=str(exc))
            raise DownloadStreamError(f"fetching {self.url} failed: {exc}") from exc
        finally:
            if own_session:
                await session.close()


def open_direct_stream(url: str, session: aiohttp.ClientSession | None = None) -> HttpStream:
    """Stream *url* directly, sending session cookies for its domain when configured."""
    headers = {"User-Agent": DESKTOP_USER_AGENT}
    host = urlparse(url).hostname or ""
    cookie = cookie_header_for(ensure_cookies_file(), host)
    if cookie:
        headers["Cookie"] = cookie
    return HttpStream(url, headers=headers, session=session)
