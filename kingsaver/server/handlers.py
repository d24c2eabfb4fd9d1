from __future__ import annotations

import json
import time
from typing import Callable

import aiohttp
import structlog
from aiohttp import web

from kingsaver.errors import DownloadStreamError, ErrorKind, InvalidPlatformURL
from kingsaver.models import FailureResult, MediaQuery
from kingsaver.scrapers.base import BaseScraper
from kingsaver.server.middlewares import VisitRecorder
from kingsaver.utils.cache import ResultCache
from kingsaver.utils.formatters import extension_for_content_type, header_filename
from kingsaver.utils.link_detector import Platform
from kingsaver.utils.streaming import HttpStream, ProcessStream, open_direct_stream
from kingsaver.utils.zip_bundle import stream_zip

logger = structlog.get_logger()

routes = web.RouteTableDef()

SCRAPERS_KEY = web.AppKey("scrapers", dict)
CACHE_KEY = web.AppKey("cache", ResultCache)
VISITS_KEY = web.AppKey("visits", VisitRecorder)
SESSION_KEY = web.AppKey("http_session", aiohttp.ClientSession)

# Client-supplied file names are cut to these lengths
PROXY_FILENAME_MAX = 10
ZIP_FILENAME_MAX = 50


def _scraper_for(request: web.Request) -> tuple[Platform, BaseScraper]:
    try:
        platform = Platform(request.match_info["platform"].lower())
    except ValueError:
        raise web.HTTPNotFound(text="Unsupported platform") from None
    return platform, request.app[SCRAPERS_KEY][platform]


async def _read_url(request: web.Request) -> str | None:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return None
    if not isinstance(body, dict):
        return None
    url = body.get("url")
    return url.strip() if isinstance(url, str) and url.strip() else None


def _attachment(filename: str) -> str:
    return f'attachment; filename="{filename}"'


async def _info(request: web.Request, platform: Platform) -> web.Response:
    url = await _read_url(request)
    if url is None:
        return web.json_response({"error": "URL is required"}, status=400)

    query = MediaQuery(url=url, platform=platform)
    result = await request.app[SCRAPERS_KEY][query.platform].resolve(query.url)
    if isinstance(result, FailureResult):
        status = 400 if result.kind == ErrorKind.INVALID_URL else 500
        return web.json_response(result.to_dict(), status=status)
    return web.json_response(result.to_dict())


async def _pipe(
    request: web.Request,
    stream: ProcessStream | HttpStream,
    filename_for: Callable[[str | None], str],
) -> web.StreamResponse:
    """Relay *stream* to the client.

    The first chunk is pulled before any header goes out, so a stream that
    fails straight away still gets a proper 500. A failure after that can
    only be signalled by dropping the connection.
    """
    chunks = aiter(stream)
    try:
        try:
            first = await anext(chunks)
        except StopAsyncIteration:
            first = b""
        except DownloadStreamError as exc:
            logger.error("download_failed", path=request.path, error=exc.detail)
            return web.Response(status=500, text=exc.user_message)

        content_type = stream.content_type or "application/octet-stream"
        response = web.StreamResponse(
            headers={
                "Content-Type": content_type,
                "Content-Disposition": _attachment(filename_for(content_type)),
            }
        )
        await response.prepare(request)

        sent = len(first)
        try:
            if first:
                await response.write(first)
            async for chunk in chunks:
                await response.write(chunk)
                sent += len(chunk)
        except DownloadStreamError as exc:
            logger.error("download_interrupted", path=request.path, bytes_sent=sent, error=exc.detail)
            if request.transport is not None:
                request.transport.close()
            return response
        except ConnectionResetError:
            logger.info("client_disconnected", path=request.path, bytes_sent=sent)
            return response

        await response.write_eof()
        return response
    finally:
        await chunks.aclose()


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "status": "ok",
            "platforms": sorted(request.app[SCRAPERS_KEY]),
            "cached_results": len(request.app[CACHE_KEY]),
        }
    )


@routes.post("/api/info")
async def tiktok_info(request: web.Request) -> web.Response:
    """TikTok lookups predate the per-platform routes and keep their own path."""
    return await _info(request, Platform.TIKTOK)


@routes.post("/api/{platform}/info")
async def platform_info(request: web.Request) -> web.Response:
    platform, _ = _scraper_for(request)
    return await _info(request, platform)


@routes.get("/api/{platform}/download")
async def platform_download(request: web.Request) -> web.StreamResponse:
    """Stream the media for ``?url=`` through the extractor.

    ``itag`` picks an exact format id; otherwise ``quality`` may be "hd" or "sd".
    """
    platform, scraper = _scraper_for(request)
    url = request.query.get("url", "").strip()
    if not url:
        return web.Response(status=400, text="URL is required")

    selector = request.query.get("itag") or request.query.get("quality")
    try:
        stream = scraper.open_stream(url, selector)
    except InvalidPlatformURL as exc:
        return web.Response(status=400, text=exc.user_message)

    filename = f"king_saver_{platform}_{int(time.time() * 1000)}.mp4"
    return await _pipe(request, stream, lambda _content_type: filename)


@routes.get("/api/download")
async def proxy_download(request: web.Request) -> web.StreamResponse:
    """Pass a direct media URL through, so the browser saves it instead of playing it."""
    url = request.query.get("url", "").strip()
    if not url:
        return web.Response(status=400, text="URL is required")

    base = header_filename(request.query.get("filename"), "video", PROXY_FILENAME_MAX)
    stream = open_direct_stream(url, session=request.app[SESSION_KEY])
    return await _pipe(
        request, stream, lambda content_type: base + extension_for_content_type(content_type)
    )


@routes.get("/api/download-zip")
async def download_zip(request: web.Request) -> web.StreamResponse:
    urls = [u.strip() for u in request.query.getall("urls", []) if u.strip()]
    if not urls:
        return web.Response(status=400, text="URLs are required")

    name = header_filename(request.query.get("filename"), "images", ZIP_FILENAME_MAX)
    response = web.StreamResponse(
        headers={
            "Content-Type": "application/zip",
            "Content-Disposition": _attachment(f"{name}.zip"),
        }
    )
    await response.prepare(request)

    logger.info("zip_started", count=len(urls))
    try:
        async for chunk in stream_zip(urls, request.app[SESSION_KEY]):
            await response.write(chunk)
    except ConnectionResetError:
        logger.info("client_disconnected", path=request.path)
        return response
    await response.write_eof()
    return response
