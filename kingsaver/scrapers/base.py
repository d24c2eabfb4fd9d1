from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import ClassVar

import aiohttp
import structlog

from kingsaver.errors import (
    ErrorKind,
    ExtractionFatal,
    ExtractionNoVideo,
    ResolutionError,
    ScrapeFailed,
)
from kingsaver.models import ExtractionResult, FailureResult, SlideshowResult, VideoResult
from kingsaver.utils.cache import ResultCache
from kingsaver.utils.html_fallback import scrape_fallback
from kingsaver.utils.link_detector import Platform, validate_url
from kingsaver.utils.normalizer import RawMetadata, SourceKind, normalize
from kingsaver.utils.streaming import ProcessStream, quality_format_spec
from kingsaver.utils.url_expander import expand_url
from kingsaver.utils.ytdlp import YtdlpExtractor

logger = structlog.get_logger()


class BaseScraper(ABC):
    """Resolution pipeline shared by every platform.

    validate -> expand -> cache check -> extract (-> fallback scrape) ->
    normalize -> post-process -> cache store. Steps run strictly in order.
    Subclasses must implement `platform`; they may override `_fetch_raw`
    (where metadata comes from) and `_postprocess` (platform touch-ups).
    """

    label: ClassVar[str] = "Video"

    def __init__(
        self,
        cache: ResultCache,
        extractor: YtdlpExtractor,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.cache = cache
        self.extractor = extractor
        self.session = session

    @property
    @abstractmethod
    def platform(self) -> Platform: ...

    async def resolve(self, url: str) -> ExtractionResult:
        """Resolve *url* into a result. Never raises; failures become FailureResult."""
        start = time.monotonic()
        url = url.strip()
        try:
            validate_url(url, self.platform)
            expanded = await expand_url(url, self.platform, session=self.session)

            cached = self.cache.get(url)
            if cached is not None:
                logger.info("cache_hit", platform=self.platform, url=url)
                return cached

            raw = await self._fetch_raw(expanded)
            result = self._postprocess(normalize(raw, url, self.platform))
            self.cache.put(url, result)
        except ResolutionError as exc:
            duration_ms = int((time.monotonic() - start) * 1000)
            log = logger.info if exc.kind == ErrorKind.INVALID_URL else logger.error
            log(
                "resolution_failed",
                platform=self.platform,
                url=url,
                kind=exc.kind,
                error=exc.detail,
                duration_ms=duration_ms,
            )
            return FailureResult(kind=exc.kind, message=exc.user_message)
        except Exception as exc:
            logger.exception("resolution_crashed", platform=self.platform, url=url, error=str(exc))
            return FailureResult(kind=ErrorKind.INTERNAL, message=ResolutionError.user_message)

        logger.info(
            "media_resolved",
            platform=self.platform,
            url=url,
            media_type=result.media_type,
            source=raw.source,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result

    async def _fetch_raw(self, url: str) -> RawMetadata:
        """yt-dlp first; on a "no video" answer, exactly one HTML fallback scrape."""
        outcome = await self.extractor.dump_json(url)
        if outcome.ok:
            return RawMetadata(SourceKind.YTDLP, outcome.data)

        if not outcome.no_video:
            raise ExtractionFatal(outcome.message, returncode=outcome.returncode)

        logger.info("no_video_found_trying_fallback", platform=self.platform, url=url)
        try:
            data = await scrape_fallback(url, label=self.label, session=self.session)
        except ScrapeFailed as exc:
            logger.warning("fallback_scrape_failed", platform=self.platform, url=url, error=exc.detail)
            # Report the extractor's answer, not the scraper's
            raise ExtractionNoVideo(outcome.message) from exc
        return RawMetadata(SourceKind.SCRAPER, data)

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        return result

    def open_stream(self, url: str, quality: str | None = None) -> ProcessStream:
        """Validate, then hand back an unstarted extractor stream for *url*.

        Raises InvalidPlatformURL synchronously; everything else surfaces
        while the stream is being consumed.
        """
        validate_url(url, self.platform)
        command = self.extractor.stream_command(url, quality_format_spec(quality))
        logger.info("download_stream_opened", platform=self.platform, url=url, quality=quality)
        return ProcessStream(command)
