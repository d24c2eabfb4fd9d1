from __future__ import annotations

import dataclasses

import structlog

from kingsaver.models import SlideshowResult, VideoResult
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.link_detector import Platform, extract_video_id
from kingsaver.utils.normalizer import DEFAULT_TITLE, RawMetadata, SourceKind
from kingsaver.utils.tikwm import fetch_tikwm

logger = structlog.get_logger()


class TikTokScraper(BaseScraper):
    label = "TikTok"

    @property
    def platform(self) -> Platform:
        return Platform.TIKTOK

    async def _fetch_raw(self, url: str) -> RawMetadata:
        """Use the TikWM API (handles both photo posts and videos)."""
        if extract_video_id(url) is None:
            # Not fatal: TikWM often copes with the URL as given
            logger.warning("tiktok_video_id_missing", url=url)

        data = await fetch_tikwm(url, session=self.session)
        return RawMetadata(SourceKind.TIKWM, data)

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        if result.title == DEFAULT_TITLE:
            return dataclasses.replace(result, title="TikTok Video")
        return result
