from __future__ import annotations

import dataclasses

from kingsaver.models import SlideshowResult, VideoResult, sort_formats
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.link_detector import Platform


class TwitterScraper(BaseScraper):
    label = "Twitter"

    @property
    def platform(self) -> Platform:
        return Platform.TWITTER

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        """Prefer mp4 variants that carry video, tallest first; keep everything otherwise."""
        if not isinstance(result, VideoResult):
            return result
        mp4 = [f for f in result.formats if f.ext == "mp4" and f.has_video]
        if not mp4:
            return result
        return dataclasses.replace(result, formats=sort_formats(mp4))
