from __future__ import annotations

import dataclasses

from kingsaver.models import SlideshowResult, VideoResult
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.link_detector import Platform
from kingsaver.utils.normalizer import DEFAULT_TITLE


class InstagramScraper(BaseScraper):
    label = "Instagram"

    @property
    def platform(self) -> Platform:
        return Platform.INSTAGRAM

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        """Reels usually come back untitled; use the caption start or the uploader."""
        if result.title and result.title != DEFAULT_TITLE:
            return result
        short_desc = (result.description or "")[:50]
        title = short_desc or f"Instagram Reel - {result.author.name or 'User'}"
        return dataclasses.replace(result, title=title)
