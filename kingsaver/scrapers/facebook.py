from __future__ import annotations

import dataclasses

from kingsaver.models import SlideshowResult, VideoResult
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.link_detector import Platform
from kingsaver.utils.normalizer import DEFAULT_TITLE


class FacebookScraper(BaseScraper):
    label = "Facebook"

    @property
    def platform(self) -> Platform:
        return Platform.FACEBOOK

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        if result.title and result.title != DEFAULT_TITLE:
            return result
        return dataclasses.replace(
            result, title=f"Facebook Video - {result.author.name or 'User'}"
        )
