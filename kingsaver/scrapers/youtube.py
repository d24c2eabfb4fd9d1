from __future__ import annotations

import dataclasses

from kingsaver.models import SlideshowResult, VideoResult
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.link_detector import Platform


class YouTubeScraper(BaseScraper):
    label = "YouTube"

    @property
    def platform(self) -> Platform:
        return Platform.YOUTUBE

    def _postprocess(self, result: VideoResult | SlideshowResult) -> VideoResult | SlideshowResult:
        """Only offer progressive mp4 formats (video and audio in one file).

        yt-dlp lists separate audio/video streams too; those can't be played
        or saved directly by the client. The raw play URL stays as fallback.
        """
        if not isinstance(result, VideoResult):
            return result
        progressive = tuple(
            f for f in result.formats if f.ext == "mp4" and f.has_video and f.has_audio
        )
        return dataclasses.replace(result, formats=progressive)
