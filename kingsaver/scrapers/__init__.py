from __future__ import annotations

import aiohttp

from kingsaver.scrapers.base import BaseScraper
from kingsaver.scrapers.facebook import FacebookScraper
from kingsaver.scrapers.instagram import InstagramScraper
from kingsaver.scrapers.tiktok import TikTokScraper
from kingsaver.scrapers.twitter import TwitterScraper
from kingsaver.scrapers.youtube import YouTubeScraper
from kingsaver.utils.cache import ResultCache
from kingsaver.utils.link_detector import Platform
from kingsaver.utils.ytdlp import YtdlpExtractor

SCRAPERS: list[type[BaseScraper]] = [
    TikTokScraper,
    YouTubeScraper,
    InstagramScraper,
    FacebookScraper,
    TwitterScraper,
]


def build_scrapers(
    cache: ResultCache,
    extractor: YtdlpExtractor,
    session: aiohttp.ClientSession | None = None,
) -> dict[Platform, BaseScraper]:
    """Instantiate one scraper per platform, all sharing the same cache and extractor."""
    scrapers = [cls(cache, extractor, session=session) for cls in SCRAPERS]
    return {scraper.platform: scraper for scraper in scrapers}


__all__ = [
    "BaseScraper",
    "SCRAPERS",
    "build_scrapers",
    "TikTokScraper",
    "YouTubeScraper",
    "InstagramScraper",
    "FacebookScraper",
    "TwitterScraper",
]
