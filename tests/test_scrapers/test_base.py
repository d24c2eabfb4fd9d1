from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kingsaver.errors import ErrorKind, InvalidPlatformURL, ScrapeFailed
from kingsaver.models import FailureResult, SlideshowResult, VideoResult
from kingsaver.scrapers.base import BaseScraper
from kingsaver.utils.cache import ResultCache
from kingsaver.utils.link_detector import Platform
from kingsaver.utils.streaming import ProcessStream
from kingsaver.utils.ytdlp import ExtractorOutcome, ExtractorStatus, YtdlpExtractor

TWEET_URL = "https://x.com/someone/status/1234567890"

VIDEO_DATA = {
    "id": "1234567890",
    "title": "clip",
    "duration": 12,
    "uploader": "someone",
    "formats": [{"format_id": "hls-720", "url": "https://video.twimg.com/720.mp4", "height": 720, "ext": "mp4"}],
}

SCRAPED_DATA = {
    "type": "slideshow",
    "id": "image_1",
    "title": "Photo",
    "images": ["https://pbs.twimg.com/1.jpg"],
    "uploader": "Twitter User",
    "uploader_id": "twitter_user",
}


class DummyScraper(BaseScraper):
    label = "Twitter"

    @property
    def platform(self) -> Platform:
        return Platform.TWITTER


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_extractor(*outcomes: ExtractorOutcome) -> MagicMock:
    extractor = MagicMock(spec=YtdlpExtractor)
    extractor.dump_json = AsyncMock(side_effect=list(outcomes))
    extractor.stream_command = MagicMock(side_effect=lambda url, spec: ["yt-dlp", "-f", spec, url])
    return extractor


def _ok(data=VIDEO_DATA) -> ExtractorOutcome:
    return ExtractorOutcome(ExtractorStatus.OK, data=data, returncode=0)


def _no_video() -> ExtractorOutcome:
    return ExtractorOutcome(
        ExtractorStatus.NO_VIDEO,
        message="ERROR: [twitter] 1234567890: No video could be found in this tweet / There is no video in this post",
        returncode=1,
    )


@pytest.mark.asyncio
async def test_success():
    extractor = _make_extractor(_ok())
    scraper = DummyScraper(ResultCache(), extractor)

    result = await scraper.resolve(TWEET_URL)

    assert isinstance(result, VideoResult)
    assert result.platform == Platform.TWITTER
    assert result.original_url == TWEET_URL
    assert result.title == "clip"


@pytest.mark.asyncio
async def test_invalid_url_touches_nothing():
    extractor = _make_extractor()
    cache = ResultCache()
    scraper = DummyScraper(cache, extractor)

    with (
        patch("kingsaver.scrapers.base.expand_url", new_callable=AsyncMock) as mock_expand,
        patch("kingsaver.scrapers.base.scrape_fallback", new_callable=AsyncMock) as mock_scrape,
    ):
        result = await scraper.resolve("https://www.instagram.com/p/ABC/")

    assert isinstance(result, FailureResult)
    assert result.kind == ErrorKind.INVALID_URL
    assert "Twitter link" in result.message
    mock_expand.assert_not_called()
    mock_scrape.assert_not_called()
    extractor.dump_json.assert_not_called()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_hit_skips_extractor():
    extractor = _make_extractor(_ok())
    scraper = DummyScraper(ResultCache(), extractor)

    first = await scraper.resolve(TWEET_URL)
    second = await scraper.resolve(TWEET_URL)

    assert second is first
    assert extractor.dump_json.await_count == 1


@pytest.mark.asyncio
async def test_extractor_reinvoked_after_ttl():
    clock = FakeClock()
    extractor = _make_extractor(_ok(), _ok())
    scraper = DummyScraper(ResultCache(ttl_seconds=300, clock=clock), extractor)

    await scraper.resolve(TWEET_URL)
    clock.now += 300
    await scraper.resolve(TWEET_URL)

    assert extractor.dump_json.await_count == 2


@pytest.mark.asyncio
async def test_no_video_falls_back_to_scraper_once():
    extractor = _make_extractor(_no_video())
    scraper = DummyScraper(ResultCache(), extractor)

    with patch(
        "kingsaver.scrapers.base.scrape_fallback",
        new_callable=AsyncMock,
        return_value=SCRAPED_DATA,
    ) as mock_scrape:
        result = await scraper.resolve(TWEET_URL)

    assert isinstance(result, SlideshowResult)
    assert result.images == ("https://pbs.twimg.com/1.jpg",)
    mock_scrape.assert_awaited_once()
    assert mock_scrape.call_args.kwargs["label"] == "Twitter"


@pytest.mark.asyncio
async def test_no_video_and_scraper_fails():
    extractor = _make_extractor(_no_video())
    cache = ResultCache()
    scraper = DummyScraper(cache, extractor)

    with patch(
        "kingsaver.scrapers.base.scrape_fallback",
        new_callable=AsyncMock,
        side_effect=ScrapeFailed("no image metadata"),
    ) as mock_scrape:
        result = await scraper.resolve(TWEET_URL)

    assert isinstance(result, FailureResult)
    assert result.kind == ErrorKind.NO_VIDEO
    assert result.message == "No video or images could be found in this post."
    assert "ERROR:" not in result.message
    assert mock_scrape.await_count == 1
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_fatal_error_skips_scraper_and_hides_stderr():
    fatal = ExtractorOutcome(
        ExtractorStatus.FATAL,
        message="yt-dlp exited with code 1: ERROR: Unable to download webpage",
        returncode=1,
    )
    extractor = _make_extractor(fatal)
    scraper = DummyScraper(ResultCache(), extractor)

    with patch("kingsaver.scrapers.base.scrape_fallback", new_callable=AsyncMock) as mock_scrape:
        result = await scraper.resolve(TWEET_URL)

    assert isinstance(result, FailureResult)
    assert result.kind == ErrorKind.EXTRACTION_FAILED
    assert "yt-dlp" not in result.message
    mock_scrape.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_failure():
    extractor = _make_extractor()
    extractor.dump_json = AsyncMock(side_effect=RuntimeError("boom"))
    scraper = DummyScraper(ResultCache(), extractor)

    result = await scraper.resolve(TWEET_URL)

    assert isinstance(result, FailureResult)
    assert result.kind == ErrorKind.INTERNAL
    assert "boom" not in result.message


@pytest.mark.asyncio
async def test_url_is_stripped():
    extractor = _make_extractor(_ok())
    scraper = DummyScraper(ResultCache(), extractor)

    result = await scraper.resolve(f"  {TWEET_URL}\n")

    assert result.original_url == TWEET_URL


def test_open_stream_validates_first():
    extractor = _make_extractor()
    scraper = DummyScraper(ResultCache(), extractor)

    with pytest.raises(InvalidPlatformURL):
        scraper.open_stream("https://youtu.be/dQw4w9WgXcQ")
    extractor.stream_command.assert_not_called()


def test_open_stream_builds_command():
    extractor = _make_extractor()
    scraper = DummyScraper(ResultCache(), extractor)

    stream = scraper.open_stream(TWEET_URL, "hd")

    assert isinstance(stream, ProcessStream)
    assert stream.command == ["yt-dlp", "-f", "best[height>=720]/best", TWEET_URL]
