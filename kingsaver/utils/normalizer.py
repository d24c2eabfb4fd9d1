"""Map the raw metadata shapes we receive onto VideoResult / SlideshowResult.

Three source shapes exist, each with its own normalizer:

* ``yt-dlp``  -- the ``--dump-single-json`` document (single post or playlist)
* ``tikwm``   -- the ``data`` object of the TikWM API
* ``scraper`` -- the dict synthesized by the HTML fallback scraper

Nothing past this module handles untyped dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable

from kingsaver.models import (
    Author,
    Format,
    MediaType,
    Music,
    SlideshowResult,
    Stats,
    VideoResult,
    sort_formats,
)
from kingsaver.utils.link_detector import Platform

DEFAULT_TITLE = "Video"


class SourceKind(StrEnum):
    YTDLP = "yt-dlp"
    TIKWM = "tikwm"
    SCRAPER = "scraper"


@dataclass(frozen=True)
class RawMetadata:
    source: SourceKind
    data: dict[str, Any]


def infer_media_type(data: dict[str, Any]) -> MediaType:
    """Decide video vs slideshow.

    Order: explicit ``type`` tag, playlist entries, non-empty images or a
    duration of exactly 0, otherwise video.
    """
    explicit = data.get("type")
    if explicit in (MediaType.VIDEO, MediaType.SLIDESHOW):
        return MediaType(explicit)
    if data.get("_type") == "playlist" and data.get("entries"):
        return MediaType.SLIDESHOW
    if data.get("images") or data.get("duration") == 0:
        return MediaType.SLIDESHOW
    return MediaType.VIDEO


def pick_title(data: dict[str, Any]) -> str:
    return data.get("title") or data.get("description") or DEFAULT_TITLE


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


def _str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _entry_image(entry: dict[str, Any]) -> str | None:
    """Widest thumbnail of a playlist entry, else its thumbnail or url."""
    thumbs = [t for t in entry.get("thumbnails") or [] if t.get("url")]
    if thumbs:
        return max(thumbs, key=lambda t: t.get("width") or 0)["url"]
    return entry.get("thumbnail") or entry.get("url")


def _images(data: dict[str, Any]) -> tuple[str, ...]:
    if data.get("_type") == "playlist" and data.get("entries"):
        found = (_entry_image(e) for e in data["entries"] if isinstance(e, dict))
    else:
        found = (
            img if isinstance(img, str) else _entry_image(img) if isinstance(img, dict) else None
            for img in data.get("images") or []
        )
    return tuple(url for url in found if url)


def to_format(raw: dict[str, Any]) -> Format:
    return Format(
        url=raw.get("url"),
        format_id=_str(raw.get("format_id")),
        width=_int(raw.get("width")),
        height=_int(raw.get("height")),
        ext=raw.get("ext"),
        has_video=raw.get("vcodec") != "none",
        has_audio=raw.get("acodec") != "none",
        protocol=raw.get("protocol"),
    )


def _build(
    media_type: MediaType,
    platform: Platform,
    url: str,
    *,
    id: str,
    title: str,
    images: tuple[str, ...] = (),
    formats: tuple[Format, ...] = (),
    play_url: str | None = None,
    hd_play_url: str | None = None,
    **common: Any,
) -> VideoResult | SlideshowResult:
    if media_type == MediaType.SLIDESHOW:
        thumbnail = common.pop("thumbnail", None) or (images[0] if images else None)
        return SlideshowResult(
            platform=platform,
            original_url=url,
            id=id,
            title=title,
            images=images,
            thumbnail=thumbnail,
            **common,
        )
    return VideoResult(
        platform=platform,
        original_url=url,
        id=id,
        title=title,
        formats=formats,
        play_url=play_url,
        hd_play_url=hd_play_url,
        **common,
    )


def normalize_ytdlp(data: dict[str, Any], url: str, platform: Platform) -> VideoResult | SlideshowResult:
    formats = sort_formats([to_format(f) for f in data.get("formats") or [] if isinstance(f, dict)])
    return _build(
        infer_media_type(data),
        platform,
        url,
        id=_str(data.get("id")) or url,
        title=pick_title(data),
        images=_images(data),
        formats=formats,
        play_url=data.get("url"),
        description=data.get("description"),
        thumbnail=data.get("thumbnail"),
        duration=_number(data.get("duration")),
        timestamp=_int(data.get("timestamp")),
        author=Author(
            name=data.get("uploader") or data.get("channel") or data.get("creator"),
            id=_str(data.get("uploader_id")),
        ),
        stats=Stats(
            views=_int(data.get("view_count")),
            likes=_int(data.get("like_count")),
            comments=_int(data.get("comment_count")),
            shares=_int(data.get("repost_count")),
        ),
    )


def normalize_tikwm(data: dict[str, Any], url: str, platform: Platform) -> VideoResult | SlideshowResult:
    author = data.get("author") or {}
    music = data.get("music_info") or {}
    return _build(
        infer_media_type(data),
        platform,
        url,
        id=_str(data.get("id")) or url,
        title=pick_title(data),
        images=_images(data),
        play_url=data.get("play"),
        hd_play_url=data.get("hdplay"),
        thumbnail=data.get("cover") or data.get("origin_cover"),
        duration=_number(data.get("duration")),
        timestamp=_int(data.get("create_time")),
        author=Author(
            name=author.get("unique_id") or author.get("nickname"),
            id=_str(author.get("id")),
            avatar=author.get("avatar"),
        ),
        stats=Stats(
            views=_int(data.get("play_count")),
            likes=_int(data.get("digg_count")),
            comments=_int(data.get("comment_count")),
            shares=_int(data.get("share_count")),
        ),
        music=Music(
            title=music.get("title"),
            author=music.get("author"),
            url=music.get("play") or data.get("music"),
        ) if music or data.get("music") else None,
    )


def normalize_scraped(data: dict[str, Any], url: str, platform: Platform) -> VideoResult | SlideshowResult:
    return _build(
        infer_media_type(data),
        platform,
        url,
        id=_str(data.get("id")) or url,
        title=pick_title(data),
        images=_images(data),
        play_url=data.get("play"),
        description=data.get("description"),
        thumbnail=data.get("thumbnail"),
        author=Author(name=data.get("uploader"), id=_str(data.get("uploader_id"))),
    )


_NORMALIZERS: dict[SourceKind, Callable[[dict[str, Any], str, Platform], VideoResult | SlideshowResult]] = {
    SourceKind.YTDLP: normalize_ytdlp,
    SourceKind.TIKWM: normalize_tikwm,
    SourceKind.SCRAPER: normalize_scraped,
}


def normalize(raw: RawMetadata, url: str, platform: Platform) -> VideoResult | SlideshowResult:
    """Dispatch *raw* to the normalizer for its source shape."""
    return _NORMALIZERS[raw.source](raw.data, url, platform)
