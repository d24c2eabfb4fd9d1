from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from kingsaver.errors import ErrorKind
from kingsaver.utils.link_detector import Platform


class MediaType(StrEnum):
    VIDEO = "video"
    SLIDESHOW = "slideshow"


@dataclass(frozen=True)
class MediaQuery:
    """One incoming lookup: the raw URL and the platform it was submitted for."""

    url: str
    platform: Platform


@dataclass(frozen=True)
class Format:
    """One encoded variant of a video (resolution / container / codecs)."""

    url: str | None
    format_id: str | None = None
    width: int | None = None
    height: int | None = None
    ext: str | None = None
    has_video: bool = True
    has_audio: bool = True
    protocol: str | None = None

    @property
    def quality_label(self) -> str:
        return f"{self.height}p" if self.height else "audio"


@dataclass(frozen=True)
class Author:
    name: str | None = None
    id: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class Stats:
    views: int | None = None
    likes: int | None = None
    comments: int | None = None
    shares: int | None = None


@dataclass(frozen=True)
class Music:
    title: str | None = None
    author: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class VideoResult:
    platform: Platform
    original_url: str
    id: str
    title: str
    description: str | None = None
    thumbnail: str | None = None
    # 0 is a legitimate value and usually means "not really a video"
    duration: float | None = None
    timestamp: int | None = None
    author: Author = field(default_factory=Author)
    stats: Stats = field(default_factory=Stats)
    music: Music | None = None
    formats: tuple[Format, ...] = ()
    play_url: str | None = None
    hd_play_url: str | None = None

    media_type: ClassVar[MediaType] = MediaType.VIDEO

    @property
    def download_url(self) -> str | None:
        return best_download_url(self, "hd")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.media_type.value
        data["formats"] = [
            {**asdict(f), "quality_label": f.quality_label} for f in self.formats
        ]
        data["download_url"] = self.download_url
        data["sd_download_url"] = best_download_url(self, "sd")
        return data


@dataclass(frozen=True)
class SlideshowResult:
    platform: Platform
    original_url: str
    id: str
    title: str
    images: tuple[str, ...] = ()
    description: str | None = None
    thumbnail: str | None = None
    duration: float | None = None
    timestamp: int | None = None
    author: Author = field(default_factory=Author)
    stats: Stats = field(default_factory=Stats)
    music: Music | None = None

    media_type: ClassVar[MediaType] = MediaType.SLIDESHOW

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.media_type.value
        data["images"] = list(self.images)
        return data


@dataclass(frozen=True)
class FailureResult:
    """Terminal failure. ``message`` is safe to show to end users."""

    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "Failed to fetch video data",
            "details": self.message,
            "kind": self.kind.value,
        }


ExtractionResult = VideoResult | SlideshowResult | FailureResult


HD_MIN_HEIGHT = 720


def sort_formats(formats: list[Format] | tuple[Format, ...]) -> tuple[Format, ...]:
    """Order formats by descending height; formats without a height go last."""
    return tuple(sorted(formats, key=lambda f: f.height or 0, reverse=True))


def select_hd(formats: list[Format] | tuple[Format, ...]) -> Format | None:
    """First format at 720p or above, else the tallest one. None if empty."""
    ordered = sort_formats(formats)
    if not ordered:
        return None
    return next((f for f in ordered if (f.height or 0) >= HD_MIN_HEIGHT), ordered[0])


def select_sd(formats: list[Format] | tuple[Format, ...]) -> Format | None:
    """First format below 720p, else the smallest one. None if empty."""
    ordered = sort_formats(formats)
    if not ordered:
        return None
    return next((f for f in ordered if (f.height or 0) < HD_MIN_HEIGHT), ordered[-1])


def best_download_url(result: VideoResult, quality: str = "hd") -> str | None:
    """Direct URL for the requested quality, falling back to the raw play URLs."""
    if quality == "sd":
        fmt = select_sd(result.formats)
        fallback = result.play_url or result.hd_play_url
    else:
        fmt = select_hd(result.formats)
        fallback = result.hd_play_url or result.play_url
    if fmt is not None and fmt.url:
        return fmt.url
    return fallback
