from __future__ import annotations

import re
from enum import StrEnum
from urllib.parse import urlparse

from kingsaver.errors import InvalidPlatformURL


class Platform(StrEnum):
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TWITTER = "twitter"


# Hosts each platform accepts. A URL matches when its host is one of these
# domains or a subdomain of one (www., m., vt., ...).
_PLATFORM_DOMAINS: dict[Platform, tuple[str, ...]] = {
    Platform.TIKTOK: ("tiktok.com",),
    Platform.YOUTUBE: ("youtube.com", "youtu.be"),
    Platform.INSTAGRAM: ("instagram.com", "instagr.am"),
    Platform.FACEBOOK: ("facebook.com", "fb.watch", "fb.com"),
    Platform.TWITTER: ("twitter.com", "x.com"),
}

# Share links that only redirect to the canonical post URL
_SHORT_LINK_PATTERNS: dict[Platform, re.Pattern[str]] = {
    Platform.TIKTOK: re.compile(
        r"https?://(?:vt|vm)\.tiktok\.com/|tiktok\.com/t/",
        re.IGNORECASE,
    ),
    Platform.FACEBOOK: re.compile(
        r"https?://(?:www\.)?fb\.watch/|facebook\.com/share/",
        re.IGNORECASE,
    ),
}

_SCHEMES = ("http", "https")

_TIKTOK_VIDEO_ID = re.compile(r"/video/(\d+)")


def _host(url: str) -> str:
    """Lower-cased host of *url*, tolerating a missing scheme."""
    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"
    return (urlparse(url).hostname or "").lower()


def host_matches(host: str, domains: tuple[str, ...]) -> bool:
    """True when *host* is one of *domains* or a subdomain of one."""
    return any(host == d or host.endswith(f".{d}") for d in domains)


def is_platform_url(url: str, platform: Platform) -> bool:
    """Return True when *url* points at one of *platform*'s domains."""
    return host_matches(_host(url), _PLATFORM_DOMAINS[platform])


def validate_url(url: str, platform: Platform) -> None:
    """Reject URLs that belong to another platform before any network work."""
    if urlparse(url).scheme.lower() not in _SCHEMES or not is_platform_url(url, platform):
        raise InvalidPlatformURL(platform)


def detect_platform(url: str) -> Platform | None:
    """Guess which platform a URL belongs to, or None."""
    host = _host(url)
    for platform, domains in _PLATFORM_DOMAINS.items():
        if host_matches(host, domains):
            return platform
    return None


def is_short_link(url: str, platform: Platform) -> bool:
    pattern = _SHORT_LINK_PATTERNS.get(platform)
    return bool(pattern and pattern.search(url))


def extract_video_id(url: str) -> str | None:
    """Pull the numeric post id out of a canonical TikTok URL."""
    match = _TIKTOK_VIDEO_ID.search(url)
    return match.group(1) if match else None

