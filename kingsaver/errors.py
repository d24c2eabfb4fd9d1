"""Error taxonomy for the resolution pipeline.

Every error carries an ``ErrorKind`` and a message that is safe to show to an
end user. Diagnostic detail (exit codes, stderr, upstream responses) goes into
``detail`` and is only ever logged.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_URL = "invalid_url"
    NO_VIDEO = "no_video"
    EXTRACTION_FAILED = "extraction_failed"
    SCRAPE_FAILED = "scrape_failed"
    UPSTREAM_API = "upstream_api"
    DOWNLOAD_FAILED = "download_failed"
    INTERNAL = "internal"


class ResolutionError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    user_message: str = "Failed to fetch video details."

    def __init__(self, detail: str | None = None, *, user_message: str | None = None) -> None:
        self.detail = detail or self.user_message
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.detail)


class InvalidPlatformURL(ResolutionError):
    kind = ErrorKind.INVALID_URL

    def __init__(self, platform: str) -> None:
        label = _PLATFORM_LABELS.get(str(platform), str(platform).title())
        super().__init__(
            f"URL rejected by the {platform} domain allowlist",
            user_message=(
                "Invalid URL. This looks like it might belong to another platform. "
                f"Please use a {label} link."
            ),
        )
        self.platform = platform


class ExpansionFailed(ResolutionError):
    """Short link could not be resolved. Logged and swallowed by the expander."""

    kind = ErrorKind.INTERNAL


class ExtractionNoVideo(ResolutionError):
    kind = ErrorKind.NO_VIDEO
    user_message = "No video or images could be found in this post."


class ExtractionFatal(ResolutionError):
    kind = ErrorKind.EXTRACTION_FAILED
    user_message = "Failed to fetch video details."

    def __init__(self, detail: str | None = None, *, returncode: int | None = None) -> None:
        super().__init__(detail)
        self.returncode = returncode


class ScrapeFailed(ResolutionError):
    kind = ErrorKind.SCRAPE_FAILED
    user_message = "Could not find image metadata."


class UpstreamAPIError(ResolutionError):
    kind = ErrorKind.UPSTREAM_API
    user_message = "Failed to get video information."


class DownloadStreamError(ResolutionError):
    kind = ErrorKind.DOWNLOAD_FAILED
    user_message = "Download failed."


_PLATFORM_LABELS = {
    "tiktok": "TikTok",
    "youtube": "YouTube",
    "instagram": "Instagram",
    "facebook": "Facebook",
    "twitter": "Twitter",
}
