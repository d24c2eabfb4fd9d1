from __future__ import annotations

import re

_UNSAFE_HEADER_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

# Checked in order; first substring match wins
_CONTENT_TYPE_EXTENSIONS: list[tuple[str, str]] = [
    ("image/jpeg", ".jpg"),
    ("image/png", ".png"),
    ("image/webp", ".webp"),
    ("video/webm", ".webm"),
    ("audio/mpeg", ".mp3"),
    ("video/mp4", ".mp4"),
]


def header_filename(name: str | None, default: str, max_len: int) -> str:
    """Restrict a client-supplied name to characters safe inside Content-Disposition."""
    return _UNSAFE_HEADER_CHARS.sub("_", name or default)[:max_len]


def extension_for_content_type(
    content_type: str | None,
    default: str = ".mp4",
    images_only: bool = False,
) -> str:
    if not content_type:
        return default
    for prefix, ext in _CONTENT_TYPE_EXTENSIONS:
        if images_only and not prefix.startswith("image/"):
            continue
        if prefix in content_type:
            return ext
    return default


def truncate(text: str, max_len: int = 50) -> str:
    """Cut text to *max_len* characters, marking the cut with an ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
