"""Extract Open Graph metadata (og:image, og:video, og:title, etc.) from HTML.

Used by the fallback scraper for posts yt-dlp reports as having no video.
"""

from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass, field

# Regex patterns for og: meta tags (handles both property= and name= variants,
# and both single and double quotes, and content before/after property)
_OG_PATTERN = re.compile(
    r'<meta\s+(?:[^>]*?)'
    r'(?:property|name)\s*=\s*["\']og:(\w+)["\']'
    r'[^>]*?content\s*=\s*["\']([^"\']*?)["\']',
    re.IGNORECASE | re.DOTALL,
)
_OG_PATTERN_REV = re.compile(
    r'<meta\s+(?:[^>]*?)'
    r'content\s*=\s*["\']([^"\']*?)["\']'
    r'[^>]*?(?:property|name)\s*=\s*["\']og:(\w+)["\']',
    re.IGNORECASE | re.DOTALL,
)


@dataclass
class OpenGraphData:
    title: str | None = None
    description: str | None = None
    site_name: str | None = None
    video: str | None = None
    images: list[str] = field(default_factory=list)

    @property
    def image(self) -> str | None:
        return self.images[0] if self.images else None


def parse_opengraph(html: str) -> OpenGraphData:
    """Collect og:* tags from a page. Repeated og:image tags are all kept."""
    # (position, key, value) so both attribute orders merge in document order
    tags: list[tuple[int, str, str]] = []

    for match in _OG_PATTERN.finditer(html):
        tags.append((match.start(), match.group(1).lower(), match.group(2)))

    for match in _OG_PATTERN_REV.finditer(html):
        tags.append((match.start(), match.group(2).lower(), match.group(1)))

    tags.sort(key=lambda t: t[0])

    og = OpenGraphData()
    found: dict[str, str] = {}
    seen_positions: set[int] = set()

    for pos, key, value in tags:
        if pos in seen_positions:
            continue
        seen_positions.add(pos)
        value = html_lib.unescape(value).strip()
        if not value:
            continue
        if key == "image":
            if value not in og.images:
                og.images.append(value)
        elif key not in found:  # first one wins
            found[key] = value

    og.title = found.get("title")
    og.description = found.get("description")
    og.site_name = found.get("site_name")
    og.video = found.get("video")

    return og
