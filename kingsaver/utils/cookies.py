from __future__ import annotations

import tempfile
from pathlib import Path

import structlog

from kingsaver.config import settings
from kingsaver.utils.link_detector import host_matches

logger = structlog.get_logger()

_COOKIES_FILENAME = "kingsaver_cookies.txt"

_written_path: Path | None = None


def ensure_cookies_file() -> str | None:
    """Return a path to a Netscape cookies.txt usable by yt-dlp, if configured.

    A cookie blob from the environment is written to the temp dir once per
    process; otherwise ``settings.cookies_file`` is used when it exists.
    """
    global _written_path

    if settings.youtube_cookies:
        if _written_path is None:
            path = Path(tempfile.gettempdir()) / _COOKIES_FILENAME
            try:
                path.write_text(settings.youtube_cookies, encoding="utf-8")
            except OSError as exc:
                logger.error("cookies_file_write_failed", path=str(path), error=str(exc))
                return None
            _written_path = path
            logger.info("cookies_file_written", path=str(path))
        return str(_written_path)

    if settings.cookies_file and Path(settings.cookies_file).exists():
        return settings.cookies_file

    return None


def cookie_header_for(cookies_file: str | None, domain: str) -> str | None:
    """Read cookies sent to host *domain* from a Netscape-format cookies.txt.

    Returns a Cookie header string like "name1=value1; name2=value2".
    """
    if not cookies_file:
        return None

    cookies_path = Path(cookies_file)
    if not cookies_path.exists():
        return None

    cookies = []
    for line in cookies_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        # "#HttpOnly_" prefixed lines are real cookies, plain "#" lines are comments
        if line.startswith("#HttpOnly_"):
            line = line[len("#HttpOnly_"):]
        elif line.startswith("#") or not line:
            continue
        parts = line.split("\t")
        if len(parts) < 7:
            continue
        cookie_domain = parts[0].lstrip(".").lower()
        if cookie_domain and host_matches(domain.lower(), (cookie_domain,)):
            cookies.append(f"{parts[5]}={parts[6]}")

    return "; ".join(cookies) if cookies else None
