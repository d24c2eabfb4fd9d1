"""Adapter around the yt-dlp command-line tool.

All process handling lives here: the rest of the code only sees a classified
``ExtractorOutcome`` for metadata lookups, or a command line to hand to the
streaming bridge.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from kingsaver.config import settings

logger = structlog.get_logger()

# Desktop UA sent alongside session cookies so they are not rejected
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# yt-dlp phrasing for posts that exist but carry no playable video (photo posts)
_NO_VIDEO_MARKERS = (
    "There is no video in this post",
    "No video formats found",
)


class ExtractorStatus(StrEnum):
    OK = "ok"
    NO_VIDEO = "no_video"
    FATAL = "fatal"


@dataclass(frozen=True)
class ExtractorOutcome:
    """Classified result of one yt-dlp metadata invocation."""

    status: ExtractorStatus
    data: dict[str, Any] | None = None
    message: str | None = None
    returncode: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == ExtractorStatus.OK

    @property
    def no_video(self) -> bool:
        return self.status == ExtractorStatus.NO_VIDEO


def _error_message(stderr: str) -> str:
    lines = [line.strip() for line in stderr.splitlines() if "ERROR:" in line]
    return " ".join(lines) or stderr.strip()


def classify_output(stdout: bytes, stderr: bytes, returncode: int) -> ExtractorOutcome:
    """Turn raw process output into OK / NO_VIDEO / FATAL.

    JSON on stdout wins even when the exit code is nonzero: yt-dlp may print
    the full document before a non-fatal error aborts the run.
    """
    out = stdout.decode("utf-8", errors="replace").strip()
    if out:
        try:
            data = json.loads(out)
        except json.JSONDecodeError as exc:
            logger.warning("ytdlp_json_parse_failed", error=str(exc), returncode=returncode)
        else:
            if isinstance(data, dict):
                return ExtractorOutcome(ExtractorStatus.OK, data=data, returncode=returncode)
            logger.warning("ytdlp_unexpected_json", json_type=type(data).__name__)

    if returncode != 0:
        message = _error_message(stderr.decode("utf-8", errors="replace"))
        if any(marker in message for marker in _NO_VIDEO_MARKERS):
            return ExtractorOutcome(ExtractorStatus.NO_VIDEO, message=message, returncode=returncode)
        return ExtractorOutcome(
            ExtractorStatus.FATAL,
            message=f"yt-dlp exited with code {returncode}: {message}",
            returncode=returncode,
        )

    return ExtractorOutcome(
        ExtractorStatus.FATAL,
        message="yt-dlp exited with code 0 but no output",
        returncode=returncode,
    )


class YtdlpExtractor:
    def __init__(
        self,
        binary: str | None = None,
        cookies_file: str | None = None,
        user_agent: str = DESKTOP_USER_AGENT,
    ) -> None:
        self.binary = binary or settings.ytdlp_path
        self.cookies_file = cookies_file
        self.user_agent = user_agent

    def _auth_args(self) -> list[str]:
        if not self.cookies_file:
            return []
        return ["--cookies", self.cookies_file, "--user-agent", self.user_agent]

    def info_command(self, url: str) -> list[str]:
        return [
            self.binary,
            "--dump-single-json",
            "--ignore-no-formats-error",
            "--no-warnings",
            *self._auth_args(),
            "--",
            url,
        ]

    def stream_command(self, url: str, format_spec: str = "best") -> list[str]:
        return [
            self.binary,
            "-f", format_spec,
            "-o", "-",
            "--no-warnings",
            *self._auth_args(),
            "--",
            url,
        ]

    async def dump_json(self, url: str) -> ExtractorOutcome:
        """Run yt-dlp to completion and classify what it produced.

        No timeout is applied here; callers may wrap this in their own.
        """
        cmd = self.info_command(url)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("ytdlp_spawn_failed", binary=self.binary, error=str(exc))
            return ExtractorOutcome(
                ExtractorStatus.FATAL, message=f"could not start yt-dlp: {exc}"
            )

        stdout, stderr = await proc.communicate()
        outcome = classify_output(stdout, stderr, proc.returncode)
        logger.debug(
            "ytdlp_info_finished",
            url=url,
            returncode=proc.returncode,
            status=outcome.status,
        )
        return outcome
