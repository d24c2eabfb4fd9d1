import io
import zipfile
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from kingsaver.utils.zip_bundle import stream_zip


def _make_bytes_response(data: bytes, content_type: str):
    """Create a mock aiohttp response that returns bytes."""
    resp = AsyncMock()
    resp.raise_for_status = MagicMock()
    resp.read = AsyncMock(return_value=data)
    resp.headers = {"Content-Type": content_type}
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


async def _collect(urls, session) -> bytes:
    return b"".join([chunk async for chunk in stream_zip(urls, session)])


@pytest.mark.asyncio
async def test_failed_source_is_skipped():
    session = MagicMock()
    session.get = MagicMock(
        side_effect=[
            _make_bytes_response(b"jpeg-bytes", "image/jpeg"),
            aiohttp.ClientError("404"),
            _make_bytes_response(b"png-bytes", "image/png"),
        ]
    )

    data = await _collect(["https://cdn/1", "https://cdn/2", "https://cdn/3"], session)

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == ["image_1.jpg", "image_3.png"]
        assert archive.read("image_1.jpg") == b"jpeg-bytes"
        assert archive.read("image_3.png") == b"png-bytes"


@pytest.mark.asyncio
async def test_unknown_content_type_defaults_to_jpg():
    session = MagicMock()
    session.get = MagicMock(return_value=_make_bytes_response(b"x", "application/octet-stream"))

    data = await _collect(["https://cdn/1"], session)

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == ["image_1.jpg"]


@pytest.mark.asyncio
async def test_bytes_emitted_per_entry():
    session = MagicMock()
    session.get = MagicMock(
        side_effect=[
            _make_bytes_response(b"a" * 100, "image/jpeg"),
            _make_bytes_response(b"b" * 100, "image/webp"),
        ]
    )

    chunks = [chunk async for chunk in stream_zip(["https://cdn/1", "https://cdn/2"], session)]

    # one chunk per entry plus the central directory
    assert len(chunks) == 3


@pytest.mark.asyncio
async def test_all_sources_failing_gives_empty_archive():
    session = MagicMock()
    session.get = MagicMock(side_effect=aiohttp.ClientError("down"))

    data = await _collect(["https://cdn/1"], session)

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == []
