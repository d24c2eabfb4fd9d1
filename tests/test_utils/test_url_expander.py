from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from kingsaver.utils.link_detector import Platform, extract_video_id
from kingsaver.utils.url_expander import expand_url

CANONICAL = "https://www.tiktok.com/@someone/video/7000000000000000001"


def _make_redirect_response(final_url: str, status: int = 200):
    """Create a mock aiohttp response that ended up at *final_url*."""
    resp = AsyncMock()
    resp.status = status
    resp.url = final_url
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


@pytest.mark.asyncio
async def test_short_link_expanded_with_head():
    session = MagicMock()
    session.request = MagicMock(return_value=_make_redirect_response(CANONICAL))

    expanded = await expand_url("https://vt.tiktok.com/ZSabc123/", Platform.TIKTOK, session=session)

    assert expanded == CANONICAL
    assert extract_video_id(expanded) == "7000000000000000001"
    assert session.request.call_count == 1
    assert session.request.call_args.args[0] == "HEAD"


@pytest.mark.asyncio
async def test_falls_back_to_get_when_head_rejected():
    session = MagicMock()
    session.request = MagicMock(
        side_effect=[
            _make_redirect_response("https://vt.tiktok.com/ZSabc123/", status=405),
            _make_redirect_response(CANONICAL),
        ]
    )

    expanded = await expand_url("https://vt.tiktok.com/ZSabc123/", Platform.TIKTOK, session=session)

    assert expanded == CANONICAL
    assert [c.args[0] for c in session.request.call_args_list] == ["HEAD", "GET"]


@pytest.mark.asyncio
async def test_returns_input_when_expansion_fails():
    session = MagicMock()
    session.request = MagicMock(side_effect=aiohttp.ClientError("boom"))

    url = "https://vm.tiktok.com/ZMabc/"
    expanded = await expand_url(url, Platform.TIKTOK, session=session)

    assert expanded == url
    assert session.request.call_count == 2


@pytest.mark.asyncio
async def test_non_short_link_untouched():
    session = MagicMock()
    session.request = MagicMock()

    assert await expand_url(CANONICAL, Platform.TIKTOK, session=session) == CANONICAL
    session.request.assert_not_called()


@pytest.mark.asyncio
async def test_facebook_share_link_expanded():
    final = "https://www.facebook.com/watch/?v=123456"
    session = MagicMock()
    session.request = MagicMock(return_value=_make_redirect_response(final))

    expanded = await expand_url("https://fb.watch/abcDEF/", Platform.FACEBOOK, session=session)
    assert expanded == final
