import pytest

from kingsaver.errors import ErrorKind, InvalidPlatformURL
from kingsaver.utils.link_detector import (
    Platform,
    detect_platform,
    extract_video_id,
    is_platform_url,
    is_short_link,
    validate_url,
)


class TestIsPlatformUrl:
    @pytest.mark.parametrize(
        "url,platform",
        [
            ("https://www.tiktok.com/@user/video/7000000000000000001", Platform.TIKTOK),
            ("https://vt.tiktok.com/ZS123/", Platform.TIKTOK),
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://m.youtube.com/shorts/dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://www.instagram.com/p/ABC123/", Platform.INSTAGRAM),
            ("https://www.facebook.com/watch/?v=123", Platform.FACEBOOK),
            ("https://fb.watch/abcDEF/", Platform.FACEBOOK),
            ("https://twitter.com/user/status/123", Platform.TWITTER),
            ("https://x.com/user/status/123", Platform.TWITTER),
            ("instagram.com/reel/XYZ/", Platform.INSTAGRAM),
        ],
    )
    def test_accepts_own_domains(self, url, platform):
        assert is_platform_url(url, platform)

    def test_rejects_other_platform(self):
        assert not is_platform_url("https://www.instagram.com/p/ABC/", Platform.TIKTOK)

    def test_rejects_lookalike_host(self):
        assert not is_platform_url("https://nottiktok.com/video/1", Platform.TIKTOK)
        assert not is_platform_url("https://tiktok.com.evil.example/video/1", Platform.TIKTOK)


class TestValidateUrl:
    def test_valid_url_passes(self):
        validate_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE)

    def test_cross_platform_url_rejected(self):
        with pytest.raises(InvalidPlatformURL) as exc_info:
            validate_url("https://www.instagram.com/p/ABC/", Platform.TIKTOK)
        assert exc_info.value.kind == ErrorKind.INVALID_URL
        assert "TikTok link" in exc_info.value.user_message

    def test_empty_url_rejected(self):
        with pytest.raises(InvalidPlatformURL):
            validate_url("", Platform.TWITTER)

    @pytest.mark.parametrize(
        "url",
        [
            "--exec=id;.youtube.com",
            "youtube.com/watch?v=dQw4w9WgXcQ",
            "file:///etc/passwd#.youtube.com",
            "ftp://www.youtube.com/watch?v=dQw4w9WgXcQ",
        ],
    )
    def test_non_http_url_rejected(self, url):
        with pytest.raises(InvalidPlatformURL):
            validate_url(url, Platform.YOUTUBE)


class TestDetectPlatform:
    def test_known(self):
        assert detect_platform("https://x.com/a/status/1") == Platform.TWITTER
        assert detect_platform("https://vm.tiktok.com/abc") == Platform.TIKTOK

    def test_unknown(self):
        assert detect_platform("https://example.com/video") is None


class TestShortLinks:
    @pytest.mark.parametrize(
        "url",
        [
            "https://vt.tiktok.com/ZSabc123/",
            "https://vm.tiktok.com/ZMabc123/",
            "https://www.tiktok.com/t/ZTabc123/",
        ],
    )
    def test_tiktok_short_links(self, url):
        assert is_short_link(url, Platform.TIKTOK)

    def test_tiktok_canonical_is_not_short(self):
        assert not is_short_link(
            "https://www.tiktok.com/@user/video/7000000000000000001", Platform.TIKTOK
        )

    def test_facebook_short_links(self):
        assert is_short_link("https://fb.watch/abc/", Platform.FACEBOOK)
        assert is_short_link("https://www.facebook.com/share/r/xyz/", Platform.FACEBOOK)

    def test_platform_without_short_links(self):
        assert not is_short_link("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE)


class TestVideoIds:
    def test_tiktok_id(self):
        url = "https://www.tiktok.com/@user/video/7000000000000000001?is_from_webapp=1"
        assert extract_video_id(url) == "7000000000000000001"

    def test_tiktok_id_missing(self):
        assert extract_video_id("https://vt.tiktok.com/ZSabc/") is None