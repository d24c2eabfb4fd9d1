from __future__ import annotations

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=os.environ.get("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    # Extractor binary
    ytdlp_path: str = "yt-dlp"

    # Netscape cookie-file blob for login-gated content; written to a temp file
    youtube_cookies: str | None = None
    # Alternatively, a path to an existing cookies.txt
    cookies_file: str | None = None

    # Third-party TikTok metadata API
    tikwm_api_url: str = "https://www.tikwm.com/api/"

    # Result cache
    cache_ttl_seconds: int = 300
    cache_sweep_interval_seconds: int = 60

    # Network
    request_timeout_seconds: int = 15
    max_redirects: int = 5

    # Fallback scraper / downloads
    max_fallback_images: int = 15
    zip_compression_level: int = 9
    stream_chunk_size: int = 64 * 1024

    # Logging
    log_level: str = "INFO"

    # Debug mode: verbose per-step logging in the fallback scraper
    debug_mode: bool = False


settings = Settings()
