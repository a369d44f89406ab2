from typing import Annotated, Literal

from pydantic import BeforeValidator

from app.core.configs.base_config import BaseConfig


class AppConfig(BaseConfig):
    ENVIRONMENT: Literal['local', 'staging', 'production', 'testing'] = 'local'
    PROJECT_NAME: str = 'Clipdrop'

    # Logging
    LOG_LEVEL: str = 'DEBUG'
    LOG_HANDLERS: Annotated[list[Literal['stream', 'file']] | str, BeforeValidator(BaseConfig._parse_list)] = ['stream']

    # Web
    WEB_HOST: str = '0.0.0.0'  # noqa: S104
    WEB_PORT: int = 5000
    SUPPORTED_HOSTS: Annotated[list[str] | str, BeforeValidator(BaseConfig._parse_list)] = [
        'tiktok.com',
        'twitter.com',
        'x.com',
    ]

    # External tools
    YTDLP_BINARY: str = 'yt-dlp'
    FFMPEG_BINARY: str = 'ffmpeg'

    # Extraction providers, tried in this order
    PROVIDER_ORDER: Annotated[list[str] | str, BeforeValidator(BaseConfig._parse_list)] = [
        'ytdlp',
        'tikwm',
        'ssstik',
        'scraper',
    ]
    YTDLP_TIMEOUT_SECONDS: float = 60.0
    TIKWM_TIMEOUT_SECONDS: float = 15.0
    SSSTIK_TIMEOUT_SECONDS: float = 15.0
    SCRAPER_TIMEOUT_SECONDS: float = 10.0

    # Upstream hosts reject default client headers
    USER_AGENT: str = (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) '
        'Chrome/120.0.0.0 Safari/537.36'
    )

    # Streaming
    STREAM_SESSION_TIMEOUT_SECONDS: float = 300.0
    STREAM_IDLE_TIMEOUT_SECONDS: float = 60.0
    STREAM_CONNECT_TIMEOUT_SECONDS: float = 30.0
    STREAM_KILL_GRACE_SECONDS: float = 2.0
    STREAM_CHUNK_SIZE: int = 64 * 1024
    AUDIO_BITRATE: str = '192k'


app_config = AppConfig()
