"""Request and response bodies of the download API."""

from pydantic import BaseModel, Field, field_validator

from app.core.configs import app_config
from app.core.services.extraction import MediaRecord, QualityTier
from app.core.services.extraction.base_service import host_matches
from app.web.ledger import Quality

QUALITY_TIERS = {
    Quality.HD: QualityTier.HIGH_QUALITY,
    Quality.SD: QualityTier.STANDARD_QUALITY,
    Quality.AUDIO: QualityTier.AUDIO_ONLY,
}


class DownloadRequestIn(BaseModel):
    """Body of ``POST /api/download``."""

    url: str = Field(min_length=1, max_length=2048)
    quality: Quality = Quality.HD

    @field_validator('url')
    @classmethod
    def _supported_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(('http://', 'https://')):
            raise ValueError('Please enter a valid URL')
        if not host_matches(value, app_config.SUPPORTED_HOSTS):
            raise ValueError(f'URL must be from one of: {", ".join(app_config.SUPPORTED_HOSTS)}')
        return value


class DownloadLinks(BaseModel):
    video: str | None = None
    audio: str | None = None


class DownloadResponse(BaseModel):
    """Body returned once a URL has been resolved."""

    success: bool = True
    requestId: str
    title: str
    author: str
    thumbnail: str | None = None
    duration: float | None = None
    provider: str
    downloads: DownloadLinks

    @classmethod
    def from_record(cls, request_id: str, record: MediaRecord) -> 'DownloadResponse':
        base = f'/api/download/{request_id}'
        has_video = any(tier != QualityTier.AUDIO_ONLY for tier in record.media_locators)
        return cls(
            requestId=request_id,
            title=record.title,
            author=record.author_handle,
            thumbnail=record.thumbnail_url,
            duration=record.duration_seconds,
            provider=record.provider,
            downloads=DownloadLinks(
                video=f'{base}/video' if has_video else None,
                # Audio can always be cut from the video stream
                audio=f'{base}/audio',
            ),
        )


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: list[dict] | None = None
