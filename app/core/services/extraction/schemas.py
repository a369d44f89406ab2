"""Extraction service schemas.

``ProviderPayload`` is the narrow contract every provider hands to the
normalizer; ``MediaRecord`` is the normalized, immutable result.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.services.extraction.errors import ExtractionErrorKind


class QualityTier(str, Enum):
    """Media variants a record can point at."""

    HIGH_QUALITY = 'high_quality'
    STANDARD_QUALITY = 'standard_quality'
    AUDIO_ONLY = 'audio_only'
    WATERMARK_FREE = 'watermark_free'


class LocatorKind(str, Enum):
    """How the bytes behind a locator are materialized."""

    REMOTE_URL = 'remote_url'
    SUBPROCESS = 'subprocess'


class MediaLocator(BaseModel):
    """Reference to retrievable media.

    A ``subprocess`` locator carries no URL: the streaming bridge runs the
    extraction tool against the record's ``source_url`` instead.
    """

    model_config = ConfigDict(frozen=True)

    kind: LocatorKind
    url: str | None = Field(None, description='Fetchable media URL (remote_url only)')
    referer: str | None = Field(None, description='Referer the media host expects')

    @model_validator(mode='after')
    def _check_url(self) -> 'MediaLocator':
        if self.kind == LocatorKind.REMOTE_URL and not self.url:
            raise ValueError('remote_url locator requires a url')
        return self

    @classmethod
    def remote(cls, url: str, referer: str | None = None) -> 'MediaLocator':
        return cls(kind=LocatorKind.REMOTE_URL, url=url, referer=referer)

    @classmethod
    def subprocess(cls) -> 'MediaLocator':
        return cls(kind=LocatorKind.SUBPROCESS)


class MediaRecord(BaseModel):
    """Normalized result of a successful extraction."""

    model_config = ConfigDict(frozen=True)

    source_url: str = Field(description='Original input URL')
    provider: str = Field(description='Provider that produced this record')
    title: str = Field(min_length=1)
    author_handle: str = Field(min_length=1)
    thumbnail_url: str | None = None
    duration_seconds: float | None = None
    media_locators: dict[QualityTier, MediaLocator] = Field(min_length=1)

    def locator(self, tier: QualityTier) -> MediaLocator | None:
        return self.media_locators.get(tier)


class ProviderPayload(BaseModel):
    """Provider output after provider-private decoding, before normalization.

    Every field is optional; providers fill what their upstream exposes.
    """

    title: str | None = None
    author_handle: str | None = None
    author_avatar: str | None = None

    # Thumbnail candidates
    cover: str | None = None
    origin_cover: str | None = None
    static_cover: str | None = None
    dynamic_cover: str | None = None
    ai_dynamic_cover: str | None = None
    images: list[str] = Field(default_factory=list)

    duration: float | None = None

    # Media candidates
    no_watermark_url: str | None = None
    hd_play_url: str | None = None
    play_url: str | None = None
    audio_url: str | None = None
    subprocess_video: bool = False
    subprocess_audio: bool = False
    referer: str | None = None

    def has_locators(self) -> bool:
        """Whether any field could become a media locator."""
        return bool(
            _present(self.no_watermark_url)
            or _present(self.hd_play_url)
            or _present(self.play_url)
            or _present(self.audio_url)
            or self.subprocess_video
            or self.subprocess_audio
        )


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass
class ExtractionAttempt:
    """One provider's try within a single ``resolve()`` call."""

    provider: str
    url: str
    succeeded: bool
    error_kind: ExtractionErrorKind | None = None
    message: str | None = None
    elapsed_seconds: float = 0.0
