"""Map provider payloads onto the single ``MediaRecord`` shape.

Field extraction is provider-specific and happens inside each provider; the
policies here (thumbnail precedence, placeholder text, locator preference)
are shared by all of them.
"""

import math

import structlog

from app.core.services.extraction.errors import ExtractionError, ExtractionErrorKind
from app.core.services.extraction.schemas import (
    LocatorKind,
    MediaLocator,
    MediaRecord,
    ProviderPayload,
    QualityTier,
)

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = 'Untitled video'
UNKNOWN_AUTHOR = '@unknown'


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _first(*values: str | None) -> str | None:
    for value in values:
        cleaned = _clean(value)
        if cleaned:
            return cleaned
    return None


def resolve_thumbnail(payload: ProviderPayload) -> str | None:
    """Pick a thumbnail, best candidate first.

    The author's avatar is the last resort: it is not a picture of the video,
    but an avatar keeps the result card from rendering empty.
    """
    first_image = payload.images[0] if payload.images else None
    return _first(
        payload.cover,
        payload.origin_cover,
        payload.static_cover,
        payload.dynamic_cover,
        payload.ai_dynamic_cover,
        first_image,
        payload.author_avatar,
    )


def normalize_author(handle: str | None) -> str:
    handle = _clean(handle)
    if not handle or handle == '@':
        return UNKNOWN_AUTHOR
    return handle if handle.startswith('@') else f'@{handle}'


def normalize_duration(value: float | None) -> float | None:
    if value is None:
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(duration) or duration < 0:
        return None
    return duration


def build_locators(payload: ProviderPayload) -> dict[QualityTier, MediaLocator]:
    """Choose a locator per tier.

    Explicit watermark-free and HD fields win over generic play fields. When
    a provider exposes a single rendition it is reused for both quality tiers.
    """
    referer = _clean(payload.referer)
    no_watermark = _clean(payload.no_watermark_url)
    hd_play = _clean(payload.hd_play_url)
    play = _clean(payload.play_url)
    audio = _clean(payload.audio_url)

    locators: dict[QualityTier, MediaLocator] = {}

    high = _first(hd_play, no_watermark, play)
    clean = _first(no_watermark, hd_play, play)
    standard = _first(play, high)

    if high:
        locators[QualityTier.HIGH_QUALITY] = MediaLocator.remote(high, referer)
        locators[QualityTier.WATERMARK_FREE] = MediaLocator.remote(clean or high, referer)
        locators[QualityTier.STANDARD_QUALITY] = MediaLocator.remote(standard or high, referer)
    elif payload.subprocess_video:
        sentinel = MediaLocator.subprocess()
        for tier in (QualityTier.HIGH_QUALITY, QualityTier.WATERMARK_FREE, QualityTier.STANDARD_QUALITY):
            locators[tier] = sentinel

    if audio:
        locators[QualityTier.AUDIO_ONLY] = MediaLocator.remote(audio, referer)
    elif payload.subprocess_audio:
        locators[QualityTier.AUDIO_ONLY] = MediaLocator.subprocess()

    return locators


def normalize(provider_name: str, source_url: str, payload: ProviderPayload) -> MediaRecord:
    """Build a ``MediaRecord`` from a provider payload.

    Raises:
        ExtractionError: PARSE_FAILURE when the payload has no usable locator
    """
    locators = build_locators(payload)
    if not locators:
        raise ExtractionError(
            ExtractionErrorKind.PARSE_FAILURE,
            'payload contains no usable media locator',
            provider=provider_name,
        )

    record = MediaRecord(
        source_url=source_url,
        provider=provider_name,
        title=_first(payload.title) or DEFAULT_TITLE,
        author_handle=normalize_author(payload.author_handle),
        thumbnail_url=resolve_thumbnail(payload),
        duration_seconds=normalize_duration(payload.duration),
        media_locators=locators,
    )
    logger.debug(
        'Normalized payload',
        provider=provider_name,
        tiers=sorted(tier.value for tier in locators),
        subprocess=any(loc.kind == LocatorKind.SUBPROCESS for loc in locators.values()),
    )
    return record
