"""Social video extraction service.

Resolves a share URL to a normalized ``MediaRecord`` by trying several
providers (yt-dlp, hosted APIs, page scraping) in a fixed order.
"""

from app.core.services.extraction.base_service import ExtractionProviderInterface, MediaFetcherInterface
from app.core.services.extraction.errors import (
    AllProvidersFailed,
    ExtractionError,
    ExtractionErrorKind,
    MediaPipelineError,
)
from app.core.services.extraction.normalizer import normalize
from app.core.services.extraction.orchestrator import FallbackOrchestrator
from app.core.services.extraction.schemas import (
    ExtractionAttempt,
    LocatorKind,
    MediaLocator,
    MediaRecord,
    ProviderPayload,
    QualityTier,
)
from app.core.services.extraction.service import build_providers, get_extraction_service

__all__ = [
    'AllProvidersFailed',
    'ExtractionAttempt',
    'ExtractionError',
    'ExtractionErrorKind',
    'ExtractionProviderInterface',
    'FallbackOrchestrator',
    'LocatorKind',
    'MediaFetcherInterface',
    'MediaLocator',
    'MediaPipelineError',
    'MediaRecord',
    'ProviderPayload',
    'QualityTier',
    'build_providers',
    'get_extraction_service',
    'normalize',
]
