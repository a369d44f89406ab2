"""Exception hierarchy for the extraction pipeline.

Provider-level failures are raised as :class:`ExtractionError` and are always
recoverable by the orchestrator moving on to the next provider. Only
:class:`AllProvidersFailed` ever reaches callers of ``resolve()``.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.services.extraction.schemas import ExtractionAttempt


class MediaPipelineError(Exception):
    """Base class for every error raised by the media pipeline."""


class ExtractionErrorKind(str, Enum):
    """Why a single provider attempt failed."""

    NOT_FOUND = 'not_found'
    RATE_LIMITED = 'rate_limited'
    PARSE_FAILURE = 'parse_failure'
    TIMEOUT = 'timeout'
    UNSUPPORTED = 'unsupported'
    UNAVAILABLE = 'unavailable'


class ExtractionError(MediaPipelineError):
    """A provider could not produce a usable payload."""

    def __init__(self, kind: ExtractionErrorKind, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        prefix = f'[{self.provider}] ' if self.provider else ''
        return f'{prefix}{self.kind.value}: {self.message}'


def error_kind_for_status(status: int) -> ExtractionErrorKind:
    """Map an upstream HTTP status code to an extraction error kind."""
    if status in (404, 410):
        return ExtractionErrorKind.NOT_FOUND
    if status == 429:
        return ExtractionErrorKind.RATE_LIMITED
    return ExtractionErrorKind.UNAVAILABLE


class AllProvidersFailed(MediaPipelineError):
    """Every configured provider failed for a URL."""

    user_message = 'We could not process this link. Please check the URL and try again.'

    def __init__(self, url: str, attempts: list[ExtractionAttempt]) -> None:
        self.url = url
        self.attempts = attempts
        summary = '; '.join(f'{a.provider}={a.error_kind.value if a.error_kind else "ok"}' for a in attempts)
        super().__init__(f'All extraction providers failed for {url} ({summary})')
