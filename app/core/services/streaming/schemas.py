"""Streaming service schemas and errors."""

from dataclasses import dataclass
from enum import Enum

from app.core.services.extraction.errors import MediaPipelineError


class StreamKind(str, Enum):
    """What the caller wants delivered."""

    VIDEO = 'video'
    AUDIO = 'audio'


class StreamOutcome(str, Enum):
    """Terminal state of a stream session."""

    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'


class StreamErrorKind(str, Enum):
    UPSTREAM_UNAVAILABLE = 'upstream_unavailable'
    TIMEOUT = 'timeout'
    ABORTED = 'aborted'


STATUS_FOR_KIND = {
    StreamErrorKind.UPSTREAM_UNAVAILABLE: 502,
    StreamErrorKind.TIMEOUT: 504,
    StreamErrorKind.ABORTED: 500,
}


class StreamError(MediaPipelineError):
    """A stream session ended in failure."""

    def __init__(self, kind: StreamErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def http_status(self) -> int:
        return STATUS_FOR_KIND[self.kind]

    def __str__(self) -> str:
        return f'{self.kind.value}: {self.message}'


@dataclass
class StreamHeaders:
    """Response headers derived from the upstream source."""

    content_type: str
    filename: str
    content_length: int | None = None

    def to_http(self) -> dict[str, str]:
        headers = {
            'Content-Type': self.content_type,
            'Content-Disposition': f'attachment; filename="{self.filename}"',
            'Cache-Control': 'no-cache',
        }
        if self.content_length is not None:
            headers['Content-Length'] = str(self.content_length)
        return headers
