"""In-memory ledger of download requests."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from app.core.services.extraction import MediaRecord


class DownloadStatus(str, Enum):
    """Status of a download request."""

    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


class Quality(str, Enum):
    HD = 'hd'
    SD = 'sd'
    AUDIO = 'audio'


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DownloadRequest(BaseModel):
    """One submitted URL and what became of it."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    url: str
    quality: Quality = Quality.HD
    status: DownloadStatus = DownloadStatus.PENDING

    record: MediaRecord | None = Field(None, description='Resolved media, set once completed')
    error: str | None = None
    metadata: dict[str, Any] | None = None

    created_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None

    def mark_processing(self) -> 'DownloadRequest':
        self.status = DownloadStatus.PROCESSING
        return self

    def mark_completed(self, record: MediaRecord, metadata: dict[str, Any] | None = None) -> 'DownloadRequest':
        """Mark the request as resolved to ``record``."""
        self.status = DownloadStatus.COMPLETED
        self.completed_at = _now()
        self.record = record
        self.metadata = metadata
        return self

    def mark_failed(self, error: str) -> 'DownloadRequest':
        self.status = DownloadStatus.FAILED
        self.completed_at = _now()
        self.error = error
        return self


class DownloadLedger:
    """Download requests keyed by id.

    Only touched from the event loop, so no locking.
    """

    def __init__(self) -> None:
        self._requests: dict[str, DownloadRequest] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def create(self, url: str, quality: Quality = Quality.HD) -> DownloadRequest:
        request = DownloadRequest(url=url, quality=quality)
        self._requests[request.id] = request
        return request

    def get(self, request_id: str) -> DownloadRequest | None:
        return self._requests.get(request_id)

    def by_status(self, status: DownloadStatus) -> list[DownloadRequest]:
        return [r for r in self._requests.values() if r.status == status]
