"""Streaming bridge: turn a MediaRecord locator into bytes on a sink."""

import re
import unicodedata
from collections.abc import Callable

import structlog

from app.core.configs import app_config
from app.core.services.extraction.base_service import MediaFetcherInterface
from app.core.services.extraction.providers.ytdlp import YtDlpProvider
from app.core.services.extraction.schemas import LocatorKind, MediaLocator, MediaRecord, QualityTier
from app.core.services.ffmpeg import AudioExtractInput, FFmpegService
from app.core.services.streaming.schemas import (
    StreamError,
    StreamErrorKind,
    StreamKind,
    StreamOutcome,
)
from app.core.services.streaming.session import StreamSession
from app.core.services.streaming.sink import ByteSinkInterface
from app.core.services.streaming.sources import ByteSource, ProcessPipelineSource, RemoteUrlSource

logger = structlog.get_logger(__name__)

VIDEO_TIER_FALLBACK = (
    QualityTier.HIGH_QUALITY,
    QualityTier.WATERMARK_FREE,
    QualityTier.STANDARD_QUALITY,
)

VIDEO_CONTENT_TYPE = 'video/mp4'


def safe_filename(title: str, extension: str, max_length: int = 80) -> str:
    """Build an ASCII attachment filename from a media title.

    >>> safe_filename('Dance! 🕺 #fyp', 'mp4')
    'Dance-fyp.mp4'
    """
    ascii_title = unicodedata.normalize('NFKD', title).encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^A-Za-z0-9]+', '-', ascii_title).strip('-')[:max_length].rstrip('-')
    return f'{slug or "video"}.{extension}'


class StreamingBridge:
    """Materialize media bytes for a record and relay them to a sink.

    Remote locators are fetched through ``fetcher``; subprocess locators, and
    audio requests without a remote audio URL, run yt-dlp (piped into ffmpeg
    for audio) against the record's source URL.
    """

    def __init__(
        self,
        fetcher: MediaFetcherInterface,
        *,
        video_command: Callable[[str], list[str]] | None = None,
        audio_command: list[str] | None = None,
        session_timeout: float | None = None,
        idle_timeout: float | None = None,
        kill_grace: float | None = None,
        chunk_size: int | None = None,
    ):
        """Initialize bridge.

        Args:
            fetcher: Opens remote media URLs
            video_command: Builds the command that writes a source URL's video to stdout
            audio_command: Command that reads a container on stdin and writes audio to stdout
            session_timeout: Hard ceiling per stream session in seconds
            idle_timeout: Maximum wait for a single upstream chunk in seconds
            kill_grace: Seconds between SIGTERM and SIGKILL for pipeline stages
            chunk_size: Maximum chunk size read from upstream
        """
        self.fetcher = fetcher
        self.video_command = video_command or YtDlpProvider().build_stream_command
        self.audio_input = AudioExtractInput(bitrate=app_config.AUDIO_BITRATE)
        self.audio_command = audio_command or FFmpegService().build_audio_extract_command(self.audio_input)
        self.session_timeout = session_timeout
        self.idle_timeout = idle_timeout
        self.kill_grace = kill_grace
        self.chunk_size = chunk_size

    def select_video_locator(self, record: MediaRecord, tier: QualityTier | None = None) -> MediaLocator | None:
        order = [tier] if tier and tier != QualityTier.AUDIO_ONLY else []
        order.extend(t for t in VIDEO_TIER_FALLBACK if t not in order)
        for candidate in order:
            locator = record.locator(candidate)
            if locator is not None:
                return locator
        return None

    def _pipeline(self, stages: list[list[str]], content_type: str) -> ProcessPipelineSource:
        return ProcessPipelineSource(
            stages,
            content_type=content_type,
            chunk_size=self.chunk_size,
            kill_grace=self.kill_grace,
        )

    def _remote(self, locator: MediaLocator, content_type: str) -> RemoteUrlSource:
        return RemoteUrlSource(
            self.fetcher,
            locator.url,
            referer=locator.referer,
            content_type=content_type,
            chunk_size=self.chunk_size,
        )

    def build_source(
        self, record: MediaRecord, kind: StreamKind, tier: QualityTier | None = None
    ) -> tuple[ByteSource, str]:
        """Pick a locator for ``kind`` and build the matching byte source.

        Returns:
            The unopened source and the download filename to announce for it

        Raises:
            StreamError: If the record has nothing streamable for ``kind``
        """
        if kind == StreamKind.AUDIO:
            locator = record.locator(QualityTier.AUDIO_ONLY)
            if locator is not None and locator.kind == LocatorKind.REMOTE_URL:
                source: ByteSource = self._remote(locator, 'audio/mpeg')
                extension = 'mp3'
            else:
                # Audio is cut from the video stream when no remote track exists
                source = self._pipeline(
                    [self.video_command(record.source_url), self.audio_command],
                    self.audio_input.content_type,
                )
                extension = self.audio_input.extension
            return source, safe_filename(record.title, extension)

        locator = self.select_video_locator(record, tier)
        if locator is None:
            raise StreamError(StreamErrorKind.UPSTREAM_UNAVAILABLE, 'no video locator available for this media')

        if locator.kind == LocatorKind.REMOTE_URL:
            source = self._remote(locator, VIDEO_CONTENT_TYPE)
        else:
            source = self._pipeline([self.video_command(record.source_url)], VIDEO_CONTENT_TYPE)
        return source, safe_filename(record.title, 'mp4')

    async def stream(
        self,
        record: MediaRecord,
        kind: StreamKind,
        sink: ByteSinkInterface,
        tier: QualityTier | None = None,
    ) -> StreamOutcome:
        """Stream one media variant of ``record`` into ``sink``.

        Returns:
            COMPLETED, or CANCELLED when the client disconnected

        Raises:
            StreamError: With kind UPSTREAM_UNAVAILABLE, TIMEOUT or ABORTED
        """
        try:
            source, filename = self.build_source(record, kind, tier)
        except StreamError as e:
            logger.warning('No streamable source', url=record.source_url, kind=kind.value, error=str(e))
            await sink.send_error(e.http_status, e.message)
            raise

        logger.info(
            'Streaming media',
            url=record.source_url,
            provider=record.provider,
            kind=kind.value,
            source=type(source).__name__,
        )
        session = StreamSession(
            source,
            sink,
            filename=filename,
            session_timeout=self.session_timeout,
            idle_timeout=self.idle_timeout,
        )
        return await session.run()
