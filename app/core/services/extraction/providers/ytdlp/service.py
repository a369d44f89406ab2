"""yt-dlp provider - metadata via ``--dump-json``, bytes via ``--output -``."""

import asyncio
import json

import structlog
from pydantic import ValidationError

from app.core.configs import app_config
from app.core.services.extraction.base_service import ExtractionProviderInterface
from app.core.services.extraction.errors import ExtractionError, ExtractionErrorKind
from app.core.services.extraction.providers.ytdlp.schemas import YtDlpInfo
from app.core.services.extraction.schemas import ProviderPayload

logger = structlog.get_logger(__name__)

# Progressive HTTP mp4 first; HLS segments do not survive being piped to stdout
VIDEO_FORMAT = 'best[protocol^=http][ext=mp4]/best[ext=mp4]/mp4/best'

# Checked in order against lowercased stderr
STDERR_KINDS: list[tuple[tuple[str, ...], ExtractionErrorKind]] = [
    (('unsupported url',), ExtractionErrorKind.UNSUPPORTED),
    (('http error 429', 'too many requests', 'rate limit', 'rate-limit'), ExtractionErrorKind.RATE_LIMITED),
    (
        ('http error 404', 'not found', 'private', 'unavailable', 'removed', 'does not exist'),
        ExtractionErrorKind.NOT_FOUND,
    ),
]


def classify_stderr(stderr: str) -> ExtractionErrorKind:
    text = stderr.lower()
    for needles, kind in STDERR_KINDS:
        if any(needle in text for needle in needles):
            return kind
    return ExtractionErrorKind.UNAVAILABLE


def _error_line(stderr: str) -> str:
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    for line in reversed(lines):
        if line.startswith('ERROR:'):
            return line
    return lines[-1] if lines else 'yt-dlp failed without output'


class YtDlpProvider(ExtractionProviderInterface):
    """Extract metadata with the yt-dlp command-line tool.

    Media locators are subprocess sentinels: format URLs reported by yt-dlp
    are often bound to cookies and headers of the extracting process, so the
    bytes are produced by running yt-dlp again at stream time.
    """

    name = 'ytdlp'

    def __init__(self, binary: str | None = None, timeout: float | None = None):
        self.binary = binary or app_config.YTDLP_BINARY
        self.timeout = timeout if timeout is not None else app_config.YTDLP_TIMEOUT_SECONDS

    def build_info_command(self, url: str) -> list[str]:
        return [self.binary, '--dump-json', '--no-playlist', '--no-warnings', url]

    def build_stream_command(self, url: str) -> list[str]:
        """Command that writes the media bytes of ``url`` to stdout."""
        return [
            self.binary,
            '--format',
            VIDEO_FORMAT,
            '--output',
            '-',
            '--no-playlist',
            '--no-part',
            '--no-warnings',
            '--quiet',
            url,
        ]

    async def fetch_payload(self, url: str) -> ProviderPayload:
        logger.info('Extracting with yt-dlp', url=url)
        stdout = await self._run(self.build_info_command(url))
        info = self._parse_info(stdout)

        if not info.has_media:
            raise ExtractionError(ExtractionErrorKind.PARSE_FAILURE, 'yt-dlp reported no formats', provider=self.name)

        logger.debug('yt-dlp extracted info', title=info.title, uploader=info.author, duration=info.duration)

        candidates = info.thumbnail_candidates
        return ProviderPayload(
            title=info.title,
            author_handle=info.author,
            cover=info.thumbnail,
            images=candidates,
            duration=info.duration,
            subprocess_video=info.has_video,
            subprocess_audio=info.has_audio,
        )

    def _parse_info(self, stdout: bytes) -> YtDlpInfo:
        text = stdout.decode('utf-8', errors='replace').strip()
        if not text:
            raise ExtractionError(ExtractionErrorKind.PARSE_FAILURE, 'yt-dlp produced no output', provider=self.name)
        # One JSON document per line; a single video yields one line
        first_line = text.splitlines()[0]
        try:
            return YtDlpInfo.model_validate(json.loads(first_line))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ExtractionError(
                ExtractionErrorKind.PARSE_FAILURE, f'invalid yt-dlp JSON: {e}', provider=self.name
            ) from e

    async def _run(self, command: list[str]) -> bytes:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExtractionError(
                ExtractionErrorKind.UNAVAILABLE, f'could not run {self.binary}: {e}', provider=self.name
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                ExtractionErrorKind.TIMEOUT, f'yt-dlp did not finish within {self.timeout}s', provider=self.name
            ) from e
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            stderr_text = stderr.decode('utf-8', errors='replace')
            logger.debug('yt-dlp stderr', stderr=stderr_text[-2000:])
            raise ExtractionError(classify_stderr(stderr_text), _error_line(stderr_text), provider=self.name)

        return stdout
