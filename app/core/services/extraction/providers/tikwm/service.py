"""tikwm.com hosted API provider."""

from urllib.parse import urljoin

import httpx
import structlog
from pydantic import ValidationError

from app.core.configs import app_config
from app.core.services.extraction.base_service import ExtractionProviderInterface
from app.core.services.extraction.errors import (
    ExtractionError,
    ExtractionErrorKind,
    error_kind_for_status,
)
from app.core.services.extraction.providers.tikwm.schemas import TikwmResponse, TikwmVideo
from app.core.services.extraction.schemas import ProviderPayload

logger = structlog.get_logger(__name__)


class TikwmProvider(ExtractionProviderInterface):
    """Extract TikTok media through the public tikwm.com JSON API."""

    name = 'tikwm'
    hosts = ('tiktok.com',)

    BASE_URL = 'https://www.tikwm.com'

    def __init__(self, timeout: float | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout if timeout is not None else app_config.TIKWM_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers={
                    'User-Agent': app_config.USER_AGENT,
                    'Referer': f'{self.BASE_URL}/',
                    'Accept': 'application/json',
                },
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _absolute(self, value: str | None) -> str | None:
        """tikwm returns some media as host-relative paths."""
        if not value:
            return None
        if value.startswith('/'):
            return urljoin(self.BASE_URL, value)
        return value

    async def fetch_payload(self, url: str) -> ProviderPayload:
        logger.info('Extracting with tikwm.com', url=url)
        client = await self._get_client()

        try:
            response = await client.get('/api/', params={'url': url, 'hd': 1})
        except httpx.TimeoutException as e:
            raise ExtractionError(
                ExtractionErrorKind.TIMEOUT, f'tikwm.com timed out after {self.timeout}s', provider=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ExtractionError(
                ExtractionErrorKind.UNAVAILABLE, str(e) or type(e).__name__, provider=self.name
            ) from e

        if response.status_code != 200:
            raise ExtractionError(
                error_kind_for_status(response.status_code),
                f'tikwm.com API error: {response.status_code}',
                provider=self.name,
            )

        try:
            envelope = TikwmResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExtractionError(
                ExtractionErrorKind.PARSE_FAILURE, f'invalid tikwm.com response: {e}', provider=self.name
            ) from e

        if envelope.code != 0:
            message = envelope.msg or f'code {envelope.code}'
            kind = ExtractionErrorKind.RATE_LIMITED if 'limit' in message.lower() else ExtractionErrorKind.NOT_FOUND
            raise ExtractionError(kind, f'tikwm.com error: {message}', provider=self.name)

        try:
            video = TikwmVideo.model_validate(envelope.data)
        except ValidationError as e:
            raise ExtractionError(
                ExtractionErrorKind.PARSE_FAILURE, f'invalid tikwm.com data: {e}', provider=self.name
            ) from e

        logger.debug('tikwm.com extracted info', title=video.title, author=video.author.unique_id, cover=video.cover)

        play = self._absolute(video.play)
        hdplay = self._absolute(video.hdplay)
        return ProviderPayload(
            title=video.title,
            author_handle=video.author.unique_id or video.author.nickname,
            author_avatar=self._absolute(video.author.avatar),
            cover=self._absolute(video.cover),
            origin_cover=self._absolute(video.origin_cover),
            ai_dynamic_cover=self._absolute(video.ai_dynamic_cover),
            images=[img for img in (self._absolute(i) for i in video.images) if img],
            duration=video.duration,
            no_watermark_url=hdplay or play,
            hd_play_url=hdplay,
            play_url=play,
            audio_url=self._absolute(video.music),
            referer=f'{self.BASE_URL}/',
        )
