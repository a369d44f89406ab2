"""ssstik.io hosted form API provider.

The endpoint answers a form POST with an HTML fragment rather than JSON, so
the result card is parsed with BeautifulSoup.
"""

import httpx
import structlog
from bs4 import BeautifulSoup

from app.core.configs import app_config
from app.core.services.extraction.base_service import ExtractionProviderInterface
from app.core.services.extraction.errors import (
    ExtractionError,
    ExtractionErrorKind,
    error_kind_for_status,
)
from app.core.services.extraction.schemas import ProviderPayload

logger = structlog.get_logger(__name__)


def _text(node) -> str | None:
    if node is None:
        return None
    value = node.get_text(strip=True)
    return value or None


def _href(node) -> str | None:
    if node is None:
        return None
    href = node.get('href')
    if not href or href.startswith('#') or href.startswith('javascript'):
        return None
    return href


def _find_link(soup: BeautifulSoup, classes: tuple[str, ...], labels: tuple[str, ...]):
    for css_class in classes:
        link = soup.find('a', class_=css_class)
        if _href(link):
            return link
    for link in soup.find_all('a'):
        label = link.get_text(' ', strip=True).lower()
        if any(needle in label for needle in labels) and _href(link):
            return link
    return None


def parse_result_html(html: str) -> ProviderPayload:
    """Parse the ssstik.io result fragment.

    Raises:
        ExtractionError: NOT_FOUND / RATE_LIMITED when the fragment is an error
            notice, PARSE_FAILURE when no download link can be found
    """
    soup = BeautifulSoup(html, 'html.parser')

    hd_link = _find_link(soup, ('without_watermark_hd',), ('hd',))
    video_link = _find_link(soup, ('without_watermark',), ('without watermark', 'download mp4'))
    audio_link = _find_link(soup, ('music',), ('mp3',))

    if not (video_link or hd_link or audio_link):
        lowered = soup.get_text(' ', strip=True).lower()
        if 'limit' in lowered or 'too many' in lowered:
            raise ExtractionError(
                ExtractionErrorKind.RATE_LIMITED, 'ssstik.io request limit reached', provider='ssstik'
            )
        if 'not found' in lowered or 'private' in lowered or 'deleted' in lowered:
            raise ExtractionError(
                ExtractionErrorKind.NOT_FOUND, 'ssstik.io could not find the video', provider='ssstik'
            )
        raise ExtractionError(
            ExtractionErrorKind.PARSE_FAILURE, 'no download link in ssstik.io response', provider='ssstik'
        )

    cover = soup.find('img', class_='result-image') or soup.find('img', class_='result_image')
    avatar = soup.find('img', class_='result_author')

    return ProviderPayload(
        title=_text(soup.find('p', class_='maintext')),
        author_handle=_text(soup.find('h2')),
        author_avatar=avatar.get('src') if avatar else None,
        cover=cover.get('src') if cover else None,
        no_watermark_url=_href(video_link) or _href(hd_link),
        hd_play_url=_href(hd_link),
        play_url=_href(video_link),
        audio_url=_href(audio_link),
        referer='https://ssstik.io/',
    )


class SsstikProvider(ExtractionProviderInterface):
    """Extract TikTok media through ssstik.io."""

    name = 'ssstik'
    hosts = ('tiktok.com',)

    BASE_URL = 'https://ssstik.io'

    def __init__(self, timeout: float | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout if timeout is not None else app_config.SSSTIK_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers={
                    'User-Agent': app_config.USER_AGENT,
                    'Referer': f'{self.BASE_URL}/',
                    'Origin': self.BASE_URL,
                },
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_payload(self, url: str) -> ProviderPayload:
        logger.info('Extracting with ssstik.io', url=url)
        client = await self._get_client()

        try:
            response = await client.post(
                '/abc',
                params={'url': 'dl'},
                data={'id': url, 'locale': 'en', 'tt': '1'},
            )
        except httpx.TimeoutException as e:
            raise ExtractionError(
                ExtractionErrorKind.TIMEOUT, f'ssstik.io timed out after {self.timeout}s', provider=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ExtractionError(
                ExtractionErrorKind.UNAVAILABLE, str(e) or type(e).__name__, provider=self.name
            ) from e

        if response.status_code != 200:
            raise ExtractionError(
                error_kind_for_status(response.status_code),
                f'ssstik.io API error: {response.status_code}',
                provider=self.name,
            )

        payload = parse_result_html(response.text)
        logger.debug('ssstik.io extracted info', title=payload.title, author=payload.author_handle)
        return payload
