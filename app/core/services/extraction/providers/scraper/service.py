"""Scrape TikTok pages for embedded state.

Last-resort provider: the page layout changes without notice, so several
embedding formats are tried in turn. The same HTTP session also serves media
bodies to the streaming bridge, which lets CDN requests reuse the cookies the
page visit set.
"""

import html
import json
import re
from typing import Any

import aiohttp
import structlog
from bs4 import BeautifulSoup
from pydantic import ValidationError

from app.core.configs import app_config
from app.core.services.extraction.base_service import ExtractionProviderInterface, MediaFetcherInterface
from app.core.services.extraction.errors import (
    ExtractionError,
    ExtractionErrorKind,
    error_kind_for_status,
)
from app.core.services.extraction.providers.scraper.schemas import TikTokAuthor, TikTokItem
from app.core.services.extraction.schemas import ProviderPayload

logger = structlog.get_logger(__name__)

TIKTOK_REFERER = 'https://www.tiktok.com/'

SIGI_ASSIGNMENT = re.compile(r"window\['SIGI_STATE'\]\s*=\s*({.+?});\s*(?:window\[|</script>)", re.DOTALL)
PLAY_ADDR = re.compile(r'"playAddr"\s*:\s*"((?:[^"\\]|\\.)+)"')

PAGE_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'Upgrade-Insecure-Requests': '1',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
}


def unescape_url(value: str | None) -> str | None:
    """Undo JS string and HTML entity escaping found in embedded URLs."""
    if not value:
        return None
    if '\\' in value:
        try:
            value = json.loads(f'"{value}"')
        except json.JSONDecodeError:
            value = value.replace('\\u002F', '/').replace('\\/', '/')
    return html.unescape(value)


def _item_to_payload(item: TikTokItem, avatar: str | None = None) -> ProviderPayload:
    video = item.video
    play = unescape_url(video.playAddr)
    download = unescape_url(video.downloadAddr)
    if isinstance(item.author, TikTokAuthor):
        avatar = avatar or item.author.avatar
    images = item.image_urls
    return ProviderPayload(
        title=item.desc,
        author_handle=item.author_handle,
        author_avatar=unescape_url(avatar),
        cover=unescape_url(video.cover),
        origin_cover=unescape_url(video.originCover),
        dynamic_cover=unescape_url(video.dynamicCover),
        images=[url for url in (unescape_url(i) for i in images) if url],
        duration=video.duration,
        no_watermark_url=play,
        play_url=play or download,
        audio_url=unescape_url(item.music.playUrl) if item.music else None,
        referer=TIKTOK_REFERER,
    )


def _validate_item(raw: Any) -> TikTokItem | None:
    if not isinstance(raw, dict):
        return None
    try:
        return TikTokItem.model_validate(raw)
    except ValidationError as e:
        logger.debug('Embedded item did not validate', error=str(e))
        return None


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _from_sigi_state(state: dict[str, Any]) -> ProviderPayload | None:
    item_module = state.get('ItemModule')
    if not isinstance(item_module, dict) or not item_module:
        return None
    item = _validate_item(next(iter(item_module.values())))
    if item is None:
        return None
    avatar = None
    users = _dict(_dict(state.get('UserModule')).get('users'))
    if isinstance(item.author, str) and isinstance(users.get(item.author), dict):
        user = users[item.author]
        avatar = user.get('avatarMedium') or user.get('avatarThumb')
    return _item_to_payload(item, avatar)


def _from_universal_data(data: dict[str, Any]) -> ProviderPayload | None:
    scope = _dict(data.get('__DEFAULT_SCOPE__'))
    detail = _dict(scope.get('webapp.video-detail'))
    raw = _dict(detail.get('itemInfo')).get('itemStruct')
    item = _validate_item(raw)
    return _item_to_payload(item) if item else None


def _load_json(text: str | None) -> dict[str, Any] | None:
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_page(page_html: str) -> ProviderPayload | None:
    """Extract a payload from a TikTok page, trying each embedding in turn.

    Returns None when nothing recognizable is embedded. The OpenGraph fallback
    carries metadata only, so its payload usually has no locator.
    """
    soup = BeautifulSoup(page_html, 'html.parser')

    # 1. SIGI_STATE, either as a JSON script tag or a window assignment
    sigi_tag = soup.find('script', id='SIGI_STATE')
    state = _load_json(sigi_tag.string if sigi_tag else None)
    if state is None:
        match = SIGI_ASSIGNMENT.search(page_html)
        state = _load_json(match.group(1)) if match else None
    if state is not None:
        payload = _from_sigi_state(state)
        if payload is not None:
            logger.debug('Parsed SIGI_STATE')
            return payload

    # 2. Rehydration blob used by the current web app
    universal_tag = soup.find('script', id='__UNIVERSAL_DATA_FOR_REHYDRATION__')
    universal = _load_json(universal_tag.string if universal_tag else None)
    if universal is not None:
        payload = _from_universal_data(universal)
        if payload is not None:
            logger.debug('Parsed universal rehydration data')
            return payload

    # 3. OpenGraph metadata, plus any bare playAddr left in inline scripts
    og_title = soup.find('meta', property='og:title')
    og_image = soup.find('meta', property='og:image')
    og_video = soup.find('meta', property='og:video')
    play_match = PLAY_ADDR.search(page_html)
    play = unescape_url(play_match.group(1)) if play_match else None
    video = og_video.get('content') if og_video else None
    title = og_title.get('content') if og_title else None
    if not title and soup.title:
        title = soup.title.get_text(strip=True)

    if not (title or og_image or video or play):
        return None

    logger.debug('Falling back to OpenGraph metadata', has_video=bool(video or play))
    return ProviderPayload(
        title=title,
        cover=unescape_url(og_image.get('content')) if og_image else None,
        play_url=play or unescape_url(video),
        referer=TIKTOK_REFERER,
    )


class PageScrapeProvider(ExtractionProviderInterface, MediaFetcherInterface):
    """Extract media by fetching the TikTok page itself."""

    name = 'scraper'
    hosts = ('tiktok.com',)

    def __init__(self, session: aiohttp.ClientSession | None = None, timeout: float | None = None):
        """Initialize scraper.

        Args:
            session: Optional aiohttp session. If not provided, one is created on first use.
            timeout: Page fetch timeout in seconds
        """
        self.session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else app_config.SCRAPER_TIMEOUT_SECONDS
        )
        self.media_timeout = aiohttp.ClientTimeout(
            total=None,
            connect=app_config.STREAM_CONNECT_TIMEOUT_SECONDS,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(headers={'User-Agent': app_config.USER_AGENT})
        return self.session

    async def fetch_payload(self, url: str) -> ProviderPayload:
        logger.info('Scraping TikTok page', url=url)
        page_html = await self._fetch_page(url)

        payload = parse_page(page_html)
        if payload is None:
            raise ExtractionError(
                ExtractionErrorKind.PARSE_FAILURE, 'no embedded video data in page', provider=self.name
            )
        return payload

    async def _fetch_page(self, url: str) -> str:
        session = self._get_session()
        try:
            async with session.get(
                url,
                allow_redirects=True,
                headers={'User-Agent': app_config.USER_AGENT, **PAGE_HEADERS},
                timeout=self.timeout,
            ) as response:
                if response.status != 200:
                    raise ExtractionError(
                        error_kind_for_status(response.status),
                        f'HTTP {response.status}: {response.reason}',
                        provider=self.name,
                    )
                return await response.text(errors='replace')
        except TimeoutError as e:
            raise ExtractionError(
                ExtractionErrorKind.TIMEOUT,
                f'page fetch timed out after {self.timeout.total}s',
                provider=self.name,
            ) from e
        except aiohttp.ClientError as e:
            raise ExtractionError(
                ExtractionErrorKind.UNAVAILABLE, str(e) or type(e).__name__, provider=self.name
            ) from e

    async def open_media(self, url: str, referer: str | None = None) -> aiohttp.ClientResponse:
        session = self._get_session()
        logger.debug('Opening media', url=url[:100])
        return await session.get(
            url,
            allow_redirects=True,
            headers={
                'User-Agent': app_config.USER_AGENT,
                'Referer': referer or TIKTOK_REFERER,
                'Accept': 'video/mp4,audio/*,application/octet-stream,*/*',
                # Relayed bytes must match the announced Content-Length
                'Accept-Encoding': 'identity',
            },
            timeout=self.media_timeout,
        )
