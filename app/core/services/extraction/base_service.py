from abc import ABC, abstractmethod
from typing import ClassVar
from urllib.parse import urlparse

import aiohttp

from app.core.services.extraction.normalizer import normalize
from app.core.services.extraction.schemas import MediaRecord, ProviderPayload


def host_matches(url: str, hosts: tuple[str, ...] | list[str]) -> bool:
    """Check that ``url`` is http(s) and its host is one of ``hosts`` or a subdomain.

    An empty ``hosts`` accepts any http(s) URL.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return False
    if not hosts:
        return True
    hostname = parsed.hostname.lower()
    return any(hostname == host or hostname.endswith(f'.{host}') for host in hosts)


class ExtractionProviderInterface(ABC):
    """Interface for media extraction providers."""

    name: ClassVar[str]
    hosts: ClassVar[tuple[str, ...]] = ()

    async def close(self) -> None:  # noqa: B027
        """Close any resources held by the provider.

        Override in implementations that need cleanup.
        """

    def supports(self, url: str) -> bool:
        return host_matches(url, self.hosts)

    @abstractmethod
    async def fetch_payload(self, url: str) -> ProviderPayload:
        """Fetch and decode the provider's view of a media URL.

        Args:
            url: Source social-video URL

        Returns:
            ProviderPayload ready for normalization

        Raises:
            ExtractionError: On any upstream, timeout or parse failure
        """
        raise NotImplementedError

    async def extract(self, url: str) -> MediaRecord:
        """Fetch and normalize in one step, bypassing fallback."""
        payload = await self.fetch_payload(url)
        return normalize(self.name, url, payload)


class MediaFetcherInterface(ABC):
    """Opens remote media bodies for streaming."""

    @abstractmethod
    async def open_media(self, url: str, referer: str | None = None) -> aiohttp.ClientResponse:
        """Issue a GET for a media URL and return the unread response.

        The caller owns the response and must close it.
        """
        raise NotImplementedError
