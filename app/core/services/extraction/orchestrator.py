"""Sequential provider fallback."""

import time

import structlog

from app.core.services.extraction.base_service import ExtractionProviderInterface
from app.core.services.extraction.errors import (
    AllProvidersFailed,
    ExtractionError,
    ExtractionErrorKind,
)
from app.core.services.extraction.normalizer import normalize
from app.core.services.extraction.schemas import ExtractionAttempt, MediaRecord

logger = structlog.get_logger(__name__)


class FallbackOrchestrator:
    """Resolve a URL by trying providers strictly in the given order.

    Providers are awaited one at a time; the next one starts only after the
    previous has failed. There are no retries within a provider, so the worst
    case latency is the sum of the provider timeouts.
    """

    def __init__(self, providers: list[ExtractionProviderInterface]):
        if not providers:
            raise ValueError('At least one extraction provider is required')
        self.providers = list(providers)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    async def resolve(self, url: str) -> MediaRecord:
        """Resolve a social-video URL to a normalized record.

        Args:
            url: Source URL as submitted by the user

        Returns:
            MediaRecord from the first provider that yields a usable locator

        Raises:
            AllProvidersFailed: Every provider failed; carries one attempt per provider
        """
        attempts: list[ExtractionAttempt] = []
        logger.info('Resolving media URL', url=url, providers=[p.name for p in self.providers])

        for provider in self.providers:
            started = time.monotonic()
            try:
                if not provider.supports(url):
                    raise ExtractionError(ExtractionErrorKind.UNSUPPORTED, 'URL not supported by provider')

                payload = await provider.fetch_payload(url)
                if not payload.has_locators():
                    raise ExtractionError(ExtractionErrorKind.PARSE_FAILURE, 'payload contains no media locator')

                record = normalize(provider.name, url, payload)

            except ExtractionError as e:
                attempt = ExtractionAttempt(
                    provider=provider.name,
                    url=url,
                    succeeded=False,
                    error_kind=e.kind,
                    message=e.message,
                    elapsed_seconds=time.monotonic() - started,
                )
                attempts.append(attempt)
                logger.warning(
                    'Provider failed, trying next',
                    provider=provider.name,
                    error_kind=e.kind.value,
                    error=e.message,
                    elapsed=round(attempt.elapsed_seconds, 3),
                )
                continue

            except Exception as e:
                attempt = ExtractionAttempt(
                    provider=provider.name,
                    url=url,
                    succeeded=False,
                    error_kind=ExtractionErrorKind.PARSE_FAILURE,
                    message=f'{type(e).__name__}: {e}',
                    elapsed_seconds=time.monotonic() - started,
                )
                attempts.append(attempt)
                logger.exception('Provider raised unexpectedly, trying next', provider=provider.name)
                continue

            attempts.append(
                ExtractionAttempt(
                    provider=provider.name,
                    url=url,
                    succeeded=True,
                    elapsed_seconds=time.monotonic() - started,
                )
            )
            logger.info(
                'Resolved media URL',
                url=url,
                provider=provider.name,
                attempts=len(attempts),
                tiers=sorted(tier.value for tier in record.media_locators),
            )
            return record

        logger.error('All providers failed', url=url, attempts=len(attempts))
        raise AllProvidersFailed(url, attempts)
