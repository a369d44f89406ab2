"""Resolve-then-stream wiring shared by the web app and scripts."""

from dataclasses import dataclass, field

from app.core.services.extraction import FallbackOrchestrator, build_providers
from app.core.services.extraction.providers.scraper import PageScrapeProvider
from app.core.services.streaming import StreamingBridge


@dataclass
class MediaPipeline:
    orchestrator: FallbackOrchestrator
    bridge: StreamingBridge
    extra_resources: list[PageScrapeProvider] = field(default_factory=list)

    async def close(self) -> None:
        await self.orchestrator.close()
        for resource in self.extra_resources:
            await resource.close()


def build_pipeline(order: list[str] | None = None, **bridge_options) -> MediaPipeline:
    """Build an orchestrator and a bridge that share one media HTTP session.

    The scraper's session doubles as the media fetcher so CDN requests carry
    cookies set while scraping. When the scraper is not in ``order`` a
    standalone instance is created for fetching only.

    Args:
        order: Provider names in fallback order (default: PROVIDER_ORDER setting)
        **bridge_options: Forwarded to :class:`StreamingBridge`

    Returns:
        MediaPipeline ready for use; call ``close()`` on shutdown
    """
    providers = build_providers(order)
    fetcher = next((p for p in providers if isinstance(p, PageScrapeProvider)), None)
    extra: list[PageScrapeProvider] = []
    if fetcher is None:
        fetcher = PageScrapeProvider()
        extra.append(fetcher)

    return MediaPipeline(
        orchestrator=FallbackOrchestrator(providers),
        bridge=StreamingBridge(fetcher, **bridge_options),
        extra_resources=extra,
    )
