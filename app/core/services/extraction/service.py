"""Provider wiring for the extraction service."""

from app.core.configs import app_config
from app.core.services.extraction.base_service import ExtractionProviderInterface
from app.core.services.extraction.orchestrator import FallbackOrchestrator
from app.core.services.extraction.providers.scraper import PageScrapeProvider
from app.core.services.extraction.providers.ssstik import SsstikProvider
from app.core.services.extraction.providers.tikwm import TikwmProvider
from app.core.services.extraction.providers.ytdlp import YtDlpProvider

PROVIDER_CLASSES: dict[str, type[ExtractionProviderInterface]] = {
    YtDlpProvider.name: YtDlpProvider,
    TikwmProvider.name: TikwmProvider,
    SsstikProvider.name: SsstikProvider,
    PageScrapeProvider.name: PageScrapeProvider,
}


def build_providers(order: list[str] | None = None) -> list[ExtractionProviderInterface]:
    """Instantiate providers in fallback order.

    Args:
        order: Provider names, most reliable first (default: PROVIDER_ORDER setting)

    Returns:
        Fresh provider instances, one per name

    Raises:
        ValueError: If a name is unknown or listed twice
    """
    names = list(order if order is not None else app_config.PROVIDER_ORDER)
    if len(set(names)) != len(names):
        raise ValueError(f'Duplicate provider in order: {names}')

    providers: list[ExtractionProviderInterface] = []
    for name in names:
        provider_cls = PROVIDER_CLASSES.get(name)
        if provider_cls is None:
            raise ValueError(f'Unsupported extraction provider: {name}')
        providers.append(provider_cls())
    return providers


def get_extraction_service(providers: list[ExtractionProviderInterface] | None = None) -> FallbackOrchestrator:
    """Build an orchestrator over ``providers`` (default: configured order)."""
    return FallbackOrchestrator(providers if providers is not None else build_providers())
