"""Common dependencies and services."""

from app.core.configs import app_config
from app.core.services.log import get_log_service
from app.core.services.pipeline import MediaPipeline, build_pipeline

# Singleton logger
logger = get_log_service()


def get_pipeline(order: list[str] | None = None) -> MediaPipeline:
    """Build the resolve/stream pipeline from settings.

    Each caller owns the returned pipeline and must ``close()`` it.
    """
    order = order if order is not None else app_config.PROVIDER_ORDER
    logger.debug('Building media pipeline', providers=order)
    return build_pipeline(order)
