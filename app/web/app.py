"""aiohttp application factory."""

from aiohttp import web

from app.core.deps import get_pipeline
from app.core.services.pipeline import MediaPipeline
from app.web.ledger import DownloadLedger
from app.web.routes import error_middleware, ledger_key, pipeline_key, routes


async def _close_pipeline(app: web.Application) -> None:
    await app[pipeline_key].close()


def create_app(pipeline: MediaPipeline | None = None, ledger: DownloadLedger | None = None) -> web.Application:
    """Create the web application.

    Providers open their HTTP clients lazily, so building the pipeline here
    does not need a running loop.

    Args:
        pipeline: Resolve/stream pipeline (default: built from settings)
        ledger: Download request ledger (default: empty in-memory ledger)

    Returns:
        Configured aiohttp Application
    """
    app = web.Application(middlewares=[error_middleware])
    app[pipeline_key] = pipeline if pipeline is not None else get_pipeline()
    app[ledger_key] = ledger if ledger is not None else DownloadLedger()
    app.add_routes(routes)
    app.on_cleanup.append(_close_pipeline)
    return app
