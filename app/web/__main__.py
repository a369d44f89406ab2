"""Run the download API.

Usage:
    python -m app.web
"""

from aiohttp import web

from app.core.configs import app_config
from app.core.deps import logger
from app.web.app import create_app


def main() -> None:
    logger.info(
        'Starting web server',
        project=app_config.PROJECT_NAME,
        environment=app_config.ENVIRONMENT,
        host=app_config.WEB_HOST,
        port=app_config.WEB_PORT,
        providers=app_config.PROVIDER_ORDER,
    )
    web.run_app(create_app(), host=app_config.WEB_HOST, port=app_config.WEB_PORT, print=None)


if __name__ == '__main__':
    main()
