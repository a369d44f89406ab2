"""Logging service.

Importing the structlog provider configures stdlib logging and structlog once
per process; :func:`get_log_service` hands back the application logger.
"""

import structlog


def get_log_service() -> structlog.stdlib.BoundLogger:
    from app.core.services.log.providers.structlog.setup import logger

    return logger


__all__ = ['get_log_service']
