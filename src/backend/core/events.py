"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for logging, the Cosmos DB client,
blob storage for issue photos and the email service.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from core.logging_config import configure_logging
from db.cosmos_session import close_cosmos, get_database

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        configure_logging()
        logger.info("app_starting", app=settings.APP_NAME, environment=settings.APP_ENV)

        # Warm the Cosmos DB client so configuration errors surface at startup
        if settings.AZURE_COSMOS_ENDPOINT or settings.AZURE_COSMOS_CONNECTION_STRING:
            try:
                await get_database()
                logger.info("cosmos_initialized", database=settings.AZURE_COSMOS_DATABASE)
            except Exception as e:
                logger.error("cosmos_init_failed", error=str(e))
                raise
        else:
            logger.warning("cosmos_not_configured")

        # Email is optional; an unconfigured service only disables notifications
        from services.email_service import email_service

        await email_service.initialize()

        logger.info("app_started", app=settings.APP_NAME)

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping", app=settings.APP_NAME)

        await close_cosmos()

        try:
            from services.media_service import close_media_service

            await close_media_service()
        except Exception as e:
            logger.warning("media_service_cleanup_failed", error=str(e))

        logger.info("app_stopped", app=settings.APP_NAME)

    return stop_app
