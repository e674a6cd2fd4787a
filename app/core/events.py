"""Application startup and shutdown events."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from app.core.config import settings
from app.core.geocoding import service as geocoding
from app.core.geocoding.service import get_geocoding_service, reset_geocoding_service
from app.core.geocoding.validator import reset_geocoding_validator
from app.core.logging import configure_logging
from app.core.postal import service as postal
from app.core.postal.service import get_postal_service, reset_postal_service
from app.reconciler.location_corrector import (
    get_location_corrector,
    reset_location_corrector,
)

logger: logging.Logger = logging.getLogger("app.core.events")


class AppStateDict:
    """Background tasks and timing owned by the running application."""

    def __init__(self) -> None:
        """Initialize state."""
        self.started_at: float | None = None
        self.cache_sweep_task: asyncio.Task[None] | None = None


async def sweep_caches_periodically(interval: float) -> None:
    """Remove expired geocoding cache entries every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        removed = get_geocoding_service().clean_expired()
        if any(removed.values()):
            logger.info(f"Cache sweep removed expired entries: {removed}")


def create_start_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create startup event handler.

    Args:
        app: FastAPI application instance

    Returns:
        Startup handler function
    """

    async def start_app() -> None:
        configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)

        missing = settings.missing_upstream_settings()
        if missing:
            logger.warning(
                f"Upstream settings not configured: {', '.join(missing)}. "
                "Requests needing them will fail."
            )

        # Build service singletons up front so the first request is not slower
        get_postal_service().deduplicator.start_cleanup()
        get_geocoding_service().deduplicator.start_cleanup()
        get_location_corrector()

        state = AppStateDict()
        state.started_at = time.monotonic()
        state.cache_sweep_task = asyncio.create_task(
            sweep_caches_periodically(settings.CACHE_CLEANUP_INTERVAL)
        )
        app.state.lifecycle = state

        logger.info(
            "Application startup complete - "
            f"Environment: {settings.ENVIRONMENT}, "
            f"Version: {settings.version}"
        )

    return start_app


async def shutdown_services() -> None:
    """Stop background work, clear caches and close upstream clients.

    Safe to call when the services were never created.
    """
    postal_service = postal._postal_service
    geocoding_service = geocoding._geocoding_service

    if postal_service is not None:
        await postal_service.deduplicator.stop_cleanup()
        postal_service.clear()
        await postal_service.aclose()
    if geocoding_service is not None:
        await geocoding_service.deduplicator.stop_cleanup()
        geocoding_service.clear()
        await geocoding_service.aclose()

    reset_location_corrector()
    reset_geocoding_validator()
    reset_postal_service()
    reset_geocoding_service()


def create_stop_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create shutdown event handler with graceful shutdown logic.

    Args:
        app: FastAPI application instance

    Returns:
        Shutdown handler function
    """

    async def stop_app() -> None:
        state: AppStateDict | None = getattr(app.state, "lifecycle", None)
        try:
            if state is not None and state.cache_sweep_task is not None:
                logger.info("Stopping cache sweep...")
                state.cache_sweep_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await state.cache_sweep_task
                state.cache_sweep_task = None

            await shutdown_services()
            logger.info("Application shutdown complete")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")
            raise

    return stop_app
