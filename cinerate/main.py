# cinerate/main.py
"""
FastAPI application for the rating engine.

The lifespan owns the process-wide singletons: the cache and the prior
refresher. The refresher loads the global prior once at startup (bounded by
a timeout) and then refreshes it from a dedicated thread on an interval.
"""

import asyncio
from contextlib import asynccontextmanager
import contextlib
import logging
import threading
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Response

from . import __version__
from .core.config import Settings, is_running_tests, settings
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import api_router
from .services.base import CacheProtocol
from .services.cache_service import build_cache
from .services.prior_refresher import PriorRefresher

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_TITLE = "cinerate API"
API_DESCRIPTION = "Bayesian-smoothed ratings computed from a stream of user votes"


def build_prior_refresher(config: Settings = settings) -> PriorRefresher:
    return PriorRefresher(
        config.ratings_config(),
        max_workers=config.prior_refresh_workers,
        synchronous=config.prior_refresh_synchronous,
    )


def create_app(
    config: Settings = settings,
    *,
    prior_refresher: Optional[PriorRefresher] = None,
    cache: Optional[CacheProtocol] = None,
) -> FastAPI:
    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"{API_TITLE} starting up...")
        logger.info(f"Environment: {config.environment}")
        if is_running_tests():
            logger.info("Running under pytest (test mode active)")

        if getattr(app.state, "cache", None) is None:
            app.state.cache = build_cache(config)
        if getattr(app.state, "prior_refresher", None) is None:
            app.state.prior_refresher = build_prior_refresher(config)
        refresher: PriorRefresher = app.state.prior_refresher

        prior = await asyncio.to_thread(refresher.initialize, config.prior_startup_timeout_seconds)
        logger.info(f"Global prior at startup: {prior.global_mean:.2f}")

        refresh_task: Optional[asyncio.Task[None]] = None
        stop_event: Optional[threading.Event] = None
        if config.scheduler_enabled and not config.is_testing:
            stop_event = threading.Event()
            refresh_task = asyncio.create_task(
                asyncio.to_thread(
                    refresher.run_periodic_refresh,
                    stop_event,
                    config.prior_refresh_interval_seconds,
                )
            )

        yield

        logger.info(f"{API_TITLE} shutting down...")
        if refresh_task is not None and stop_event is not None:
            stop_event.set()
            with contextlib.suppress(asyncio.CancelledError):
                await refresh_task
        refresher.shutdown(wait=False)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=app_lifespan,
    )
    app.state.cache = cache
    app.state.prior_refresher = prior_refresher

    register_error_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["health"])
    def health() -> dict:
        refresher = app.state.prior_refresher
        cache_backend = getattr(app.state.cache, "backend", "unknown")
        return {
            "status": "healthy",
            "service": "cinerate",
            "version": __version__,
            "environment": config.environment,
            "cache": cache_backend,
            "global_mean": refresher.get().global_mean if refresher is not None else None,
        }

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
        )

    return app


app = create_app()
