"""FastAPI application factory and process wiring."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from dropsnag.api import ResyApiClient
from dropsnag.config import API_VERSION, Settings, load_dotenv, load_settings
from dropsnag.engine import AcquisitionEngine
from dropsnag.notifications import build_notifier
from dropsnag.registry import SchedulingRegistry
from dropsnag.scheduler import DropScheduler

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    registry: SchedulingRegistry | None = None,
) -> FastAPI:
    """Build the app. Pass a registry to skip wiring (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if registry is not None:
            app.state.registry = registry
            yield
            return

        load_dotenv()
        cfg = settings or load_settings()
        if not cfg.resy.api_key:
            logger.warning("RESY_API_KEY not set; Resy calls will be rejected")

        notifier = build_notifier(cfg.notifications.webhook_url)
        scheduler = DropScheduler(max_concurrent_runs=cfg.scheduler.max_concurrent_runs)

        async with ResyApiClient(cfg.resy.api_key, cfg.resy.auth_token) as client:
            engine = AcquisitionEngine(
                client,
                notifier,
                budget_seconds=cfg.engine.budget_seconds,
                hedge_requests=cfg.engine.hedge_requests,
                retry_interval_seconds=cfg.engine.retry_interval_seconds,
            )
            app.state.registry = SchedulingRegistry(
                client,
                engine,
                scheduler,
                notifier,
                wake_margin=timedelta(seconds=cfg.scheduler.wake_margin_seconds),
            )
            scheduler.start()
            try:
                yield
            finally:
                # Armed timers are lost on shutdown; there is no persistence.
                scheduler.shutdown()
                await notifier.aclose()

    app = FastAPI(title="dropsnag", lifespan=lifespan)
    if registry is not None:
        app.state.registry = registry

    from dropsnag.web.routes import reservations

    app.include_router(reservations.router, prefix=f"/api/{API_VERSION}")

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return f"Resy API Backend {API_VERSION}"

    return app
