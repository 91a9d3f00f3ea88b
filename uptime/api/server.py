"""FastAPI server for the uptime monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from uptime.api.routes import router
from uptime.config import Settings, settings as default_settings
from uptime.health.aggregator import UptimeAggregator
from uptime.health.errors import EndpointSourceFailure, StoreReadFailure, StoreWriteFailure, UptimeError
from uptime.health.incidents import IncidentExtractor
from uptime.health.scheduler import SweepScheduler
from uptime.storage.endpoints import EndpointRegistry
from uptime.storage.samples import SampleStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire stores, scheduler and read-side services; start sweeping."""
    cfg: Settings = app.state.settings

    registry = EndpointRegistry(cfg.db_path)
    try:
        registry.load_seed_file(cfg.endpoints_file)
    except Exception:
        logger.exception("Failed to seed endpoints from %s", cfg.endpoints_file)
    app.state.registry = registry

    samples = SampleStore(cfg.db_path)
    app.state.sample_store = samples

    app.state.aggregator = UptimeAggregator(
        samples,
        hourly_buckets=cfg.hourly_buckets,
        daily_buckets=cfg.daily_buckets,
    )
    app.state.incidents = IncidentExtractor(samples)

    scheduler = SweepScheduler(
        registry,
        samples,
        interval_seconds=cfg.poll_interval_seconds,
        timeout_ms=cfg.probe_timeout_ms,
        max_workers=cfg.probe_workers,
    )
    app.state.scheduler = scheduler

    if cfg.scheduler_enabled:
        try:
            await scheduler.start()
        except Exception:
            logger.exception("Sweep scheduler failed to start")
    else:
        logger.info("Sweep scheduler disabled, sweeps run only on demand")

    yield

    # Shutdown
    await scheduler.stop()


async def store_failure_handler(request: Request, exc: UptimeError) -> JSONResponse:
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(config: Settings | None = None) -> FastAPI:
    app = FastAPI(
        title="Uptime Monitor",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config or default_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoreReadFailure, store_failure_handler)
    app.add_exception_handler(StoreWriteFailure, store_failure_handler)
    app.add_exception_handler(EndpointSourceFailure, store_failure_handler)
    app.include_router(router, prefix="/api")

    return app


app = create_app()
