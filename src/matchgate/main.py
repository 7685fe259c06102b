"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from matchgate import __version__
from matchgate.api.events import router as events_router
from matchgate.api.match import router as match_router
from matchgate.config import Settings
from matchgate.core.discovery import InMemoryDiscoveryRecord
from matchgate.core.engine import MatchAdmissionEngine
from matchgate.core.event_bus import EventBus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: start the periodic engine tick; shutdown: stop it."""
    settings: Settings = app.state.settings

    from apscheduler.schedulers.asyncio import AsyncIOScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    from matchgate.core.runner import tick_match

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        tick_match,
        trigger=IntervalTrigger(seconds=settings.matchgate_tick_interval_seconds),
        kwargs={"engine": app.state.engine, "event_bus": app.state.event_bus},
        id="tick_match",
        name="Advance match admission engine",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info(
        "scheduler_started interval=%.2fs authority=%s",
        settings.matchgate_tick_interval_seconds,
        settings.matchgate_is_authority,
    )

    yield

    scheduler.shutdown(wait=False)
    logger.info("scheduler_stopped")


def create_app(
    settings: Settings | None = None,
    engine: MatchAdmissionEngine | None = None,
) -> FastAPI:
    """Create the Matchgate FastAPI application.

    Pass ``engine`` to serve an engine owned by an existing match/session
    object; otherwise one is built from settings.
    """
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.matchgate_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Matchgate",
        version=__version__,
        description="Join-in-progress admission control and backfill for live matches",
        docs_url="/docs" if settings.matchgate_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine or MatchAdmissionEngine.from_settings(
        settings, discovery_record=InMemoryDiscoveryRecord()
    )
    app.state.event_bus = EventBus()

    app.include_router(match_router)
    app.include_router(events_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.matchgate_env}

    return app


app = create_app()
