"""
Main FastAPI application for the Game News Relay.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI

from gamenews import __version__
from gamenews.api.routes import router
from gamenews.config import Settings, get_settings
from gamenews.models.database import Database
from gamenews.services.delivery import FanoutEngine
from gamenews.services.destination import DestinationPlatform, DiscordDestination
from gamenews.services.scheduler import PollingOrchestrator
from gamenews.services.store import NewsStore
from gamenews.sources import PUBLISHER_CATALOG, build_source_registry


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """Configure structlog over stdlib logging so adapter loggers share the output."""
    logging.basicConfig(format="%(message)s", level=level, force=True)

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_settings = get_settings()
configure_logging(_settings.log_level, _settings.log_json)

logger = structlog.get_logger()


@dataclass
class Relay:
    """The wired pipeline: storage, sources, delivery and scheduling."""
    database: Database
    store: NewsStore
    destination: DestinationPlatform
    engine: FanoutEngine
    orchestrator: PollingOrchestrator

    async def close(self) -> None:
        await self.orchestrator.stop_scheduler()
        await self.destination.aclose()
        await self.database.dispose()


async def create_relay(
    settings: Settings,
    destination: Optional[DestinationPlatform] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Relay:
    """Build every component, create tables and register publishers."""
    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url)
    await database.create_tables()
    store = NewsStore(database)

    sources = build_source_registry(settings, transport=transport)
    await store.ensure_publishers(PUBLISHER_CATALOG[publisher_id] for publisher_id in sources)
    logger.info("Source adapters initialized", sources=[s.name for s in sources.values()])

    if destination is None:
        destination = DiscordDestination(
            settings.discord_bot_token,
            api_base=settings.discord_api_base,
            timeout=settings.http_timeout_seconds,
        )

    engine = FanoutEngine(
        store,
        destination,
        publishers=PUBLISHER_CATALOG,
        max_concurrent_deliveries=settings.max_concurrent_deliveries,
        body_max_length=settings.body_max_length,
    )
    orchestrator = PollingOrchestrator(
        store,
        sources,
        engine,
        interval_minutes=settings.poll_interval_minutes,
        max_concurrent_fetches=settings.max_concurrent_fetches,
        run_initial_check=settings.run_initial_check,
    )

    return Relay(
        database=database,
        store=store,
        destination=destination,
        engine=engine,
        orchestrator=orchestrator,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    settings = get_settings()

    relay = await create_relay(settings)
    app.state.store = relay.store
    app.state.orchestrator = relay.orchestrator

    relay.orchestrator.start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down")
    await relay.close()


# Create FastAPI app
app = FastAPI(
    title=_settings.app_name,
    description="Game publisher news, delivered once per subscriber.",
    version=__version__,
    lifespan=lifespan,
)

# Include API routes
app.include_router(router, prefix="/api/v1")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "gamenews-relay",
        "version": __version__,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gamenews.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level.lower(),
    )
