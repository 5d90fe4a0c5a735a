"""
FastAPI routes for the Game News Relay.
"""

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from gamenews.errors import StoreUnavailableError
from gamenews.models.domain import PublisherHealth, PublisherStatus, StoredNewsItem
from gamenews.services.scheduler import PollingOrchestrator
from gamenews.services.store import NewsStore

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_store(request: Request) -> NewsStore:
    """Dependency returning the store built at startup."""
    return request.app.state.store


def get_orchestrator(request: Request) -> PollingOrchestrator:
    return request.app.state.orchestrator


StoreDep = Annotated[NewsStore, Depends(get_store)]
OrchestratorDep = Annotated[PollingOrchestrator, Depends(get_orchestrator)]


# ============================================================================
# Publisher Routes
# ============================================================================


@router.get("/publishers", response_model=list[PublisherHealth])
async def list_publishers(
    store: StoreDep,
    status_filter: Optional[PublisherStatus] = Query(default=None, alias="status"),
):
    """
    List publishers with their health.

    Pass ?status=error to see only the sources currently failing.
    """
    return await store.list_publishers(status_filter)


@router.get("/publishers/{publisher_id}", response_model=PublisherHealth)
async def get_publisher(publisher_id: str, store: StoreDep):
    health = await store.get_publisher_health(publisher_id)
    if health is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown publisher: {publisher_id}",
        )
    return health


@router.get("/publishers/{publisher_id}/news", response_model=list[StoredNewsItem])
async def get_publisher_news(
    publisher_id: str,
    store: StoreDep,
    limit: int = Query(default=5, ge=1, le=50),
):
    """Latest stored news items for a publisher, newest first."""
    if await store.get_publisher_health(publisher_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown publisher: {publisher_id}",
        )
    return await store.get_latest_news(publisher_id, limit=limit)


# ============================================================================
# Scheduler Routes
# ============================================================================


@router.get("/scheduler")
async def get_scheduler_status(orchestrator: OrchestratorDep):
    return orchestrator.status()


@router.post("/admin/check-updates")
async def trigger_check(
    orchestrator: OrchestratorDep,
    publisher_id: Optional[str] = None,
):
    """
    Run a check tick now, for every publisher or just one.

    Safe to call while a scheduled tick is running: the call waits for the
    publisher's current check and then finds its items already stored.
    """
    targets = None
    if publisher_id is not None:
        if publisher_id not in orchestrator.sources:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown publisher: {publisher_id}",
            )
        targets = [publisher_id]

    logger.info("manual_check_requested", publisher_id=publisher_id)
    try:
        outcomes = await orchestrator.check_for_updates(targets)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return {"outcomes": [o.to_dict() for o in outcomes]}
