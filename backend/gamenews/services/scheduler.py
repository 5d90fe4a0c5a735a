"""
Polling orchestrator.

Runs a check tick on a fixed interval. Each tick fetches every registered
publisher concurrently; each publisher runs inside its own error boundary,
so a failing source only updates its own health row:

    Idle -> Fetching -> Success | Failed -> Idle

New items are stored and handed to the fan-out engine. Unreachable
storage is the one failure that escapes a publisher boundary: it halts the
scheduler instead of letting every later tick fail the same way.
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gamenews.errors import StoreUnavailableError
from gamenews.models.domain import StoredNewsItem, utcnow
from gamenews.services.delivery import FanoutEngine
from gamenews.services.store import NewsStore
from gamenews.sources.base import NewsSourceAdapter

logger = structlog.get_logger(__name__)

JOB_ID = "check_for_updates"

IDLE = "idle"
FETCHING = "fetching"


@dataclass
class PollOutcome:
    """What one publisher check did."""
    publisher_id: str
    fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    deliveries: int = 0
    delivery_errors: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "publisher_id": self.publisher_id,
            "ok": self.ok,
            "fetched": self.fetched,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "deliveries": self.deliveries,
            "delivery_errors": self.delivery_errors,
            "error": self.error,
        }

    def __str__(self) -> str:
        if not self.ok:
            return f"✗ {self.publisher_id}: {self.error}"
        return (
            f"✓ {self.publisher_id}: fetched={self.fetched}, new={self.inserted}, "
            f"duplicates={self.duplicates}, delivered={self.deliveries}"
        )


class PollingOrchestrator:
    """Drives fetch -> store -> deliver for every publisher."""

    def __init__(
        self,
        store: NewsStore,
        sources: Mapping[str, NewsSourceAdapter],
        engine: FanoutEngine,
        interval_minutes: int = 30,
        max_concurrent_fetches: int = 4,
        run_initial_check: bool = False,
    ):
        self.store = store
        self.sources = dict(sources)
        self.engine = engine
        self.interval_minutes = interval_minutes
        self.run_initial_check = run_initial_check

        self._fetch_semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._state: dict[str, str] = {publisher_id: IDLE for publisher_id in self.sources}

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._halted = False
        self._halt_reason: Optional[str] = None
        self._last_tick_at: Optional[datetime] = None

    # =========================================================================
    # Checks
    # =========================================================================

    async def check_for_updates(
        self,
        publisher_ids: Optional[Iterable[str]] = None,
    ) -> list[PollOutcome]:
        """
        Run one tick over all (or the given) publishers.

        Raises:
            StoreUnavailableError: storage could not be reached; the
                scheduler has been halted.
        """
        targets = list(publisher_ids) if publisher_ids is not None else list(self.sources)
        self._last_tick_at = utcnow()
        logger.info("tick_started", publishers=targets)

        results = await asyncio.gather(
            *(self.check_publisher(publisher_id) for publisher_id in targets),
            return_exceptions=True,
        )

        outcomes = []
        for result in results:
            if isinstance(result, StoreUnavailableError):
                self._halt(result)
                raise result
            if isinstance(result, BaseException):
                raise result
            outcomes.append(result)

        logger.info(
            "tick_completed",
            succeeded=sum(1 for o in outcomes if o.ok),
            failed=sum(1 for o in outcomes if not o.ok),
            new_items=sum(o.inserted for o in outcomes),
            deliveries=sum(o.deliveries for o in outcomes),
        )
        return outcomes

    async def check_publisher(self, publisher_id: str) -> PollOutcome:
        """
        Check a single publisher.

        Two checks of the same publisher never overlap; a second caller
        waits for the first and then sees its items as duplicates.
        """
        source = self.sources.get(publisher_id)
        if source is None:
            raise ValueError(f"Unknown publisher: {publisher_id}")

        async with self._locks[publisher_id]:
            async with self._fetch_semaphore:
                self._state[publisher_id] = FETCHING
                try:
                    return await self._run_publisher(source)
                finally:
                    self._state[publisher_id] = IDLE

    async def _run_publisher(self, source: NewsSourceAdapter) -> PollOutcome:
        publisher_id = source.publisher_id
        outcome = PollOutcome(publisher_id=publisher_id)
        log = logger.bind(publisher_id=publisher_id)

        try:
            result = await source.fetch_latest_news()
            if not result.ok:
                outcome.error = result.error
                log.warning("publisher_check_failed", error=result.error)
                await self.store.mark_publisher_error(publisher_id, result.error)
                return outcome

            outcome.fetched = len(result.items)

            new_items: list[StoredNewsItem] = []
            for item in result.items:
                insert = await self.store.insert_if_absent(item)
                if insert.inserted:
                    new_items.append(insert.item)
                else:
                    outcome.duplicates += 1
            outcome.inserted = len(new_items)

            # A fan-out failure skips only that item; the fetch itself succeeded
            for stored in new_items:
                log.info("news_item_new", item_id=stored.id, external_id=stored.external_id, title=stored.title)
                try:
                    report = await self.engine.deliver(stored)
                except StoreUnavailableError:
                    raise
                except Exception as e:
                    outcome.delivery_errors += 1
                    log.error(
                        "delivery_failed",
                        item_id=stored.id,
                        error=f"{type(e).__name__}: {e}",
                        exc_info=True,
                    )
                    continue
                outcome.deliveries += report.sent

            await self.store.mark_publisher_success(publisher_id)

        except StoreUnavailableError:
            raise
        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"
            log.error("publisher_check_failed", error=outcome.error, exc_info=True)
            await self.store.mark_publisher_error(publisher_id, outcome.error)
            return outcome

        log.info("publisher_checked", **outcome.to_dict())
        return outcome

    # =========================================================================
    # Scheduling
    # =========================================================================

    def start_scheduler(self) -> None:
        """Start the interval job. Must be called from a running event loop."""
        if self._scheduler is not None and self._scheduler.running:
            logger.warning("scheduler_already_running")
            return

        self._halted = False
        self._halt_reason = None
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)

        job_kwargs = {}
        if self.run_initial_check:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        # An overrunning tick makes the next one be skipped, never doubled
        self._scheduler.add_job(
            self._scheduled_tick,
            IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Check publishers for news",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        self._scheduler.start()
        logger.info(
            "scheduler_started",
            interval_minutes=self.interval_minutes,
            publishers=list(self.sources),
        )

    async def stop_scheduler(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")

    async def _scheduled_tick(self) -> None:
        try:
            await self.check_for_updates()
        except StoreUnavailableError:
            # Already logged and halted by check_for_updates
            pass
        except Exception as e:
            logger.error("tick_failed", error=str(e), exc_info=True)

    def _halt(self, error: StoreUnavailableError) -> None:
        self._halted = True
        self._halt_reason = str(error)
        logger.critical("scheduler_halted", reason=self._halt_reason)
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def halted(self) -> bool:
        return self._halted

    def status(self) -> dict[str, Any]:
        next_run = None
        if self.running:
            job = self._scheduler.get_job(JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_run = job.next_run_time.isoformat()

        return {
            "running": self.running,
            "halted": self._halted,
            "halt_reason": self._halt_reason,
            "interval_minutes": self.interval_minutes,
            "next_run_time": next_run,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "publishers": dict(self._state),
        }
