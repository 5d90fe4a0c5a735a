"""
Base interface for publisher source adapters.
All publishers (Steam, Fortnite, Minecraft, Riot, ...) implement this interface.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from gamenews.models.domain import NewsItem, utcnow

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Typed outcome of one adapter call."""
    publisher_id: str
    items: list[NewsItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, publisher_id: str, error: str) -> "FetchResult":
        return cls(publisher_id=publisher_id, error=error)

    def __str__(self) -> str:
        if not self.ok:
            return f"✗ {self.publisher_id}: {self.error}"
        return f"✓ {self.publisher_id}: items={len(self.items)}"


class NewsSourceAdapter(ABC):
    """
    Abstract base class for publisher adapters.

    Each adapter handles:
    - Pulling the publisher's native response (REST JSON or RSS)
    - Mapping native fields to the canonical NewsItem
    - Guessing the item type from title/category keywords

    Adapters hold configuration only. Every call to fetch_latest_news()
    opens its own HTTP client and depends on no state left behind by an
    earlier call.
    """

    def __init__(
        self,
        *,
        max_items: int = 5,
        timeout: float = 10.0,
        user_agent: str = "GameNewsRelay/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_items = max_items
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    @property
    @abstractmethod
    def publisher_id(self) -> str:
        """Stable publisher key (e.g. "lol", "cs2")."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the source."""
        pass

    @abstractmethod
    async def _fetch(self) -> list[NewsItem]:
        """
        Pull and normalize the publisher's latest items.

        May raise on transport or parse failure; fetch_latest_news()
        converts the exception into a failed FetchResult.
        """
        pass

    async def fetch_latest_news(self) -> FetchResult:
        """
        Fetch the latest items from this publisher.

        Returns:
            FetchResult with at most max_items items, or a failed result
            describing why the publisher could not be read.
        """
        try:
            items = await self._fetch()
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error fetching {self.publisher_id}: {e}")
            return FetchResult.failure(self.publisher_id, f"HTTP error: {e}")
        except Exception as e:
            logger.warning(f"Error fetching {self.publisher_id}: {e}")
            return FetchResult.failure(self.publisher_id, f"{type(e).__name__}: {e}")

        items = items[: self.max_items]
        logger.debug(f"Fetched {len(items)} items from {self.name}")
        return FetchResult(publisher_id=self.publisher_id, items=items)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    def _build_items(
        self,
        entries: list[Any],
        build: Callable[[Any], Optional[NewsItem]],
    ) -> list[NewsItem]:
        """Map native entries to items, omitting any that fail validation."""
        items = []
        for entry in entries:
            try:
                item = build(entry)
            except (ValidationError, KeyError, TypeError, ValueError) as e:
                logger.info(f"Dropping malformed entry from {self.publisher_id}: {e}")
                continue
            if item is not None:
                items.append(item)
        return items
