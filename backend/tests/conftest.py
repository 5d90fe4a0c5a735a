"""
Shared fixtures: a throwaway SQLite database, fake publishers and a fake
destination that records what it was asked to send.
"""

import asyncio
from datetime import datetime
from typing import Optional

import pytest

from gamenews.models.database import Database, DBSubscription
from gamenews.models.domain import ItemType, NewsItem
from gamenews.services.delivery import FanoutEngine
from gamenews.services.destination import DestinationPlatform, SendResult, SendStatus
from gamenews.services.rendering import OutboundMessage
from gamenews.services.store import NewsStore
from gamenews.sources import PUBLISHER_CATALOG
from gamenews.sources.base import NewsSourceAdapter


def make_item(
    external_id: str,
    publisher_id: str = "cs2",
    item_type: ItemType = ItemType.NEWS,
    title: Optional[str] = None,
    body: str = "Body text",
    published_at: Optional[datetime] = None,
) -> NewsItem:
    return NewsItem(
        publisher_id=publisher_id,
        external_id=external_id,
        title=title or f"Item {external_id}",
        body=body,
        url=f"https://example.com/{external_id}",
        item_type=item_type,
        published_at=published_at or datetime(2024, 1, 15, 12, 0, 0),
    )


async def add_subscription(
    database: Database,
    guild_id: str,
    channel_id: str,
    publisher_id: str = "cs2",
    types: Optional[list[str]] = None,
    notify_role_id: Optional[str] = None,
    enabled: bool = True,
) -> int:
    """Insert a subscription row the way the admin surface would."""
    async with database.async_session() as session:
        row = DBSubscription(
            guild_id=guild_id,
            publisher_id=publisher_id,
            channel_id=channel_id,
            notify_role_id=notify_role_id,
            filters={"types": types} if types is not None else None,
            enabled=enabled,
        )
        session.add(row)
        await session.commit()
        return row.id


class FakeDestination(DestinationPlatform):
    """Destination that accepts every send except for configured channels."""

    def __init__(self, missing: tuple = (), denied: tuple = ()):
        self.missing = set(missing)
        self.denied = set(denied)
        self.sent: list[tuple[str, OutboundMessage]] = []
        self._counter = 0

    async def can_post(self, channel_id: str) -> bool:
        return channel_id not in self.missing

    async def send_message(self, channel_id: str, message: OutboundMessage) -> SendResult:
        if channel_id in self.denied:
            return SendResult(status=SendStatus.PERMISSION_DENIED, detail="Missing Access")
        self._counter += 1
        self.sent.append((channel_id, message))
        return SendResult.sent(f"msg-{self._counter}")

    def channels(self) -> list[str]:
        return [channel_id for channel_id, _ in self.sent]


class FakeSource(NewsSourceAdapter):
    """Adapter returning canned items, or raising, without touching the network."""

    def __init__(
        self,
        publisher_id: str,
        items: Optional[list[NewsItem]] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        super().__init__()
        self._publisher_id = publisher_id
        self.items = items or []
        self.error = error
        self.gate = gate
        self.calls = 0

    @property
    def publisher_id(self) -> str:
        return self._publisher_id

    @property
    def name(self) -> str:
        return f"Fake {self._publisher_id}"

    async def _fetch(self) -> list[NewsItem]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'gamenews.db'}")
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
async def store(database):
    news_store = NewsStore(database)
    await news_store.ensure_publishers(PUBLISHER_CATALOG.values())
    return news_store


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def engine(store, destination):
    return FanoutEngine(store, destination, publishers=PUBLISHER_CATALOG)
