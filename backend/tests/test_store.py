"""
Tests for the dedup & persistence store.
"""

import asyncio
from datetime import datetime

import pytest

from conftest import add_subscription, make_item
from gamenews.errors import StoreUnavailableError
from gamenews.models.database import Database, DBSubscription
from gamenews.models.domain import ItemType, PublisherInfo, PublisherStatus
from gamenews.services.store import InsertOutcome, NewsStore


class TestNewsItems:
    """Tests for idempotent item insertion."""

    async def test_insert_then_duplicate(self, store):
        first = await store.insert_if_absent(make_item("a1", item_type=ItemType.PATCH))
        second = await store.insert_if_absent(make_item("a1", title="Changed title"))

        assert first.outcome == InsertOutcome.INSERTED
        assert first.item.id is not None
        assert first.item.item_type == ItemType.PATCH
        assert second.outcome == InsertOutcome.ALREADY_EXISTS
        assert second.item is None

        # The stored row is not modified by the duplicate
        latest = await store.get_latest_news("cs2")
        assert [item.title for item in latest] == ["Item a1"]

    async def test_same_external_id_different_publisher(self, store):
        first = await store.insert_if_absent(make_item("x", publisher_id="lol"))
        second = await store.insert_if_absent(make_item("x", publisher_id="valorant"))

        assert first.inserted
        assert second.inserted
        assert await store.count_news_items() == 2

    async def test_concurrent_inserts_create_one_row(self, store):
        results = await asyncio.gather(
            *(store.insert_if_absent(make_item("race")) for _ in range(5))
        )

        outcomes = [r.outcome for r in results]
        assert outcomes.count(InsertOutcome.INSERTED) == 1
        assert outcomes.count(InsertOutcome.ALREADY_EXISTS) == 4
        assert await store.count_news_items("cs2") == 1

    async def test_latest_news_ordering_and_limit(self, store):
        for day in range(1, 8):
            await store.insert_if_absent(
                make_item(f"d{day}", published_at=datetime(2024, 1, day, 12, 0, 0))
            )

        latest = await store.get_latest_news("cs2")

        assert [item.external_id for item in latest] == ["d7", "d6", "d5", "d4", "d3"]
        assert len(await store.get_latest_news("cs2", limit=2)) == 2
        assert await store.get_latest_news("lol") == []


class TestSubscriptions:
    """Tests for the read-only subscription query."""

    async def test_only_enabled_for_publisher(self, database, store):
        await add_subscription(database, "g1", "c1", types=["all"])
        await add_subscription(database, "g2", "c2", enabled=False)
        await add_subscription(database, "g3", "c3", publisher_id="lol")
        await add_subscription(database, "g4", "c4")

        subscriptions = await store.get_enabled_subscriptions("cs2")

        assert [s.guild_id for s in subscriptions] == ["g1", "g4"]
        # No stored filters means the default wildcard
        assert subscriptions[1].filters.types == ["all"]
        assert subscriptions[0].subscriber_id == "g1"

    async def test_malformed_filters_skipped(self, database, store):
        await add_subscription(database, "g1", "c1", types=["patch"])
        bad_id = await add_subscription(database, "g2", "c2")
        async with database.async_session() as session:
            row = await session.get(DBSubscription, bad_id)
            row.filters = {"types": "patch"}
            await session.commit()

        subscriptions = await store.get_enabled_subscriptions("cs2")

        assert [s.guild_id for s in subscriptions] == ["g1"]


class TestDeliveries:
    """Tests for the delivery idempotency boundary."""

    async def test_claim_once_per_subscriber(self, database, store):
        await add_subscription(database, "g1", "c1")
        subscription = (await store.get_enabled_subscriptions("cs2"))[0]
        item = (await store.insert_if_absent(make_item("a1"))).item

        assert await store.claim_delivery(item, subscription) == InsertOutcome.INSERTED
        assert await store.claim_delivery(item, subscription) == InsertOutcome.ALREADY_EXISTS

        records = await store.get_deliveries(item.id)
        assert len(records) == 1
        assert records[0].subscriber_id == "g1"
        assert records[0].channel_id == "c1"
        assert not records[0].confirmed

    async def test_message_ref_recorded_once(self, database, store):
        await add_subscription(database, "g1", "c1")
        subscription = (await store.get_enabled_subscriptions("cs2"))[0]
        item = (await store.insert_if_absent(make_item("a1"))).item
        await store.claim_delivery(item, subscription)

        assert await store.record_delivery_ref(item.id, "g1", "msg-1") is True
        assert await store.record_delivery_ref(item.id, "g1", "msg-2") is False

        records = await store.get_deliveries(item.id)
        assert records[0].message_ref == "msg-1"
        assert records[0].confirmed


class TestPublishers:
    """Tests for publisher registration and health."""

    async def test_ensure_publishers_is_idempotent(self, database):
        store = NewsStore(database)
        info = PublisherInfo(publisher_id="cs2", name="Counter-Strike 2", icon="🔫", color=0xE89C3A)

        assert await store.ensure_publishers([info]) == 1
        assert await store.ensure_publishers([info]) == 0

        health = await store.get_publisher_health("cs2")
        assert health.status == PublisherStatus.ACTIVE
        assert health.icon == "🔫"
        assert health.last_check_at is None

    async def test_success_then_error(self, store):
        success_at = datetime(2024, 1, 15, 12, 0, 0)
        error_at = datetime(2024, 1, 15, 12, 30, 0)

        await store.mark_publisher_success("lol", at=success_at)
        await store.mark_publisher_error("lol", "HTTP error: 503", at=error_at)

        health = await store.get_publisher_health("lol")
        assert health.status == PublisherStatus.ERROR
        assert health.last_error == "HTTP error: 503"
        assert health.last_check_at == error_at
        assert health.last_success_at == success_at

    async def test_success_clears_error(self, store):
        await store.mark_publisher_error("lol", "boom")
        await store.mark_publisher_success("lol")

        health = await store.get_publisher_health("lol")
        assert health.status == PublisherStatus.ACTIVE
        assert health.last_error is None
        assert health.last_success_at == health.last_check_at

    async def test_list_by_status(self, store):
        await store.mark_publisher_error("fortnite", "timeout")

        errored = await store.list_publishers(PublisherStatus.ERROR)
        everyone = await store.list_publishers()

        assert [p.publisher_id for p in errored] == ["fortnite"]
        assert len(everyone) == 5

    async def test_unknown_publisher(self, store):
        assert await store.get_publisher_health("halo") is None


class TestUnavailableStore:
    """Storage failures surface as StoreUnavailableError."""

    async def test_unreachable_database(self, tmp_path):
        missing = tmp_path / "missing" / "dir" / "gamenews.db"
        database = Database(f"sqlite+aiosqlite:///{missing}")
        store = NewsStore(database)

        with pytest.raises(StoreUnavailableError):
            await store.count_news_items()

        await database.dispose()
