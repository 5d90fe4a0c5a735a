"""
Dedup & persistence store.

Every write the pipeline makes goes through NewsStore. Both idempotency
boundaries (one news item per (publisher, external id), one delivery per
(news item, subscriber)) are enforced by unique indexes, so concurrent
callers racing on the same key see exactly one INSERTED and the rest
ALREADY_EXISTS.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Iterable, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from gamenews.errors import StoreUnavailableError
from gamenews.models.database import (
    Database,
    DBDelivery,
    DBNewsItem,
    DBPublisher,
    DBSubscription,
)
from gamenews.models.domain import (
    DeliveryRecord,
    NewsItem,
    PublisherHealth,
    PublisherInfo,
    PublisherStatus,
    StoredNewsItem,
    Subscription,
    SubscriptionFilters,
    utcnow,
)

logger = structlog.get_logger(__name__)


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass
class InsertResult:
    """Result of insert_if_absent; item is set only when a row was created."""
    outcome: InsertOutcome
    item: Optional[StoredNewsItem] = None

    @property
    def inserted(self) -> bool:
        return self.outcome is InsertOutcome.INSERTED


class NewsStore:
    """Storage access for publishers, news items, subscriptions and deliveries."""

    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.database.async_session() as session:
                yield session
        except (OperationalError, InterfaceError) as e:
            logger.error("store_unavailable", error=str(e))
            raise StoreUnavailableError("persistent store unavailable", original=e) from e

    # =========================================================================
    # News items
    # =========================================================================

    async def insert_if_absent(self, item: NewsItem) -> InsertResult:
        """
        Persist an item unless (publisher_id, external_id) is already known.

        An existing row is never touched.
        """
        async with self._session() as session:
            row = DBNewsItem(
                publisher_id=item.publisher_id,
                external_id=item.external_id,
                title=item.title,
                body=item.body,
                url=item.url,
                image_url=item.image_url,
                thumbnail_url=item.thumbnail_url,
                item_type=item.item_type.value,
                published_at=item.published_at,
                metadata_json=item.metadata,
                created_at=utcnow(),
            )
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.debug(
                    "news_item_exists",
                    publisher_id=item.publisher_id,
                    external_id=item.external_id,
                )
                return InsertResult(outcome=InsertOutcome.ALREADY_EXISTS)

            return InsertResult(outcome=InsertOutcome.INSERTED, item=self._item_from_row(row))

    async def get_latest_news(self, publisher_id: str, limit: int = 5) -> list[StoredNewsItem]:
        """Newest stored items for a publisher."""
        async with self._session() as session:
            result = await session.execute(
                select(DBNewsItem)
                .where(DBNewsItem.publisher_id == publisher_id)
                .order_by(DBNewsItem.published_at.desc(), DBNewsItem.id.desc())
                .limit(limit)
            )
            return [self._item_from_row(row) for row in result.scalars().all()]

    async def count_news_items(self, publisher_id: Optional[str] = None) -> int:
        async with self._session() as session:
            query = select(func.count(DBNewsItem.id))
            if publisher_id is not None:
                query = query.where(DBNewsItem.publisher_id == publisher_id)
            result = await session.execute(query)
            return result.scalar_one()

    # =========================================================================
    # Subscriptions (read-only)
    # =========================================================================

    async def get_enabled_subscriptions(self, publisher_id: str) -> list[Subscription]:
        """Enabled subscriptions for a publisher, oldest first."""
        async with self._session() as session:
            result = await session.execute(
                select(DBSubscription)
                .where(
                    DBSubscription.publisher_id == publisher_id,
                    DBSubscription.enabled.is_(True),
                )
                .order_by(DBSubscription.id)
            )
            rows = result.scalars().all()

        subscriptions = []
        for row in rows:
            try:
                subscriptions.append(Subscription(
                    id=row.id,
                    guild_id=row.guild_id,
                    publisher_id=row.publisher_id,
                    channel_id=row.channel_id,
                    notify_role_id=row.notify_role_id,
                    filters=SubscriptionFilters.model_validate(row.filters or {}),
                    enabled=row.enabled,
                ))
            except ValidationError as e:
                logger.warning("subscription_invalid", subscription_id=row.id, error=str(e))
        return subscriptions

    # =========================================================================
    # Deliveries
    # =========================================================================

    async def claim_delivery(self, item: StoredNewsItem, subscription: Subscription) -> InsertOutcome:
        """
        Take the delivery slot for (item, subscriber) before sending.

        The row starts with message_ref NULL; record_delivery_ref fills it
        once the destination confirms the send.
        """
        async with self._session() as session:
            session.add(DBDelivery(
                news_item_id=item.id,
                subscriber_id=subscription.subscriber_id,
                channel_id=subscription.channel_id,
                message_ref=None,
                subscription_id=subscription.id,
                created_at=utcnow(),
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return InsertOutcome.ALREADY_EXISTS
            return InsertOutcome.INSERTED

    async def record_delivery_ref(self, news_item_id: int, subscriber_id: str, message_ref: str) -> bool:
        """Attach the destination's message id to a claimed slot (only once)."""
        async with self._session() as session:
            result = await session.execute(
                update(DBDelivery)
                .where(
                    DBDelivery.news_item_id == news_item_id,
                    DBDelivery.subscriber_id == subscriber_id,
                    DBDelivery.message_ref.is_(None),
                )
                .values(message_ref=message_ref)
            )
            await session.commit()
            return result.rowcount == 1

    async def get_deliveries(self, news_item_id: int) -> list[DeliveryRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(DBDelivery)
                .where(DBDelivery.news_item_id == news_item_id)
                .order_by(DBDelivery.id)
            )
            return [
                DeliveryRecord(
                    id=row.id,
                    news_item_id=row.news_item_id,
                    subscriber_id=row.subscriber_id,
                    channel_id=row.channel_id,
                    message_ref=row.message_ref,
                    subscription_id=row.subscription_id,
                    created_at=row.created_at,
                )
                for row in result.scalars().all()
            ]

    # =========================================================================
    # Publishers
    # =========================================================================

    async def ensure_publishers(self, publishers: Iterable[PublisherInfo]) -> int:
        """Create rows for publishers not yet registered. Returns how many were added."""
        added = 0
        async with self._session() as session:
            for info in publishers:
                existing = await session.get(DBPublisher, info.publisher_id)
                if existing is not None:
                    continue
                session.add(DBPublisher(
                    publisher_id=info.publisher_id,
                    name=info.name,
                    icon=info.icon,
                    color=info.color,
                    status=PublisherStatus.ACTIVE.value,
                ))
                added += 1
            await session.commit()

        if added:
            logger.info("publishers_registered", count=added)
        return added

    async def mark_publisher_success(self, publisher_id: str, at: Optional[datetime] = None) -> None:
        """Fetching -> Success: active, last_success_at = last_check_at = now."""
        now = at or utcnow()
        await self._update_publisher(
            publisher_id,
            status=PublisherStatus.ACTIVE.value,
            last_check_at=now,
            last_success_at=now,
            last_error=None,
        )

    async def mark_publisher_error(self, publisher_id: str, error: str, at: Optional[datetime] = None) -> None:
        """Fetching -> Failed: error state; last_success_at is left as it was."""
        await self._update_publisher(
            publisher_id,
            status=PublisherStatus.ERROR.value,
            last_check_at=at or utcnow(),
            last_error=error,
        )

    async def _update_publisher(self, publisher_id: str, **values) -> None:
        async with self._session() as session:
            row = await session.get(DBPublisher, publisher_id)
            if row is None:
                row = DBPublisher(publisher_id=publisher_id, name=publisher_id)
                session.add(row)
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()

    async def get_publisher_health(self, publisher_id: str) -> Optional[PublisherHealth]:
        async with self._session() as session:
            row = await session.get(DBPublisher, publisher_id)
            return self._health_from_row(row) if row is not None else None

    async def list_publishers(self, status: Optional[PublisherStatus] = None) -> list[PublisherHealth]:
        """All publishers (optionally only those in a given status), by name."""
        async with self._session() as session:
            query = select(DBPublisher).order_by(DBPublisher.name)
            if status is not None:
                query = query.where(DBPublisher.status == status.value)
            result = await session.execute(query)
            return [self._health_from_row(row) for row in result.scalars().all()]

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _item_from_row(row: DBNewsItem) -> StoredNewsItem:
        return StoredNewsItem(
            id=row.id,
            publisher_id=row.publisher_id,
            external_id=row.external_id,
            title=row.title,
            body=row.body or "",
            url=row.url,
            image_url=row.image_url,
            thumbnail_url=row.thumbnail_url,
            item_type=row.item_type,
            published_at=row.published_at,
            metadata=row.metadata_json or {},
            created_at=row.created_at,
        )

    @staticmethod
    def _health_from_row(row: DBPublisher) -> PublisherHealth:
        return PublisherHealth(
            publisher_id=row.publisher_id,
            name=row.name,
            icon=row.icon,
            color=row.color,
            status=row.status,
            last_check_at=row.last_check_at,
            last_success_at=row.last_success_at,
            last_error=row.last_error,
        )
