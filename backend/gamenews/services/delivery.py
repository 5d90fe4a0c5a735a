"""
Filter & fan-out delivery engine.

For one newly stored item:
1. Load the publisher's enabled subscriptions
2. Drop subscriptions whose type filter excludes the item
3. Claim the (item, subscriber) delivery slot
4. Render and send the message
5. Attach the destination's message id to the slot

The slot is claimed before sending, so an item reaches a subscriber at most
once even if the process dies mid-send. A failed send leaves the slot
consumed; nothing retries it.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

import structlog

from gamenews.errors import StoreUnavailableError
from gamenews.models.domain import (
    ALL_TYPES,
    ItemType,
    PublisherInfo,
    StoredNewsItem,
    Subscription,
    SubscriptionFilters,
)
from gamenews.services.destination import DestinationPlatform
from gamenews.services.rendering import DEFAULT_BODY_MAX_LENGTH, render_message
from gamenews.services.store import InsertOutcome, NewsStore

logger = structlog.get_logger(__name__)


class _Outcome(Enum):
    SENT = "sent"
    ALREADY_DELIVERED = "already_delivered"
    FAILED = "failed"


@dataclass
class DeliveryReport:
    """Counts for one item's fan-out."""
    news_item_id: int
    matched: int = 0
    sent: int = 0
    already_delivered: int = 0
    failed: int = 0
    filtered_out: int = 0

    def to_dict(self) -> dict:
        return {
            "news_item_id": self.news_item_id,
            "matched": self.matched,
            "sent": self.sent,
            "already_delivered": self.already_delivered,
            "failed": self.failed,
            "filtered_out": self.filtered_out,
        }


def matches_filters(item_type: ItemType, filters: Optional[SubscriptionFilters]) -> bool:
    """
    Whether a subscription wants items of this type.

    No filters means everything. "all" in the types list means everything.
    An explicitly empty list matches nothing.
    """
    if filters is None:
        return True
    if ALL_TYPES in filters.types:
        return True
    return item_type.value in filters.types


class FanoutEngine:
    """Delivers stored items to every matching subscription."""

    def __init__(
        self,
        store: NewsStore,
        destination: DestinationPlatform,
        publishers: Optional[Mapping[str, PublisherInfo]] = None,
        max_concurrent_deliveries: int = 5,
        body_max_length: int = DEFAULT_BODY_MAX_LENGTH,
    ):
        self.store = store
        self.destination = destination
        self.publishers = dict(publishers or {})
        self.body_max_length = body_max_length
        self._semaphore = asyncio.Semaphore(max_concurrent_deliveries)

    def publisher_info(self, publisher_id: str) -> PublisherInfo:
        info = self.publishers.get(publisher_id)
        if info is None:
            info = PublisherInfo(publisher_id=publisher_id, name=publisher_id)
        return info

    async def deliver(self, item: StoredNewsItem) -> DeliveryReport:
        """Fan one item out to its publisher's subscribers."""
        report = DeliveryReport(news_item_id=item.id)
        subscriptions = await self.store.get_enabled_subscriptions(item.publisher_id)

        matched = []
        for subscription in subscriptions:
            if matches_filters(item.item_type, subscription.filters):
                matched.append(subscription)
            else:
                report.filtered_out += 1
        report.matched = len(matched)

        # Exceptions are collected per subscription
        outcomes = await asyncio.gather(
            *(self._deliver_one(item, subscription) for subscription in matched),
            return_exceptions=True,
        )

        for subscription, outcome in zip(matched, outcomes):
            if isinstance(outcome, StoreUnavailableError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(
                    "delivery_failed",
                    item_id=item.id,
                    subscription_id=subscription.id,
                    reason="unexpected_error",
                    error=f"{type(outcome).__name__}: {outcome}",
                )
                report.failed += 1
            elif outcome is _Outcome.SENT:
                report.sent += 1
            elif outcome is _Outcome.ALREADY_DELIVERED:
                report.already_delivered += 1
            else:
                report.failed += 1

        logger.info("item_delivered", publisher_id=item.publisher_id, **report.to_dict())
        return report

    async def _deliver_one(self, item: StoredNewsItem, subscription: Subscription) -> _Outcome:
        log = logger.bind(
            item_id=item.id,
            publisher_id=item.publisher_id,
            subscription_id=subscription.id,
            channel_id=subscription.channel_id,
        )

        async with self._semaphore:
            claim = await self.store.claim_delivery(item, subscription)
            if claim is InsertOutcome.ALREADY_EXISTS:
                log.debug("delivery_skipped", reason="already_delivered")
                return _Outcome.ALREADY_DELIVERED

            try:
                if not await self.destination.can_post(subscription.channel_id):
                    log.warning("delivery_failed", reason="channel_unavailable")
                    return _Outcome.FAILED

                message = render_message(
                    item,
                    subscription,
                    self.publisher_info(item.publisher_id),
                    body_max_length=self.body_max_length,
                )
                result = await self.destination.send_message(subscription.channel_id, message)
            except Exception as e:
                log.error("delivery_failed", reason="unexpected_error", error=str(e))
                return _Outcome.FAILED

            if not result.ok:
                log.warning("delivery_failed", reason=result.status.value, detail=result.detail)
                return _Outcome.FAILED

            await self.store.record_delivery_ref(item.id, subscription.subscriber_id, result.message_ref)
            log.info("delivery_sent", message_ref=result.message_ref)
            return _Outcome.SENT
