"""
Domain models for the Game News Relay.
These are the core business entities, independent of database/API representation.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class ItemType(str, Enum):
    """Canonical kind of a news item; drives subscription filters and badges."""
    PATCH = "patch"
    HOTFIX = "hotfix"
    EVENT = "event"
    MAINTENANCE = "maintenance"
    NEWS = "news"


class PublisherStatus(str, Enum):
    """Health of a publisher as last observed by the orchestrator."""
    ACTIVE = "active"
    ERROR = "error"
    DISABLED = "disabled"


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Wildcard accepted in a subscription's type filter
ALL_TYPES = "all"


# =============================================================================
# Publishers
# =============================================================================

class PublisherInfo(BaseModel):
    """Static description of a publisher used for display."""
    publisher_id: str
    name: str
    icon: str = "📰"
    color: int = 0x0099FF


class PublisherHealth(BaseModel):
    """Publisher row with its mutable health state."""
    publisher_id: str
    name: str
    icon: str = "📰"
    color: int = 0x0099FF
    status: PublisherStatus = PublisherStatus.ACTIVE
    last_check_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None


# =============================================================================
# News Items
# =============================================================================

class NewsItem(BaseModel):
    """
    Canonical ingested unit produced by a source adapter.

    (publisher_id, external_id) is the dedup key. Constructing an item with
    an empty title or identifier raises a ValidationError, which adapters
    treat as "omit this item".
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    publisher_id: str = Field(min_length=1, max_length=50)
    external_id: str = Field(min_length=1, max_length=255)
    title: str = Field(min_length=1)
    body: str = ""
    url: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    item_type: ItemType = ItemType.NEWS
    published_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoredNewsItem(NewsItem):
    """A news item after it has been persisted."""
    id: int
    created_at: datetime


# =============================================================================
# Subscriptions & Deliveries
# =============================================================================

class SubscriptionFilters(BaseModel):
    """Allowed item types for a subscription ("all" disables filtering)."""
    types: list[str] = Field(default_factory=lambda: [ALL_TYPES])


class Subscription(BaseModel):
    """A guild's registration for one publisher's news in one channel."""
    id: int
    guild_id: str
    publisher_id: str
    channel_id: str
    notify_role_id: Optional[str] = None
    filters: SubscriptionFilters = Field(default_factory=SubscriptionFilters)
    enabled: bool = True

    @property
    def subscriber_id(self) -> str:
        """Identity used in the delivery dedup key."""
        return self.guild_id


class DeliveryRecord(BaseModel):
    """Proof that an item was (or was attempted to be) delivered to a subscriber."""
    id: int
    news_item_id: int
    subscriber_id: str
    channel_id: str
    message_ref: Optional[str] = None  # None = attempted, not confirmed sent
    subscription_id: int
    created_at: datetime

    @property
    def confirmed(self) -> bool:
        return self.message_ref is not None
