"""
SQLAlchemy database models for the Game News Relay.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from gamenews.models.domain import utcnow


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Publishers
# =============================================================================

class DBPublisher(Base):
    """A registered external news source and its health state."""
    __tablename__ = "publishers"

    publisher_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    icon: Mapped[str] = mapped_column(String(16), default="📰")
    color: Mapped[int] = mapped_column(Integer, default=0x0099FF)

    # Health
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    last_check_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_success_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


# =============================================================================
# News Items
# =============================================================================

class DBNewsItem(Base):
    """Ingested news item. Append-only; identity fields are never updated."""
    __tablename__ = "news_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[str] = mapped_column(String(50), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[Optional[str]] = mapped_column(Text)
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text)
    item_type: Mapped[str] = mapped_column(String(20), default="news", nullable=False)
    published_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_news_items_dedup", "publisher_id", "external_id", unique=True),
        Index("ix_news_items_publisher_published", "publisher_id", "published_at"),
    )


# =============================================================================
# Subscriptions & Deliveries
# =============================================================================

class DBSubscription(Base):
    """Guild subscription to a publisher. Written by the admin surface only."""
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[str] = mapped_column(String(64), nullable=False)
    publisher_id: Mapped[str] = mapped_column(String(50), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notify_role_id: Mapped[Optional[str]] = mapped_column(String(64))
    filters: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)  # {"types": [...]}
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_subscriptions_publisher_enabled", "publisher_id", "enabled"),
        Index("ix_subscriptions_guild", "guild_id"),
    )


class DBDelivery(Base):
    """One delivery slot per (news item, subscriber)."""
    __tablename__ = "deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    news_item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subscriber_id: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    message_ref: Mapped[Optional[str]] = mapped_column(String(64))
    subscription_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_deliveries_item_subscriber", "news_item_id", "subscriber_id", unique=True),
    )


# =============================================================================
# Database Connection
# =============================================================================

class Database:
    """Database connection manager."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(
            database_url,
            echo=False,  # Set to True for SQL logging
        )
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        """Close all pooled connections."""
        await self.engine.dispose()
