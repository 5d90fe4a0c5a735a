"""
Outbound message rendering.

Turns a stored news item into the embed posted to a subscriber's channel.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from gamenews.models.domain import ItemType, PublisherInfo, StoredNewsItem, Subscription

DEFAULT_BODY_MAX_LENGTH = 300
ELLIPSIS = "..."

TYPE_BADGES = {
    ItemType.PATCH: "🔧 Patch Notes",
    ItemType.HOTFIX: "🚨 Hotfix",
    ItemType.EVENT: "🎉 Event",
    ItemType.MAINTENANCE: "⚙️ Maintenance",
    ItemType.NEWS: "📰 News",
}


class EmbedField(BaseModel):
    name: str
    value: str
    inline: bool = True


class Embed(BaseModel):
    """Rich card attached to an outbound message."""
    title: str
    description: str = ""
    url: Optional[str] = None
    color: int = 0x0099FF
    timestamp: Optional[datetime] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    footer: Optional[str] = None
    fields: list[EmbedField] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "fields": [f.model_dump() for f in self.fields],
        }
        if self.url:
            payload["url"] = self.url
        if self.timestamp:
            timestamp = self.timestamp if self.timestamp.tzinfo else self.timestamp.replace(tzinfo=timezone.utc)
            payload["timestamp"] = timestamp.isoformat()
        if self.image_url:
            payload["image"] = {"url": self.image_url}
        if self.thumbnail_url:
            payload["thumbnail"] = {"url": self.thumbnail_url}
        if self.footer:
            payload["footer"] = {"text": self.footer}
        return payload


class OutboundMessage(BaseModel):
    """Message body sent to a destination channel."""
    content: Optional[str] = None
    embed: Embed

    def to_payload(self) -> dict[str, Any]:
        """Discord REST "create message" JSON body."""
        payload: dict[str, Any] = {"embeds": [self.embed.to_payload()]}
        if self.content:
            payload["content"] = self.content
        return payload


def truncate(text: str, max_length: int = DEFAULT_BODY_MAX_LENGTH) -> str:
    """Cut text to max_length characters, ending in '...' when shortened."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def type_badge(item_type: ItemType) -> str:
    return TYPE_BADGES.get(item_type, TYPE_BADGES[ItemType.NEWS])


def render_message(
    item: StoredNewsItem,
    subscription: Subscription,
    publisher: PublisherInfo,
    body_max_length: int = DEFAULT_BODY_MAX_LENGTH,
) -> OutboundMessage:
    """
    Build the message for one (item, subscription) pair.

    The role mention goes in the message content so it actually pings;
    everything else lives in the embed.
    """
    content = f"<@&{subscription.notify_role_id}>" if subscription.notify_role_id else None

    embed = Embed(
        title=f"{publisher.icon} {item.title}",
        description=truncate(item.body or "", body_max_length),
        url=item.url,
        color=publisher.color,
        timestamp=item.published_at,
        image_url=item.image_url,
        thumbnail_url=item.thumbnail_url,
        footer=publisher.name,
        fields=[EmbedField(name="Type", value=type_badge(item.item_type))],
    )

    return OutboundMessage(content=content, embed=embed)
