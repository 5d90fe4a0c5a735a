"""
Fortnite news adapter using fortnite-api.com.
API docs: https://dash.fortnite-api.com/endpoints/news

The API key is optional and only raises rate limits.
"""
from typing import Optional

from gamenews.models.domain import ItemType, NewsItem, utcnow
from gamenews.sources.base import NewsSourceAdapter

MAX_SHOP_MESSAGES = 3


class FortniteNewsSource(NewsSourceAdapter):
    """Adapter for Battle Royale news (MOTDs and shop messages)."""

    BASE_URL = "https://fortnite-api.com/v2"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def publisher_id(self) -> str:
        return "fortnite"

    @property
    def name(self) -> str:
        return "Fortnite"

    async def _fetch(self) -> list[NewsItem]:
        headers = {}
        if self.api_key:
            headers["Authorization"] = self.api_key

        async with self._client() as client:
            response = await client.get(f"{self.BASE_URL}/news/br", headers=headers)
            response.raise_for_status()
            payload = response.json()

        news_data = payload.get("data")
        if not news_data:
            return []

        # The API carries no dates; ids stay stable so dedup still holds
        fetched_at = utcnow()

        items = self._build_items(
            news_data.get("motds") or [],
            lambda motd: self._parse_motd(motd, fetched_at),
        )

        messages = ((news_data.get("news") or {}).get("messages") or [])[:MAX_SHOP_MESSAGES]
        items.extend(self._build_items(
            messages,
            lambda message: self._parse_message(message, fetched_at),
        ))

        return items

    def _parse_motd(self, motd: dict, fetched_at) -> Optional[NewsItem]:
        if not motd.get("id"):
            return None

        return NewsItem(
            publisher_id=self.publisher_id,
            external_id=f"motd_{motd['id']}",
            title=motd.get("title") or "Fortnite News",
            body=motd.get("body") or "",
            url="https://www.fortnite.com/news",
            image_url=motd.get("image"),
            thumbnail_url=motd.get("tileImage"),
            item_type=self.detect_type(motd),
            published_at=fetched_at,
            metadata={
                "id": motd["id"],
                "tab_title": motd.get("tabTitle"),
            },
        )

    def _parse_message(self, message: dict, fetched_at) -> Optional[NewsItem]:
        if not message.get("adspace"):
            return None

        return NewsItem(
            publisher_id=self.publisher_id,
            external_id=f"news_{message['adspace']}",
            title=message.get("title") or "Shop Update",
            body=message.get("body") or "",
            url="https://www.fortnite.com",
            image_url=message.get("image"),
            thumbnail_url=None,
            item_type=ItemType.NEWS,
            published_at=fetched_at,
            metadata={"adspace": message["adspace"]},
        )

    def detect_type(self, motd: dict) -> ItemType:
        """Detect news type from MOTD title and body."""
        title = (motd.get("title") or "").lower()
        body = (motd.get("body") or "").lower()

        if "update" in title or "patch" in body:
            return ItemType.PATCH
        if "event" in title or "event" in body:
            return ItemType.EVENT
        if "maintenance" in title or "downtime" in body:
            return ItemType.MAINTENANCE

        return ItemType.NEWS
