"""
Steam news adapter (CS2, Dota 2, ...).
API docs: https://partner.steamgames.com/doc/webapi/ISteamNews
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from gamenews.models.domain import ItemType, NewsItem
from gamenews.sources.base import NewsSourceAdapter
from gamenews.sources.rss import clean_html

logger = logging.getLogger(__name__)

BBCODE_RE = re.compile(r"\[.*?\]")
BBCODE_IMG_RE = re.compile(r"\[img\](https?://[^\]]+)\[/img\]", re.IGNORECASE)
BARE_IMG_RE = re.compile(r"(https?://[^\s\[\]\"']+\.(?:jpg|jpeg|png|gif))", re.IGNORECASE)

STEAM_NAMES = {
    "730": "Counter-Strike 2",
    "570": "Dota 2",
}


class SteamNewsSource(NewsSourceAdapter):
    """Adapter for the ISteamNews GetNewsForApp endpoint."""

    BASE_URL = "https://api.steampowered.com/ISteamNews/GetNewsForApp/v0002/"

    def __init__(self, app_id: str, publisher_id: str = "cs2", **kwargs):
        super().__init__(**kwargs)
        self.app_id = app_id
        self._publisher_id = publisher_id

    @property
    def publisher_id(self) -> str:
        return self._publisher_id

    @property
    def name(self) -> str:
        return STEAM_NAMES.get(self.app_id, f"Steam app {self.app_id}")

    async def _fetch(self) -> list[NewsItem]:
        params = {
            "appid": self.app_id,
            "count": 10,
            "maxlength": 300,
            "format": "json",
        }
        async with self._client() as client:
            response = await client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            data = response.json()

        news_items = (data.get("appnews") or {}).get("newsitems") or []
        return self._build_items(news_items[: self.max_items], self._parse_item)

    def _parse_item(self, item: dict) -> Optional[NewsItem]:
        """Parse a Steam news entry into a NewsItem."""
        gid = item.get("gid")
        if not gid:
            return None

        return NewsItem(
            publisher_id=self.publisher_id,
            external_id=f"steam_{self.app_id}_{gid}",
            title=item.get("title") or "",
            body=self.clean_content(item.get("contents")),
            url=item.get("url"),
            image_url=self.extract_image(item.get("contents")),
            thumbnail_url=None,
            item_type=self.detect_type(item),
            published_at=datetime.fromtimestamp(int(item["date"]), tz=timezone.utc).replace(tzinfo=None),
            metadata={
                "author": item.get("author"),
                "feedlabel": item.get("feedlabel"),
                "feed_type": item.get("feed_type"),
            },
        )

    def clean_content(self, content: Optional[str]) -> str:
        """Remove BB codes and HTML."""
        if not content:
            return ""
        return clean_html(BBCODE_RE.sub("", content))

    def extract_image(self, content: Optional[str]) -> Optional[str]:
        """Steam embeds images as [img]URL[/img] or as bare URLs."""
        if not content:
            return None

        match = BBCODE_IMG_RE.search(content) or BARE_IMG_RE.search(content)
        if match:
            return match.group(1)
        return None

    def detect_type(self, item: dict) -> ItemType:
        """Detect news type from title and feed label."""
        title = (item.get("title") or "").lower()
        feed_label = (item.get("feedlabel") or "").lower()

        if "hotfix" in title:
            return ItemType.HOTFIX
        if "update" in title or "patch" in title or "patch" in feed_label:
            return ItemType.PATCH
        if "event" in title or "event" in feed_label:
            return ItemType.EVENT
        if "maintenance" in title or "downtime" in title:
            return ItemType.MAINTENANCE

        # Product Updates are usually patches
        if item.get("feed_type") == 0 or "product" in feed_label:
            return ItemType.PATCH

        return ItemType.NEWS
