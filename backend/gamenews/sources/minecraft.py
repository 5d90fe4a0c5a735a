"""
Minecraft news adapter.
Pulls the official Minecraft community-content RSS feed.
"""
from typing import Optional

from gamenews.models.domain import ItemType, NewsItem, utcnow
from gamenews.sources.rss import FeedEntry, RSSFeedSource

PATCH_TITLE_KEYWORDS = ("snapshot", "pre-release", "release", "update")
PATCH_CATEGORIES = {"minecraft java edition"}
EVENT_CATEGORIES = {"events"}


class MinecraftNewsSource(RSSFeedSource):
    """Adapter for minecraft.net news."""

    feed_urls = ("https://www.minecraft.net/en-us/feeds/community-content/rss",)

    @property
    def publisher_id(self) -> str:
        return "minecraft"

    @property
    def name(self) -> str:
        return "Minecraft"

    def entry_to_item(self, entry: FeedEntry) -> Optional[NewsItem]:
        return NewsItem(
            publisher_id=self.publisher_id,
            external_id=self.external_id_for(entry),
            title=entry.title,
            body=self.entry_body(entry),
            url=entry.link,
            image_url=self.extract_image(entry),
            thumbnail_url=None,
            item_type=self.detect_type(entry),
            published_at=entry.published_at or utcnow(),
            metadata={
                "categories": entry.categories,
                "author": entry.author or "Mojang",
            },
        )

    def detect_type(self, entry: FeedEntry) -> ItemType:
        """Detect news type from title keywords and feed categories."""
        title = entry.title.lower()
        categories = {c.lower() for c in entry.categories}

        if any(k in title for k in PATCH_TITLE_KEYWORDS) or categories & PATCH_CATEGORIES:
            return ItemType.PATCH
        if "event" in title or categories & EVENT_CATEGORIES:
            return ItemType.EVENT
        if "maintenance" in title:
            return ItemType.MAINTENANCE

        return ItemType.NEWS
