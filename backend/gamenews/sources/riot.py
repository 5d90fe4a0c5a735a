"""
Riot Games adapter for League of Legends and Valorant.

Both games publish regional RSS feeds; the en-gb feed is a fallback for
when en-us is unavailable.
"""
from typing import Optional

from gamenews.models.domain import ItemType, NewsItem, utcnow
from gamenews.sources.rss import FeedEntry, RSSFeedSource

RIOT_FEEDS = {
    "lol": (
        "https://www.leagueoflegends.com/en-us/news/rss.xml",
        "https://www.leagueoflegends.com/en-gb/news/rss.xml",
    ),
    "valorant": (
        "https://playvalorant.com/en-us/news/rss/",
        "https://playvalorant.com/en-gb/news/rss/",
    ),
}

RIOT_NAMES = {
    "lol": "League of Legends",
    "valorant": "Valorant",
}


class RiotNewsSource(RSSFeedSource):
    """Adapter for Riot game news feeds."""

    def __init__(self, game: str, **kwargs):
        if game not in RIOT_FEEDS:
            raise ValueError(f"Unsupported Riot game: {game}")
        super().__init__(**kwargs)
        self.game = game
        self.feed_urls = RIOT_FEEDS[game]

    @property
    def publisher_id(self) -> str:
        return self.game

    @property
    def name(self) -> str:
        return RIOT_NAMES[self.game]

    def entry_to_item(self, entry: FeedEntry) -> Optional[NewsItem]:
        return NewsItem(
            publisher_id=self.publisher_id,
            external_id=self.external_id_for(entry),
            title=entry.title,
            body=self.entry_body(entry),
            url=entry.link,
            image_url=entry.enclosure_url or self.extract_image(entry),
            thumbnail_url=None,
            item_type=self.detect_type(entry),
            published_at=entry.published_at or utcnow(),
            metadata={"categories": entry.categories},
        )

    def detect_type(self, entry: FeedEntry) -> ItemType:
        """Detect news type from title and category keywords."""
        title = entry.title.lower()
        category = " ".join(entry.categories).lower()

        if "hotfix" in title or "hotfix" in category:
            return ItemType.HOTFIX
        if "patch" in title or "patch" in category:
            return ItemType.PATCH
        if self.game == "valorant" and ("agent" in title or "map" in title):
            return ItemType.PATCH
        if "event" in title or "event" in category:
            return ItemType.EVENT
        if "maintenance" in title:
            return ItemType.MAINTENANCE

        return ItemType.NEWS
