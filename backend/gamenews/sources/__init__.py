"""
Publisher source adapters for the Game News Relay.
"""
from typing import Optional

import httpx

from gamenews.config import Settings
from gamenews.models.domain import PublisherInfo
from gamenews.sources.base import FetchResult, NewsSourceAdapter
from gamenews.sources.fortnite import FortniteNewsSource
from gamenews.sources.minecraft import MinecraftNewsSource
from gamenews.sources.riot import RiotNewsSource
from gamenews.sources.steam import SteamNewsSource

# Display metadata per publisher
PUBLISHER_CATALOG: dict[str, PublisherInfo] = {
    "lol": PublisherInfo(publisher_id="lol", name="League of Legends", icon="🎮", color=0x0AC8B9),
    "valorant": PublisherInfo(publisher_id="valorant", name="Valorant", icon="🎯", color=0xFF4655),
    "fortnite": PublisherInfo(publisher_id="fortnite", name="Fortnite", icon="🏝️", color=0x00D7FF),
    "minecraft": PublisherInfo(publisher_id="minecraft", name="Minecraft", icon="⛏️", color=0x6A9920),
    "cs2": PublisherInfo(publisher_id="cs2", name="Counter-Strike 2", icon="🔫", color=0xE89C3A),
}


def build_source_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, NewsSourceAdapter]:
    """
    Build the publisher_id -> adapter registry.

    Only publishers listed in settings.enabled_publishers are included.
    New publishers are added here by implementing NewsSourceAdapter.
    """
    common = {
        "max_items": settings.items_per_fetch,
        "timeout": settings.http_timeout_seconds,
        "user_agent": settings.user_agent,
        "transport": transport,
    }

    factories = {
        "lol": lambda: RiotNewsSource("lol", **common),
        "valorant": lambda: RiotNewsSource("valorant", **common),
        "fortnite": lambda: FortniteNewsSource(api_key=settings.fortnite_api_key, **common),
        "minecraft": lambda: MinecraftNewsSource(**common),
        "cs2": lambda: SteamNewsSource(settings.steam_cs2_app_id, publisher_id="cs2", **common),
    }

    registry: dict[str, NewsSourceAdapter] = {}
    for publisher_id in settings.enabled_publishers:
        factory = factories.get(publisher_id)
        if factory is None:
            raise ValueError(f"Unknown publisher: {publisher_id}")
        registry[publisher_id] = factory()

    return registry


__all__ = [
    "FetchResult",
    "NewsSourceAdapter",
    "FortniteNewsSource",
    "MinecraftNewsSource",
    "RiotNewsSource",
    "SteamNewsSource",
    "PUBLISHER_CATALOG",
    "build_source_registry",
]
