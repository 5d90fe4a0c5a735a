"""
Services layer - the ingestion pipeline behind the Game News Relay.

1. Store (store.py):
   - Idempotent insert of news items and delivery slots
   - Publisher health bookkeeping

2. Delivery (delivery.py, rendering.py, destination.py):
   - Subscription type filters
   - Record-then-send fan-out to destination channels

3. Scheduler (scheduler.py):
   - Interval polling of every publisher
   - Per-publisher failure isolation
"""

from gamenews.services.delivery import DeliveryReport, FanoutEngine, matches_filters
from gamenews.services.destination import (
    DestinationPlatform,
    DiscordDestination,
    SendResult,
    SendStatus,
)
from gamenews.services.rendering import Embed, OutboundMessage, render_message
from gamenews.services.scheduler import PollingOrchestrator, PollOutcome
from gamenews.services.store import InsertOutcome, InsertResult, NewsStore

__all__ = [
    # Store
    "NewsStore",
    "InsertOutcome",
    "InsertResult",
    # Delivery
    "FanoutEngine",
    "DeliveryReport",
    "matches_filters",
    "Embed",
    "OutboundMessage",
    "render_message",
    "DestinationPlatform",
    "DiscordDestination",
    "SendResult",
    "SendStatus",
    # Scheduler
    "PollingOrchestrator",
    "PollOutcome",
]
