"""
Destination platforms that receive rendered news messages.

Sends never raise: every outcome, including transport failures, comes
back as a SendResult.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from gamenews.services.rendering import OutboundMessage

logger = logging.getLogger(__name__)


class SendStatus(str, Enum):
    SENT = "sent"
    CHANNEL_NOT_FOUND = "channel_not_found"
    PERMISSION_DENIED = "permission_denied"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class SendResult:
    status: SendStatus
    message_ref: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SendStatus.SENT

    @classmethod
    def sent(cls, message_ref: str) -> "SendResult":
        return cls(status=SendStatus.SENT, message_ref=message_ref)


class DestinationPlatform(ABC):
    """A chat platform the relay can post into."""

    @abstractmethod
    async def can_post(self, channel_id: str) -> bool:
        """Whether the channel exists and is visible to the relay."""
        pass

    @abstractmethod
    async def send_message(self, channel_id: str, message: OutboundMessage) -> SendResult:
        pass

    async def aclose(self) -> None:
        pass


def _status_for(code: int) -> SendStatus:
    if code == 404:
        return SendStatus.CHANNEL_NOT_FOUND
    if code in (401, 403):
        return SendStatus.PERMISSION_DENIED
    return SendStatus.TRANSPORT_ERROR


class DiscordDestination(DestinationPlatform):
    """Posts embeds to Discord channels through the bot REST API."""

    def __init__(
        self,
        token: Optional[str],
        api_base: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"User-Agent": "GameNewsRelay (https://github.com, 1.0)"}
        if token:
            headers["Authorization"] = f"Bot {token}"
        else:
            logger.warning("No Discord bot token configured; sends will be rejected")

        self.client = httpx.AsyncClient(
            base_url=api_base,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def can_post(self, channel_id: str) -> bool:
        try:
            response = await self.client.get(f"/channels/{channel_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Channel lookup failed for {channel_id}: {e}")
            return False
        return response.status_code == 200

    async def send_message(self, channel_id: str, message: OutboundMessage) -> SendResult:
        try:
            response = await self.client.post(
                f"/channels/{channel_id}/messages",
                json=message.to_payload(),
            )
        except httpx.HTTPError as e:
            return SendResult(status=SendStatus.TRANSPORT_ERROR, detail=str(e))

        if response.is_success:
            try:
                return SendResult.sent(str(response.json()["id"]))
            except (ValueError, KeyError) as e:
                return SendResult(
                    status=SendStatus.TRANSPORT_ERROR,
                    detail=f"Unexpected response body: {e}",
                )

        return SendResult(
            status=_status_for(response.status_code),
            detail=f"HTTP {response.status_code}: {response.text[:200]}",
        )

    async def aclose(self) -> None:
        await self.client.aclose()
