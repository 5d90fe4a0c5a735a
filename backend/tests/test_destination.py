"""
Tests for the Discord destination using mocked HTTP responses.
"""

import json
from datetime import datetime

import httpx

from gamenews.services.destination import DiscordDestination, SendStatus
from gamenews.services.rendering import Embed, OutboundMessage

MESSAGE = OutboundMessage(
    content="<@&42>",
    embed=Embed(title="🔫 Update", description="Fixes.", timestamp=datetime(2024, 1, 15, 12, 0, 0)),
)


def destination_with(handler) -> DiscordDestination:
    return DiscordDestination(
        "bot-token",
        api_base="https://discord.test/api/v10",
        transport=httpx.MockTransport(handler),
    )


class TestDiscordDestination:

    async def test_send_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "998877", "channel_id": "c1"})

        destination = destination_with(handler)
        result = await destination.send_message("c1", MESSAGE)
        await destination.aclose()

        assert result.status == SendStatus.SENT
        assert result.message_ref == "998877"
        assert seen["path"] == "/api/v10/channels/c1/messages"
        assert seen["auth"] == "Bot bot-token"
        assert seen["body"]["content"] == "<@&42>"
        assert seen["body"]["embeds"][0]["title"] == "🔫 Update"

    async def test_status_mapping(self):
        for code, expected in (
            (404, SendStatus.CHANNEL_NOT_FOUND),
            (403, SendStatus.PERMISSION_DENIED),
            (401, SendStatus.PERMISSION_DENIED),
            (500, SendStatus.TRANSPORT_ERROR),
            (429, SendStatus.TRANSPORT_ERROR),
        ):
            destination = destination_with(lambda r, code=code: httpx.Response(code, text="nope"))
            result = await destination.send_message("c1", MESSAGE)
            await destination.aclose()

            assert result.status == expected, code
            assert result.message_ref is None
            assert str(code) in result.detail

    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        destination = destination_with(handler)
        result = await destination.send_message("c1", MESSAGE)
        await destination.aclose()

        assert result.status == SendStatus.TRANSPORT_ERROR
        assert not result.ok

    async def test_can_post(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/channels/c1"):
                return httpx.Response(200, json={"id": "c1"})
            return httpx.Response(404)

        destination = destination_with(handler)

        assert await destination.can_post("c1") is True
        assert await destination.can_post("c2") is False
        await destination.aclose()
