from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from orderbot.config import Settings
from orderbot.models import Button
from orderbot.services.errors import MessagingError
from orderbot.services.messenger import HttpMessenger, OutboxMessenger, TurnMessenger


class ExplodingMessenger(OutboxMessenger):
    async def deliver(self, message) -> None:
        raise MessagingError("gateway down", reason="delivery_failed")


def test_http_messenger_posts_json() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            messenger = HttpMessenger(Settings(openai_api_key=""), client=client, url="https://relay.test/send")
            await messenger.send_buttons(
                "u1",
                "whatsapp",
                title="🛒 Your Cart",
                body="Subtotal: Rs.360",
                footer=None,
                buttons=[Button(id="proceed_checkout", title="Checkout 🛒")],
            )

    asyncio.run(scenario())

    assert seen[0]["kind"] == "buttons"
    assert seen[0]["buttons"] == [{"id": "proceed_checkout", "title": "Checkout 🛒"}]
    assert "footer" not in seen[0]


def test_http_messenger_wraps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            messenger = HttpMessenger(Settings(openai_api_key=""), client=client, url="https://relay.test/send")
            await messenger.send_text("u1", "whatsapp", "hello")

    with pytest.raises(MessagingError):
        asyncio.run(scenario())


def test_http_messenger_requires_url() -> None:
    with pytest.raises(ValueError):
        HttpMessenger(Settings(openai_api_key="", outbound_webhook_url=None))


def test_turn_messenger_records_and_forwards() -> None:
    outbox = OutboxMessenger()
    turn = TurnMessenger(outbox)

    asyncio.run(turn.send_text("u1", "whatsapp", "first"))
    asyncio.run(turn.send_text("u1", "whatsapp", "second"))

    assert [message.body for message in turn.sent] == ["first", "second"]
    assert [message.body for message in outbox.messages_for("u1")] == ["first", "second"]
    assert turn.digest() == "first\n\nsecond"


def test_turn_messenger_survives_delivery_failure(caplog) -> None:
    turn = TurnMessenger(ExplodingMessenger(), log=logging.getLogger("tests"))

    with caplog.at_level(logging.WARNING):
        asyncio.run(turn.send_text("u1", "whatsapp", "hello"))

    assert turn.failures == 1
    assert len(turn.sent) == 1
    assert "not delivered" in caplog.text
