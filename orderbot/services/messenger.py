from __future__ import annotations

import logging
from threading import Lock
from typing import List, Protocol, Sequence

import httpx

from ..config import Settings
from ..models import Button, ListSection, OutboundMessage
from .errors import MessagingError

logger = logging.getLogger(__name__)


class Messenger(Protocol):
    """Outward messaging contract; content is platform-agnostic."""

    async def send_text(self, user_id: str, platform: str, text: str) -> None: ...

    async def send_selectable_list(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None,
        button_label: str,
        sections: Sequence[ListSection],
    ) -> None: ...

    async def send_buttons(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None,
        buttons: Sequence[Button],
    ) -> None: ...

    async def send_order_summary(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None = None,
        buttons: Sequence[Button] = (),
    ) -> None: ...


class BaseMessenger:
    """Builds ``OutboundMessage`` objects and hands them to ``deliver``."""

    async def deliver(self, message: OutboundMessage) -> None:
        raise NotImplementedError

    async def send_text(self, user_id: str, platform: str, text: str) -> None:
        await self.deliver(OutboundMessage(kind="text", user_id=user_id, platform=platform, body=text))

    async def send_selectable_list(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None,
        button_label: str,
        sections: Sequence[ListSection],
    ) -> None:
        await self.deliver(
            OutboundMessage(
                kind="list",
                user_id=user_id,
                platform=platform,
                title=title,
                body=body,
                footer=footer,
                button_label=button_label,
                sections=list(sections),
            )
        )

    async def send_buttons(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None,
        buttons: Sequence[Button],
    ) -> None:
        await self.deliver(
            OutboundMessage(
                kind="buttons",
                user_id=user_id,
                platform=platform,
                title=title,
                body=body,
                footer=footer,
                buttons=list(buttons),
            )
        )

    async def send_order_summary(
        self,
        user_id: str,
        platform: str,
        *,
        title: str,
        body: str,
        footer: str | None = None,
        buttons: Sequence[Button] = (),
    ) -> None:
        await self.deliver(
            OutboundMessage(
                kind="order_summary",
                user_id=user_id,
                platform=platform,
                title=title,
                body=body,
                footer=footer,
                buttons=list(buttons),
            )
        )


class OutboxMessenger(BaseMessenger):
    """Keeps every outbound message in memory."""

    def __init__(self) -> None:
        self._messages: List[OutboundMessage] = []
        self._lock = Lock()

    async def deliver(self, message: OutboundMessage) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> List[OutboundMessage]:
        with self._lock:
            return list(self._messages)

    def messages_for(self, user_id: str) -> List[OutboundMessage]:
        with self._lock:
            return [message for message in self._messages if message.user_id == user_id]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


class HttpMessenger(BaseMessenger):
    """Relays outbound messages as JSON to a delivery service."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: httpx.AsyncClient | None = None,
        url: str | None = None,
    ) -> None:
        self._url = url or settings.outbound_webhook_url
        if not self._url:
            raise ValueError("OUTBOUND_WEBHOOK_URL is required for HttpMessenger")
        self._timeout = settings.http_timeout_seconds
        self._client = client

    async def deliver(self, message: OutboundMessage) -> None:
        payload = message.model_dump(mode="json", exclude_none=True)
        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MessagingError(f"Failed to deliver {message.kind} message", reason="delivery_failed") from exc


class TurnMessenger(BaseMessenger):
    """
    Per-turn wrapper: records what the turn sent and forwards to the delegate.

    Delivery is best-effort; a failing delegate is logged and the turn goes on.
    """

    def __init__(self, delegate: BaseMessenger | None = None, *, log: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._delegate = delegate
        self._log = log or logger
        self.sent: List[OutboundMessage] = []
        self.failures = 0

    async def deliver(self, message: OutboundMessage) -> None:
        self.sent.append(message)
        if self._delegate is None:
            return
        try:
            await self._delegate.deliver(message)
        except Exception as exc:
            self.failures += 1
            self._log.warning("Outbound %s message not delivered: %s", message.kind, exc, exc_info=True)

    def digest(self) -> str:
        return "\n\n".join(message.digest() for message in self.sent)


_outbox = OutboxMessenger()


def get_outbox() -> OutboxMessenger:
    return _outbox
