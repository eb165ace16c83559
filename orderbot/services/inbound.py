from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..actions import Platform
from ..models import Callback, InboundEvent

logger = logging.getLogger(__name__)


def parse_interactive_reply(interactive: Dict[str, Any] | None) -> Optional[Callback]:
    """Normalize a WhatsApp or Messenger selection into a ``Callback``."""

    if not interactive:
        return None
    kind = interactive.get("type")
    if kind == "button_reply":
        reply = interactive.get("button_reply") or {}
        return _callback("button", reply.get("id"), reply.get("title"))
    if kind == "list_reply":
        reply = interactive.get("list_reply") or {}
        return _callback("list", reply.get("id"), reply.get("title"))
    if kind == "postback":
        return _callback("button", interactive.get("payload"), interactive.get("title"))
    if kind == "quick_reply":
        payload = interactive.get("payload")
        return _callback("button", payload, interactive.get("title") or payload)
    return None


def _callback(kind: str, callback_id: Any, label: Any) -> Optional[Callback]:
    if not callback_id:
        return None
    return Callback(kind=kind, id=str(callback_id), label=str(label) if label else None)


def _iter_dicts(values: Any) -> Iterable[Dict[str, Any]]:
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, dict)]


def parse_whatsapp_payload(payload: Dict[str, Any]) -> List[InboundEvent]:
    """Extract text and interactive messages from a WhatsApp Cloud API webhook body."""

    events: List[InboundEvent] = []
    for entry in _iter_dicts(payload.get("entry")):
        for change in _iter_dicts(entry.get("changes")):
            value = change.get("value") or {}
            for message in _iter_dicts(value.get("messages")):
                sender = message.get("from")
                if not sender:
                    continue
                message_type = message.get("type") or "text"
                text: Optional[str] = None
                callback: Optional[Callback] = None
                if message_type == "text":
                    text = (message.get("text") or {}).get("body")
                elif message_type == "interactive":
                    callback = parse_interactive_reply(message.get("interactive"))
                elif message_type == "button":
                    button = message.get("button") or {}
                    callback = _callback("button", button.get("payload"), button.get("text"))
                    text = button.get("text")
                if not text and callback is None:
                    logger.info("Skipping unsupported WhatsApp message type=%s", message_type)
                    continue
                events.append(
                    InboundEvent(
                        user_id=str(sender),
                        platform=Platform.WHATSAPP.value,
                        text=text,
                        callback=callback,
                    )
                )
    return events


def parse_messenger_payload(payload: Dict[str, Any]) -> List[InboundEvent]:
    """Extract text, quick replies and postbacks from a Messenger webhook body."""

    events: List[InboundEvent] = []
    for entry in _iter_dicts(payload.get("entry")):
        for messaging in _iter_dicts(entry.get("messaging")):
            sender = (messaging.get("sender") or {}).get("id")
            if not sender:
                continue
            text: Optional[str] = None
            callback: Optional[Callback] = None
            postback = messaging.get("postback")
            message = messaging.get("message") or {}
            if message.get("is_echo"):
                continue
            if postback:
                callback = parse_interactive_reply({"type": "postback", **postback})
            elif message.get("quick_reply"):
                callback = parse_interactive_reply({"type": "quick_reply", **message["quick_reply"]})
                text = message.get("text")
                if callback is not None and text:
                    callback = callback.model_copy(update={"label": text})
            else:
                text = message.get("text")
            if not text and callback is None:
                continue
            events.append(
                InboundEvent(
                    user_id=str(sender),
                    platform=Platform.MESSENGER.value,
                    text=text,
                    callback=callback,
                )
            )
    return events
