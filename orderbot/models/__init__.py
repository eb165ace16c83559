from __future__ import annotations

from .catalog import FoodItem, OrderLineItem, OrderRecord, StoredOrder
from .conversation import CartLine, ConversationState, HistoryTurn, PendingOrder, Reservation
from .decision import ActionDecision, ClassificationOutcome, ResolutionSource, ResolvedAction
from .events import Callback, EventResponse, InboundEvent, WebhookResponse
from .messages import Button, ListRow, ListSection, OutboundMessage

__all__ = [
    "ActionDecision",
    "Button",
    "Callback",
    "CartLine",
    "ClassificationOutcome",
    "ConversationState",
    "EventResponse",
    "FoodItem",
    "HistoryTurn",
    "InboundEvent",
    "ListRow",
    "ListSection",
    "OrderLineItem",
    "OrderRecord",
    "OutboundMessage",
    "PendingOrder",
    "Reservation",
    "ResolutionSource",
    "ResolvedAction",
    "StoredOrder",
    "WebhookResponse",
]
