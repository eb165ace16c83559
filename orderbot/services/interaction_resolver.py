from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional, Tuple

from ..actions import ActionName, OrderResponse, PaymentMethod, ServiceType, Stage
from ..models import Callback, ConversationState, InboundEvent, ResolutionSource, ResolvedAction

PARTY_SIZE_RETRY_TEXT = "Please enter a valid number for party size."

_EXACT_CALLBACKS: Dict[str, Tuple[ActionName, Dict[str, Any]]] = {
    "GET_STARTED": (ActionName.SHOW_WELCOME_MESSAGE, {}),
    "add_more_items": (ActionName.SHOW_FOOD_MENU, {}),
    "view_all_categories": (ActionName.SHOW_FOOD_MENU, {}),
    "service_dine_in": (ActionName.SELECT_SERVICE_TYPE, {"type": ServiceType.DINE_IN.value}),
    "service_delivery": (ActionName.SELECT_SERVICE_TYPE, {"type": ServiceType.DELIVERY.value}),
    "proceed_checkout": (ActionName.CONFIRM_ORDER, {}),
    "confirm_order": (ActionName.PROCESS_ORDER_RESPONSE, {"action": OrderResponse.CONFIRMED.value}),
    "cancel_order": (ActionName.PROCESS_ORDER_RESPONSE, {"action": OrderResponse.CANCELLED.value}),
    "confirm_cancel": (ActionName.PROCESS_ORDER_RESPONSE, {"action": OrderResponse.CANCEL_CONFIRM.value}),
    "back_to_cart": (ActionName.SHOW_CART_OPTIONS, {}),
    "pay_online": (ActionName.PROCESS_PAYMENT, {"method": PaymentMethod.ONLINE.value}),
    "pay_cod": (ActionName.PROCESS_PAYMENT, {"method": PaymentMethod.COD.value}),
    "pay_cash_counter": (ActionName.PROCESS_PAYMENT, {"method": PaymentMethod.CASH_COUNTER.value}),
    "confirm_deposit": (ActionName.SHOW_DINE_IN_PAYMENT_OPTIONS, {}),
}

_CATEGORY_PREFIXES = ("cat_", "more_")
_ADD_PATTERN = re.compile(r"^add_(\d+)$")
_PARTY_SIZE_PATTERN = re.compile(r"^\s*(\d+)")

_ORDER_HISTORY_PATTERNS = (
    r"order history",
    r"my orders",
    r"past orders",
    r"previous orders",
)


def _contains_any(text: str, patterns: Iterable[str]) -> bool:
    return any(re.search(pattern, text, re.IGNORECASE) for pattern in patterns)


def _resolved(action: ActionName, source: ResolutionSource, **arguments: Any) -> ResolvedAction:
    return ResolvedAction(action_name=action, arguments=arguments, source=source)


class InteractionResolver:
    """
    Deterministic fast paths that bypass the language model.

    Rules are tried in order: UI callback ids, then stage-scoped text capture,
    then keyword shortcuts. ``None`` means the intent classifier must decide.
    """

    def resolve(self, event: InboundEvent, state: ConversationState) -> Optional[ResolvedAction]:
        if event.callback is not None:
            resolved = self.resolve_callback(event.callback)
            if resolved is not None:
                return resolved

        text = event.clean_text
        if not text:
            return None

        captured = self.resolve_stage_capture(text, state.stage)
        if captured is not None:
            return captured

        if _contains_any(text, _ORDER_HISTORY_PATTERNS):
            return _resolved(ActionName.SHOW_ORDER_HISTORY, ResolutionSource.KEYWORD)
        return None

    @staticmethod
    def resolve_callback(callback: Callback) -> Optional[ResolvedAction]:
        callback_id = (callback.id or "").strip()
        if not callback_id:
            return None

        exact = _EXACT_CALLBACKS.get(callback_id)
        if exact is not None:
            action, arguments = exact
            return ResolvedAction(action_name=action, arguments=dict(arguments), source=ResolutionSource.CALLBACK)

        for prefix in _CATEGORY_PREFIXES:
            if callback_id.startswith(prefix) and len(callback_id) > len(prefix):
                return _resolved(
                    ActionName.SHOW_CATEGORY_ITEMS,
                    ResolutionSource.CALLBACK,
                    category=callback_id[len(prefix):],
                )

        match = _ADD_PATTERN.match(callback_id)
        if match:
            return _resolved(
                ActionName.ADD_TO_CART,
                ResolutionSource.CALLBACK,
                food_id=int(match.group(1)),
                quantity=1,
            )
        return None

    @staticmethod
    def resolve_stage_capture(text: str, stage: Stage) -> Optional[ResolvedAction]:
        if stage == Stage.COLLECTING_PARTY_SIZE:
            match = _PARTY_SIZE_PATTERN.match(text)
            party_size = int(match.group(1)) if match else 0
            if party_size <= 0:
                return _resolved(
                    ActionName.SEND_TEXT_REPLY,
                    ResolutionSource.STAGE_CAPTURE,
                    message=PARTY_SIZE_RETRY_TEXT,
                )
            return _resolved(ActionName.COLLECT_ARRIVAL_TIME, ResolutionSource.STAGE_CAPTURE, party_size=party_size)

        if stage == Stage.COLLECTING_ARRIVAL_TIME:
            return _resolved(ActionName.CONFIRM_RESERVATION_DEPOSIT, ResolutionSource.STAGE_CAPTURE, arrival_time=text)

        if stage == Stage.PROVIDING_LOCATION:
            return _resolved(ActionName.PROVIDE_LOCATION, ResolutionSource.STAGE_CAPTURE, address=text)
        return None
