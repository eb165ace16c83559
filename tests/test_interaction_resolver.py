from __future__ import annotations

import pytest

from orderbot.actions import ActionName, Stage
from orderbot.models import Callback, ConversationState, InboundEvent, ResolutionSource
from orderbot.services.interaction_resolver import PARTY_SIZE_RETRY_TEXT, InteractionResolver


@pytest.fixture
def resolver() -> InteractionResolver:
    return InteractionResolver()


def _callback_event(callback_id: str) -> InboundEvent:
    return InboundEvent(user_id="u1", callback=Callback(id=callback_id))


def test_add_callback_resolves_to_add_to_cart(resolver: InteractionResolver) -> None:
    resolved = resolver.resolve(_callback_event("add_57"), ConversationState())

    assert resolved is not None
    assert resolved.action_name == ActionName.ADD_TO_CART
    assert resolved.arguments == {"food_id": 57, "quantity": 1}
    assert resolved.source == ResolutionSource.CALLBACK


@pytest.mark.parametrize("callback_id", ["cat_momos", "more_momos"])
def test_category_prefixes_resolve_to_category_items(resolver: InteractionResolver, callback_id: str) -> None:
    resolved = resolver.resolve(_callback_event(callback_id), ConversationState())

    assert resolved is not None
    assert resolved.action_name == ActionName.SHOW_CATEGORY_ITEMS
    assert resolved.arguments == {"category": "momos"}


@pytest.mark.parametrize(
    ("callback_id", "action", "arguments"),
    [
        ("GET_STARTED", ActionName.SHOW_WELCOME_MESSAGE, {}),
        ("proceed_checkout", ActionName.CONFIRM_ORDER, {}),
        ("confirm_order", ActionName.PROCESS_ORDER_RESPONSE, {"action": "confirmed"}),
        ("cancel_order", ActionName.PROCESS_ORDER_RESPONSE, {"action": "cancelled"}),
        ("confirm_cancel", ActionName.PROCESS_ORDER_RESPONSE, {"action": "cancel_confirm"}),
        ("service_dine_in", ActionName.SELECT_SERVICE_TYPE, {"type": "dine_in"}),
        ("pay_cod", ActionName.PROCESS_PAYMENT, {"method": "COD"}),
        ("pay_cash_counter", ActionName.PROCESS_PAYMENT, {"method": "CASH_COUNTER"}),
        ("confirm_deposit", ActionName.SHOW_DINE_IN_PAYMENT_OPTIONS, {}),
    ],
)
def test_exact_callbacks(resolver: InteractionResolver, callback_id, action, arguments) -> None:
    resolved = resolver.resolve(_callback_event(callback_id), ConversationState())

    assert resolved is not None
    assert resolved.action_name == action
    assert resolved.arguments == arguments


def test_unknown_callback_falls_through(resolver: InteractionResolver) -> None:
    assert resolver.resolve(_callback_event("mystery_button"), ConversationState()) is None
    assert resolver.resolve(_callback_event("add_abc"), ConversationState()) is None


def test_callback_arguments_are_not_shared_between_turns(resolver: InteractionResolver) -> None:
    first = resolver.resolve(_callback_event("pay_online"), ConversationState())
    first.arguments["method"] = "tampered"

    second = resolver.resolve(_callback_event("pay_online"), ConversationState())
    assert second.arguments == {"method": "ONLINE"}


def test_party_size_capture(resolver: InteractionResolver) -> None:
    state = ConversationState(stage=Stage.COLLECTING_PARTY_SIZE)
    resolved = resolver.resolve(InboundEvent(user_id="u1", text="4"), state)

    assert resolved is not None
    assert resolved.action_name == ActionName.COLLECT_ARRIVAL_TIME
    assert resolved.arguments == {"party_size": 4}
    assert resolved.source == ResolutionSource.STAGE_CAPTURE


def test_party_size_capture_reads_leading_number(resolver: InteractionResolver) -> None:
    state = ConversationState(stage=Stage.COLLECTING_PARTY_SIZE)
    resolved = resolver.resolve(InboundEvent(user_id="u1", text="6 people"), state)

    assert resolved.arguments == {"party_size": 6}


@pytest.mark.parametrize("text", ["four", "0", "-2"])
def test_invalid_party_size_asks_again(resolver: InteractionResolver, text: str) -> None:
    state = ConversationState(stage=Stage.COLLECTING_PARTY_SIZE)
    resolved = resolver.resolve(InboundEvent(user_id="u1", text=text), state)

    assert resolved.action_name == ActionName.SEND_TEXT_REPLY
    assert resolved.arguments == {"message": PARTY_SIZE_RETRY_TEXT}


def test_arrival_time_and_location_capture(resolver: InteractionResolver) -> None:
    arrival = resolver.resolve(
        InboundEvent(user_id="u1", text="7:30 PM"),
        ConversationState(stage=Stage.COLLECTING_ARRIVAL_TIME),
    )
    location = resolver.resolve(
        InboundEvent(user_id="u1", text="Thamel, Kathmandu"),
        ConversationState(stage=Stage.PROVIDING_LOCATION),
    )

    assert arrival.action_name == ActionName.CONFIRM_RESERVATION_DEPOSIT
    assert arrival.arguments == {"arrival_time": "7:30 PM"}
    assert location.action_name == ActionName.PROVIDE_LOCATION
    assert location.arguments == {"address": "Thamel, Kathmandu"}


def test_callback_wins_over_stage_capture(resolver: InteractionResolver) -> None:
    state = ConversationState(stage=Stage.PROVIDING_LOCATION)
    event = InboundEvent(user_id="u1", text="Cancel ❌", callback=Callback(id="cancel_order"))

    resolved = resolver.resolve(event, state)
    assert resolved.action_name == ActionName.PROCESS_ORDER_RESPONSE


@pytest.mark.parametrize("text", ["show my orders", "Order History please", "any previous orders?"])
def test_history_keywords(resolver: InteractionResolver, text: str) -> None:
    resolved = resolver.resolve(InboundEvent(user_id="u1", text=text), ConversationState())

    assert resolved.action_name == ActionName.SHOW_ORDER_HISTORY
    assert resolved.source == ResolutionSource.KEYWORD


def test_free_text_needs_classifier(resolver: InteractionResolver) -> None:
    assert resolver.resolve(InboundEvent(user_id="u1", text="add 2 veg momo"), ConversationState()) is None
    assert resolver.resolve(InboundEvent(user_id="u1", text="   "), ConversationState()) is None
