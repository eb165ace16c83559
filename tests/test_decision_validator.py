from __future__ import annotations

from orderbot.services.action_registry import ActionRegistry
from orderbot.services.decision_validator import UNKNOWN_ACTION_MESSAGE, validate


def test_unknown_action_is_rejected(registry: ActionRegistry) -> None:
    result = validate("apply_coupon", {}, registry)

    assert not result.ok
    assert result.message == UNKNOWN_ACTION_MESSAGE


def test_missing_required_name_uses_action_message(registry: ActionRegistry) -> None:
    result = validate("add_item_by_name", {"quantity": 2}, registry)

    assert not result.ok
    assert result.field == "name"
    assert result.message == "Please specify which item you want to add."


def test_blank_address_is_rejected(registry: ActionRegistry) -> None:
    result = validate("provide_location", {"address": "   "}, registry)

    assert not result.ok
    assert result.message == "Please provide a valid delivery address."


def test_party_size_must_be_positive(registry: ActionRegistry) -> None:
    assert not validate("collect_arrival_time", {"party_size": 0}, registry).ok
    assert not validate("collect_arrival_time", {"party_size": True}, registry).ok
    assert validate("collect_arrival_time", {"party_size": 4}, registry).ok


def test_enum_membership_is_enforced(registry: ActionRegistry) -> None:
    result = validate("process_payment", {"method": "BITCOIN"}, registry)

    assert not result.ok
    assert result.field == "method"
    assert validate("process_payment", {"method": "COD"}, registry).ok


def test_optional_arguments_may_be_missing(registry: ActionRegistry) -> None:
    assert validate("select_service_type", {}, registry).ok
    assert validate("recommend_food", {}, registry).ok
    assert validate("confirm_order", {"items": []}, registry).ok


def test_wrong_type_is_rejected(registry: ActionRegistry) -> None:
    result = validate("confirm_order", {"items": "Veg Momo"}, registry)

    assert not result.ok
    assert result.field == "items"
