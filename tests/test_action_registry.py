from __future__ import annotations

import pytest

from orderbot.actions import ActionName
from orderbot.services.action_registry import ActionRegistry, ActionSchemaEntry, ArgumentSpec
from orderbot.services.errors import MalformedArgumentsError


def test_registry_covers_every_action(registry: ActionRegistry) -> None:
    assert set(registry.names()) == set(ActionName)


def test_model_palette_hides_internal_actions(registry: ActionRegistry) -> None:
    palette = {entry.name for entry in registry.model_palette()}

    assert ActionName.ADD_ITEM_BY_NAME in palette
    assert ActionName.SEND_TEXT_REPLY in palette
    assert ActionName.ADD_TO_CART not in palette
    assert ActionName.PROCESS_PAYMENT not in palette
    assert registry.is_model_action("recommend_food")
    assert not registry.is_model_action("collect_party_size")
    assert not registry.is_model_action("apply_coupon")


def test_tool_definitions_follow_function_format(registry: ActionRegistry) -> None:
    tools = {tool["function"]["name"]: tool for tool in registry.tool_definitions()}

    add_tool = tools["add_item_by_name"]
    assert add_tool["type"] == "function"
    parameters = add_tool["function"]["parameters"]
    assert parameters["required"] == ["name"]
    assert parameters["properties"]["quantity"]["type"] == "integer"
    assert tools["process_order_response"]["function"]["parameters"]["properties"]["action"]["enum"] == [
        "confirmed",
        "cancelled",
        "cancel_confirm",
    ]
    assert "add_to_cart" not in tools


def test_registry_is_read_only(registry: ActionRegistry) -> None:
    with pytest.raises(TypeError):
        registry.entries[ActionName.SHOW_FOOD_MENU] = None  # type: ignore[index]


def test_duplicate_entries_are_rejected() -> None:
    entry = ActionSchemaEntry(name=ActionName.SHOW_FOOD_MENU, description="menu")
    with pytest.raises(ValueError):
        ActionRegistry.from_entries([entry, entry])


def test_get_unknown_action_returns_none(registry: ActionRegistry) -> None:
    assert registry.get("teleport") is None
    assert "teleport" not in registry


def test_coerce_arguments_repairs_model_output(registry: ActionRegistry) -> None:
    coerced = registry.coerce_arguments(
        "add_item_by_name",
        {"name": "Veg Momo", "quantity": "2", "extra": "ignored", "note": None},
    )

    assert coerced == {"name": "Veg Momo", "quantity": 2}


def test_coerce_arguments_matches_enum_case_insensitively(registry: ActionRegistry) -> None:
    assert registry.coerce_arguments("process_order_response", {"action": "Confirmed"}) == {
        "action": "confirmed"
    }
    assert registry.coerce_arguments("select_service_type", {"type": " DELIVERY "}) == {"type": "delivery"}


def test_coerce_arguments_rejects_wrong_types(registry: ActionRegistry) -> None:
    with pytest.raises(MalformedArgumentsError) as exc_info:
        registry.coerce_arguments("add_item_by_name", {"name": "Veg Momo", "quantity": "two"})

    assert exc_info.value.field == "quantity"
    assert exc_info.value.action_name == "add_item_by_name"


def test_coerce_arguments_rejects_non_object(registry: ActionRegistry) -> None:
    with pytest.raises(MalformedArgumentsError):
        registry.coerce_arguments("show_category_items", "momos")


def test_argument_spec_schema_for_array() -> None:
    schema = ArgumentSpec(field="items", type="array").json_schema()

    assert schema["type"] == "array"
    assert schema["items"]["required"] == ["name"]
