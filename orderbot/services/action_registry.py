from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

from ..actions import ActionName, OrderResponse, PaymentMethod, ServiceType
from .errors import MalformedArgumentsError

ArgumentType = Literal["string", "number", "integer", "array"]


@dataclass(frozen=True)
class ArgumentSpec:
    field: str
    type: ArgumentType
    required: bool = False
    enum: Optional[Tuple[str, ...]] = None
    minimum: Optional[float] = None
    description: str = ""
    missing_message: Optional[str] = None

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.type == "array":
            schema["items"] = {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "quantity": {"type": "integer", "minimum": 1},
                },
                "required": ["name"],
            }
        return schema


@dataclass(frozen=True)
class ActionSchemaEntry:
    name: ActionName
    description: str
    arguments: Tuple[ArgumentSpec, ...] = ()
    exposed_to_model: bool = True

    def argument(self, field_name: str) -> ArgumentSpec | None:
        for spec in self.arguments:
            if spec.field == field_name:
                return spec
        return None

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(spec.field for spec in self.arguments if spec.required)

    def tool_definition(self) -> Dict[str, Any]:
        """OpenAI function-tool definition accepted by ``bind_tools``."""

        return {
            "type": "function",
            "function": {
                "name": str(self.name),
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {spec.field: spec.json_schema() for spec in self.arguments},
                    "required": list(self.required_fields),
                },
            },
        }


@dataclass(frozen=True)
class ActionRegistry:
    """Read-only catalog of every action and the shape of its arguments."""

    entries: Mapping[ActionName, ActionSchemaEntry] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    @classmethod
    def from_entries(cls, entries: Iterable[ActionSchemaEntry]) -> "ActionRegistry":
        mapping: Dict[ActionName, ActionSchemaEntry] = {}
        for entry in entries:
            if entry.name in mapping:
                raise ValueError(f"Duplicate action in registry: {entry.name}")
            mapping[entry.name] = entry
        return cls(entries=mapping)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def get(self, name: str) -> ActionSchemaEntry | None:
        try:
            return self.entries.get(ActionName(name))
        except ValueError:
            return None

    def names(self) -> List[ActionName]:
        return list(self.entries)

    def model_palette(self) -> List[ActionSchemaEntry]:
        return [entry for entry in self.entries.values() if entry.exposed_to_model]

    def is_model_action(self, name: str) -> bool:
        entry = self.get(name)
        return entry is not None and entry.exposed_to_model

    def tool_definitions(self) -> List[Dict[str, Any]]:
        return [entry.tool_definition() for entry in self.model_palette()]

    def coerce_arguments(self, name: str, raw: Any) -> Dict[str, Any]:
        """
        Repair model-supplied arguments for ``name``.

        Unknown keys and ``None`` values are dropped, numeric strings become
        numbers and enum values are matched case-insensitively. A present value
        that cannot be turned into its declared type raises
        ``MalformedArgumentsError``; missing or out-of-range values are left for
        the decision validator.
        """

        entry = self.get(name)
        if entry is None:
            raise MalformedArgumentsError(name, None, f"Unknown action {name!r}")
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise MalformedArgumentsError(name, None, "Arguments must be a JSON object")

        coerced: Dict[str, Any] = {}
        for spec in entry.arguments:
            if spec.field not in raw or raw[spec.field] is None:
                continue
            value = _coerce_value(spec, raw[spec.field])
            if value is _INVALID:
                raise MalformedArgumentsError(
                    name,
                    spec.field,
                    f"Argument {spec.field!r} of {name} must be of type {spec.type}",
                )
            coerced[spec.field] = value
        return coerced


_INVALID = object()


def _coerce_value(spec: ArgumentSpec, value: Any) -> Any:
    if spec.type == "string":
        if isinstance(value, bool):
            return _INVALID
        if isinstance(value, (int, float)):
            value = str(value)
        if not isinstance(value, str):
            return _INVALID
        if spec.enum:
            for option in spec.enum:
                if option.lower() == value.strip().lower():
                    return option
        return value
    if spec.type in ("number", "integer"):
        if isinstance(value, bool):
            return _INVALID
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return _INVALID
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            return _INVALID
        if spec.type == "integer":
            if float(value) != int(value):
                return _INVALID
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value
    if spec.type == "array":
        if not isinstance(value, list):
            return _INVALID
        return value
    return _INVALID


def _values(enum_cls: Any) -> Tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


def build_default_registry() -> ActionRegistry:
    """Build the restaurant action registry once at startup."""

    return ActionRegistry.from_entries(
        [
            ActionSchemaEntry(
                name=ActionName.SHOW_FOOD_MENU,
                description="Show the list of food categories. Use when the user wants to see the menu.",
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_CATEGORY_ITEMS,
                description="Show the items of one menu category, e.g. momos, noodles, rice or beverages.",
                arguments=(
                    ArgumentSpec(
                        field="category",
                        type="string",
                        required=True,
                        description="Menu category name",
                        missing_message="Which category would you like to see?",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.ADD_ITEM_BY_NAME,
                description=(
                    "Add a food item to the cart by its name. Use when the user says 'add X' "
                    "or 'I want X'. Extract the quantity separately."
                ),
                arguments=(
                    ArgumentSpec(
                        field="name",
                        type="string",
                        required=True,
                        description="Item name as said by the user, e.g. 'Veg Momo'",
                        missing_message="Please specify which item you want to add.",
                    ),
                    ArgumentSpec(
                        field="quantity",
                        type="integer",
                        minimum=1,
                        description="How many portions, defaults to 1",
                        missing_message="Please enter a valid quantity.",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.ADD_TO_CART,
                description="Add a catalog item to the cart by id.",
                arguments=(
                    ArgumentSpec(field="food_id", type="integer", required=True, minimum=1),
                    ArgumentSpec(field="quantity", type="integer", minimum=1),
                ),
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_CART_OPTIONS,
                description="Show the current cart with options to add more items or check out.",
            ),
            ActionSchemaEntry(
                name=ActionName.CONFIRM_ORDER,
                description=(
                    "Show the order summary for checkout. Use only when the user wants to finalize "
                    "the order. Do not pass items; the cart is managed separately."
                ),
                arguments=(
                    ArgumentSpec(
                        field="items",
                        type="array",
                        description="Optional explicit items; prices are always taken from the menu",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.PROCESS_ORDER_RESPONSE,
                description=(
                    "Handle the user's answer to the order summary: 'confirmed' to place the order, "
                    "'cancelled' to ask for cancellation, 'cancel_confirm' when cancellation is confirmed."
                ),
                arguments=(
                    ArgumentSpec(
                        field="action",
                        type="string",
                        required=True,
                        enum=_values(OrderResponse),
                        missing_message="Please let me know whether to confirm or cancel the order.",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.SEND_TEXT_REPLY,
                description="Reply with plain text for greetings, small talk or clarifications.",
                arguments=(
                    ArgumentSpec(
                        field="message",
                        type="string",
                        required=True,
                        description="Text to send to the user",
                        missing_message="How can I help you today?",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_ORDER_HISTORY,
                description="Show the user's past orders.",
            ),
            ActionSchemaEntry(
                name=ActionName.SELECT_SERVICE_TYPE,
                description=(
                    "Ask for or set the service type. Without a type the user is asked to choose "
                    "between dine-in and delivery."
                ),
                arguments=(
                    ArgumentSpec(
                        field="type",
                        type="string",
                        enum=_values(ServiceType),
                        missing_message="Please choose Dine-in or Delivery.",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.PROVIDE_LOCATION,
                description="Set the delivery address given by the user.",
                arguments=(
                    ArgumentSpec(
                        field="address",
                        type="string",
                        required=True,
                        description="Delivery address or location",
                        missing_message="Please provide a valid delivery address.",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.RECOMMEND_FOOD,
                description=(
                    "Recommend dishes. Use whenever the user asks for a suggestion or mentions a "
                    "preference such as 'something spicy'."
                ),
                arguments=(
                    ArgumentSpec(
                        field="tag",
                        type="string",
                        description="Keyword or preference; omit for a random pick",
                    ),
                ),
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_WELCOME_MESSAGE,
                description="Greet the user with a button to open the menu.",
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.COLLECT_PARTY_SIZE,
                description="Ask how many people are coming for dine-in.",
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.COLLECT_ARRIVAL_TIME,
                description="Store the party size and ask for the arrival time.",
                arguments=(
                    ArgumentSpec(
                        field="party_size",
                        type="integer",
                        required=True,
                        minimum=1,
                        missing_message="Please enter a valid number for party size.",
                    ),
                ),
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.CONFIRM_RESERVATION_DEPOSIT,
                description="Store the arrival time and ask to confirm the table deposit.",
                arguments=(
                    ArgumentSpec(
                        field="arrival_time",
                        type="string",
                        required=True,
                        missing_message="Please tell me what time you will arrive.",
                    ),
                ),
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_PAYMENT_OPTIONS,
                description="Offer delivery payment methods.",
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.SHOW_DINE_IN_PAYMENT_OPTIONS,
                description="Offer dine-in payment methods.",
                exposed_to_model=False,
            ),
            ActionSchemaEntry(
                name=ActionName.PROCESS_PAYMENT,
                description="Record the selected payment method and complete the order.",
                arguments=(
                    ArgumentSpec(
                        field="method",
                        type="string",
                        required=True,
                        enum=_values(PaymentMethod),
                        missing_message="Please choose a payment method.",
                    ),
                ),
                exposed_to_model=False,
            ),
        ]
    )
