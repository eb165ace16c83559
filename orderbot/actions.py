from __future__ import annotations

from enum import StrEnum


class ActionName(StrEnum):
    """Every action the assistant can execute in response to a turn."""

    SHOW_FOOD_MENU = "show_food_menu"
    SHOW_CATEGORY_ITEMS = "show_category_items"
    ADD_ITEM_BY_NAME = "add_item_by_name"
    ADD_TO_CART = "add_to_cart"
    SHOW_CART_OPTIONS = "show_cart_options"
    CONFIRM_ORDER = "confirm_order"
    PROCESS_ORDER_RESPONSE = "process_order_response"
    SEND_TEXT_REPLY = "send_text_reply"
    SHOW_ORDER_HISTORY = "show_order_history"
    SELECT_SERVICE_TYPE = "select_service_type"
    PROVIDE_LOCATION = "provide_location"
    RECOMMEND_FOOD = "recommend_food"

    SHOW_WELCOME_MESSAGE = "show_welcome_message"
    COLLECT_PARTY_SIZE = "collect_party_size"
    COLLECT_ARRIVAL_TIME = "collect_arrival_time"
    CONFIRM_RESERVATION_DEPOSIT = "confirm_reservation_deposit"
    SHOW_PAYMENT_OPTIONS = "show_payment_options"
    SHOW_DINE_IN_PAYMENT_OPTIONS = "show_dine_in_payment_options"
    PROCESS_PAYMENT = "process_payment"


class Stage(StrEnum):
    """Discrete points of the ordering conversation."""

    INITIAL = "initial"
    VIEWING_MENU = "viewing_menu"
    VIEWING_ITEMS = "viewing_items"
    QUICK_CART_ACTION = "quick_cart_action"
    SELECTING_ITEM = "selecting_item"
    CART_OPTIONS = "cart_options"
    VIEWING_RECOMMENDATIONS = "viewing_recommendations"
    CONFIRMING_ORDER = "confirming_order"
    CONFIRMING_CANCEL = "confirming_cancel"
    SELECTING_SERVICE = "selecting_service"
    PROVIDING_LOCATION = "providing_location"
    COLLECTING_PARTY_SIZE = "collecting_party_size"
    COLLECTING_ARRIVAL_TIME = "collecting_arrival_time"
    CONFIRMING_DEPOSIT = "confirming_deposit"
    SELECTING_PAYMENT = "selecting_payment"
    ORDER_COMPLETE = "order_complete"


class ServiceType(StrEnum):
    DINE_IN = "dine_in"
    DELIVERY = "delivery"


class PaymentMethod(StrEnum):
    COD = "COD"
    ONLINE = "ONLINE"
    CASH_COUNTER = "CASH_COUNTER"


class OrderResponse(StrEnum):
    """Answers accepted by process_order_response."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    CANCEL_CONFIRM = "cancel_confirm"


class OrderStatus(StrEnum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Platform(StrEnum):
    WHATSAPP = "whatsapp"
    MESSENGER = "messenger"
