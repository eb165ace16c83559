from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..actions import ActionName, OrderResponse, PaymentMethod, ServiceType, Stage
from ..config import Settings
from ..models import (
    Button,
    CartLine,
    ConversationState,
    FoodItem,
    ListRow,
    ListSection,
    PendingOrder,
    Reservation,
)
from .action_registry import ActionRegistry
from .catalog import RANDOM_TAG, Catalog
from .decision_validator import validate
from .errors import PersistenceError
from .formatting import (
    DIVIDER,
    LIST_DESCRIPTION_LIMIT,
    LIST_ROW_LIMIT,
    LIST_TITLE_LIMIT,
    ORDER_STATUS_EMOJIS,
    cart_lines_text,
    category_emoji,
    category_title,
    compute_deposit,
    fallback_order_id,
    format_price,
    truncate,
)
from .messenger import Messenger
from .order_repository import OrderRepository

logger = logging.getLogger(__name__)

DEFAULT_TEXT_REPLY = "Hello! Welcome to our restaurant 🍽️ Type 'menu' to see our delicious options!"
EMPTY_CART_TEXT = "Your cart is empty! Let me show you our menu."
GENERIC_APOLOGY = "Sorry, something went wrong on our side. Please try again."
PAYMENT_FALLBACK_TEXT = "Order confirmed! We'll contact you for payment details."
LOCATION_PROMPT = (
    "📍 *Delivery Location*\n\nPlease type your delivery address/location so we can bring your food to you! 🏠"
)

# Stages in which a persisted order is waiting for service, reservation or payment details.
CHECKOUT_STAGES = frozenset(
    {
        Stage.SELECTING_SERVICE,
        Stage.PROVIDING_LOCATION,
        Stage.COLLECTING_PARTY_SIZE,
        Stage.COLLECTING_ARRIVAL_TIME,
        Stage.CONFIRMING_DEPOSIT,
        Stage.SELECTING_PAYMENT,
    }
)

HANDLER_APOLOGIES: Dict[ActionName, str] = {
    ActionName.SHOW_FOOD_MENU: "Sorry, I couldn't load the menu. Please try again.",
    ActionName.SHOW_CATEGORY_ITEMS: "Sorry, I couldn't load the items. Please try again.",
    ActionName.ADD_TO_CART: "Sorry, couldn't add that item. Please try again.",
    ActionName.ADD_ITEM_BY_NAME: "Sorry, couldn't find that item. Try browsing our menu!",
    ActionName.CONFIRM_ORDER: "Sorry, I couldn't prepare your order summary. Please try again.",
    ActionName.SHOW_ORDER_HISTORY: "Sorry, I couldn't check your order history right now.",
    ActionName.RECOMMEND_FOOD: "Sorry, I'm having trouble getting recommendations right now.",
}


@dataclass
class HandlerContext:
    user_id: str
    platform: str
    messenger: Messenger
    log: logging.Logger | logging.LoggerAdapter = logger


@dataclass
class DispatchResult:
    state: ConversationState
    rejected: Optional[str] = None
    failed: bool = False

    @property
    def ok(self) -> bool:
        return self.rejected is None and not self.failed


Handler = Callable[[Dict[str, Any], HandlerContext, ConversationState], Awaitable[ConversationState]]


def _has_open_order(state: ConversationState) -> bool:
    return bool(state.order_id) and state.stage in CHECKOUT_STAGES


def _complete(state: ConversationState, method: PaymentMethod) -> ConversationState:
    state.reset_order()
    state.payment_method = method
    state.stage = Stage.ORDER_COMPLETE
    return state


class ActionDispatcher:
    """
    Runs exactly one handler per resolved action.

    Every call is gated by the decision validator. Handlers mutate a deep copy
    of the conversation state; when a collaborator fails, the copy is dropped,
    the user gets an apology and the previous state is returned unchanged.
    """

    def __init__(
        self,
        *,
        registry: ActionRegistry,
        catalog: Catalog,
        orders: OrderRepository,
        settings: Settings,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._orders = orders
        self._settings = settings
        self._currency = settings.currency_label
        self._handlers: Dict[ActionName, Handler] = {
            ActionName.SHOW_FOOD_MENU: self._show_food_menu,
            ActionName.SHOW_CATEGORY_ITEMS: self._show_category_items,
            ActionName.ADD_ITEM_BY_NAME: self._add_item_by_name,
            ActionName.ADD_TO_CART: self._add_to_cart,
            ActionName.SHOW_CART_OPTIONS: self._show_cart_options,
            ActionName.CONFIRM_ORDER: self._confirm_order,
            ActionName.PROCESS_ORDER_RESPONSE: self._process_order_response,
            ActionName.SEND_TEXT_REPLY: self._send_text_reply,
            ActionName.SHOW_ORDER_HISTORY: self._show_order_history,
            ActionName.SELECT_SERVICE_TYPE: self._select_service_type,
            ActionName.PROVIDE_LOCATION: self._provide_location,
            ActionName.RECOMMEND_FOOD: self._recommend_food,
            ActionName.SHOW_WELCOME_MESSAGE: self._show_welcome_message,
            ActionName.COLLECT_PARTY_SIZE: self._collect_party_size,
            ActionName.COLLECT_ARRIVAL_TIME: self._collect_arrival_time,
            ActionName.CONFIRM_RESERVATION_DEPOSIT: self._confirm_reservation_deposit,
            ActionName.SHOW_PAYMENT_OPTIONS: self._show_payment_options,
            ActionName.SHOW_DINE_IN_PAYMENT_OPTIONS: self._show_dine_in_payment_options,
            ActionName.PROCESS_PAYMENT: self._process_payment,
        }
        missing_handlers = set(ActionName) - set(self._handlers)
        if missing_handlers:
            raise RuntimeError(f"No handler for actions: {sorted(missing_handlers)}")
        missing_schema = set(ActionName) - set(registry.names())
        if missing_schema:
            raise RuntimeError(f"Actions missing from registry: {sorted(missing_schema)}")

    @property
    def handled_actions(self) -> List[ActionName]:
        return list(self._handlers)

    async def dispatch(
        self,
        action_name: str,
        arguments: Dict[str, Any] | None,
        context: HandlerContext,
        state: ConversationState,
    ) -> DispatchResult:
        arguments = dict(arguments or {})
        verdict = validate(action_name, arguments, self._registry)
        if not verdict.ok:
            context.log.info(
                "Validation rejected action=%s field=%s", action_name, verdict.field
            )
            await context.messenger.send_text(context.user_id, context.platform, verdict.message or GENERIC_APOLOGY)
            return DispatchResult(state=state, rejected=verdict.message)

        action = ActionName(action_name)
        handler = self._handlers[action]
        working = state.model_copy(deep=True)
        try:
            updated = await handler(arguments, context, working)
        except Exception:
            context.log.exception("Handler failed action=%s", action)
            await context.messenger.send_text(
                context.user_id,
                context.platform,
                HANDLER_APOLOGIES.get(action, GENERIC_APOLOGY),
            )
            return DispatchResult(state=state, failed=True)

        updated.last_action = str(action)
        context.log.info("Dispatched action=%s stage=%s->%s", action, state.stage, updated.stage)
        return DispatchResult(state=updated)

    # ------------------------------------------------------------------
    # Menu browsing
    # ------------------------------------------------------------------

    async def _show_food_menu(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        categories = await self._catalog.list_categories()
        if not categories:
            await ctx.messenger.send_text(
                ctx.user_id, ctx.platform, "Our menu is being updated. Please check back soon! 🍽️"
            )
            return state
        rows = [
            ListRow(
                id=f"cat_{category}",
                title=category_title(category),
                description=f"Browse our {category} options",
                image_url=await self._catalog.get_category_image(category),
            )
            for category in categories
        ]
        await ctx.messenger.send_selectable_list(
            ctx.user_id,
            ctx.platform,
            title=f"🍽️ {self._settings.restaurant_name} Menu",
            body="Welcome! What would you like to order today? Browse our delicious categories below.",
            footer="Tap to view options",
            button_label="View Categories",
            sections=[ListSection(title="Food Categories", rows=rows)],
        )
        state.stage = Stage.VIEWING_MENU
        return state

    async def _show_category_items(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        category = args["category"].strip().lower()
        items = await self._catalog.list_items_by_category(category)
        if not items:
            await ctx.messenger.send_text(
                ctx.user_id, ctx.platform, f"No items found in {category}. Try another category!"
            )
            return await self._show_food_menu({}, ctx, state)

        if state.cart:
            body = (
                f"🛒 Cart: {state.cart_item_count()} item(s) - "
                f"{format_price(state.cart_total(), self._currency)}\n\nSelect items to add:"
            )
        else:
            body = f"Browse our delicious {category}! Select any item to add it to your cart."
        rows = [self._item_row(item, item.description) for item in items[:LIST_ROW_LIMIT]]
        await ctx.messenger.send_selectable_list(
            ctx.user_id,
            ctx.platform,
            title=f"{category_emoji(category)} {category.capitalize()}",
            body=body,
            footer="Tap to add items to cart",
            button_label="View Items",
            sections=[ListSection(title=category_title(category), rows=rows)],
        )
        state.stage = Stage.VIEWING_ITEMS
        state.current_category = category
        return state

    def _item_row(self, item: FoodItem, detail: str) -> ListRow:
        description = f"{format_price(item.price, self._currency)} - {detail}" if detail else format_price(
            item.price, self._currency
        )
        return ListRow(
            id=f"add_{item.id}",
            title=truncate(item.name, LIST_TITLE_LIMIT),
            description=truncate(description, LIST_DESCRIPTION_LIMIT),
            image_url=item.image_url,
        )

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    async def _add_to_cart(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        food = await self._catalog.get_item_by_id(int(args["food_id"]))
        if food is None:
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, "Sorry, that item is not available.")
            return state
        return await self._add_food(food, int(args.get("quantity") or 1), ctx, state)

    async def _add_item_by_name(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        name = args["name"].strip()
        quantity = int(args.get("quantity") or 1)
        matches = await self._catalog.search_items_by_name(name)
        if not matches:
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                f'❌ Sorry, "{name}" is not available on our menu.\n\nType "menu" to see what we have! 🍽️',
            )
            return state

        exact = [item for item in matches if item.name.lower() == name.lower()]
        if len(exact) == 1:
            matches = exact
        if len(matches) == 1:
            return await self._add_food(matches[0], quantity, ctx, state)

        rows = [self._item_row(item, item.description) for item in matches[:LIST_ROW_LIMIT]]
        await ctx.messenger.send_selectable_list(
            ctx.user_id,
            ctx.platform,
            title="🔍 Multiple Matches Found",
            body=f'Found {len(matches)} item(s) matching "{name}".\nSelect the one you want:',
            footer="Tap to add to cart",
            button_label="View Matches",
            sections=[ListSection(title="Matching Items", rows=rows)],
        )
        state.stage = Stage.SELECTING_ITEM
        return state

    async def _add_food(self, food: FoodItem, quantity: int, ctx: HandlerContext, state: ConversationState) -> ConversationState:
        state.add_to_cart(food, quantity)
        state.current_category = food.category or state.current_category
        state.last_added_item = food.name
        more_category = state.current_category or "momos"
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title="✅ Added to Cart",
            body=(
                f"*{food.name}* x{quantity} - {format_price(food.price * quantity, self._currency)}\n\n"
                f"🛒 Cart: {state.cart_item_count()} item(s) | "
                f"Total: {format_price(state.cart_total(), self._currency)}\n\n"
                "What would you like to do?"
            ),
            footer="Keep adding or checkout!",
            buttons=[
                Button(id=f"more_{more_category}", title="Add More ➕"),
                Button(id="view_all_categories", title="Other Categories 📋"),
                Button(id="proceed_checkout", title="Checkout 🛒"),
            ],
        )
        state.stage = Stage.QUICK_CART_ACTION
        return state

    async def _show_cart_options(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not state.cart:
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, EMPTY_CART_TEXT)
            return await self._show_food_menu({}, ctx, state)
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title="🛒 Your Cart",
            body=(
                f"{cart_lines_text(state.cart, self._currency)}\n{DIVIDER}\n"
                f"Subtotal: {format_price(state.cart_total(), self._currency)}\n\n"
                "Would you like to add more items or proceed to checkout?"
            ),
            footer="You can add more items anytime!",
            buttons=[
                Button(id="add_more_items", title="Add More Items ➕"),
                Button(id="proceed_checkout", title="Checkout 🛒"),
            ],
        )
        state.stage = Stage.CART_OPTIONS
        return state

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def _resolve_line(self, raw: Any) -> tuple[FoodItem | None, int, str]:
        """Look up one provisional line by id or by name; quantity defaults to 1."""

        if isinstance(raw, CartLine):
            raw = raw.model_dump()
        if not isinstance(raw, dict):
            return None, 1, str(raw)
        name = str(raw.get("name") or "").strip()
        quantity = raw.get("quantity")
        try:
            quantity = max(int(quantity), 1) if quantity is not None else 1
        except (TypeError, ValueError):
            quantity = 1
        food_id = raw.get("food_id", raw.get("foodId"))
        if food_id is not None:
            try:
                food = await self._catalog.get_item_by_id(int(food_id))
            except (TypeError, ValueError):
                food = None
            return food, quantity, name or f"item #{food_id}"
        if not name:
            return None, quantity, "unnamed item"
        matches = await self._catalog.search_items_by_name(name)
        return (matches[0] if matches else None), quantity, name

    async def _confirm_order(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        from_arguments = bool(args.get("items"))
        source: List[Any] = list(args["items"]) if from_arguments else list(state.cart)
        if not source:
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, EMPTY_CART_TEXT)
            return await self._show_food_menu({}, ctx, state)

        validated = ConversationState()
        invalid: List[str] = []
        for raw in source:
            food, quantity, label = await self._resolve_line(raw)
            if food is None:
                invalid.append(label)
                continue
            validated.add_to_cart(food, quantity)

        if not validated.cart:
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                "❌ Sorry, none of the items are available:\n"
                + "\n".join(f"• {label}" for label in invalid)
                + '\n\nType "menu" to see what we have! 🍽️',
            )
            if not from_arguments:
                state.cart = []
            state.pending_order = None
            return await self._show_food_menu({}, ctx, state)

        if invalid:
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                "⚠️ Note: These items are not available and were removed:\n"
                + "\n".join(f"• {label}" for label in invalid),
            )

        state.cart = validated.cart
        total = state.cart_total()
        await ctx.messenger.send_order_summary(
            ctx.user_id,
            ctx.platform,
            title="📋 Order Summary",
            body=f"{cart_lines_text(state.cart, self._currency)}\n{DIVIDER}\nTotal: {format_price(total, self._currency)}",
            footer="Please confirm your order",
            buttons=[
                Button(id="confirm_order", title="Confirm ✅"),
                Button(id="cancel_order", title="Cancel ❌"),
            ],
        )
        state.pending_order = PendingOrder(
            items=[line.model_copy() for line in state.cart],
            total=total,
        )
        state.stage = Stage.CONFIRMING_ORDER
        return state

    async def _process_order_response(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        response = OrderResponse(args["action"])
        if response is OrderResponse.CONFIRMED:
            return await self._place_order(ctx, state)
        if response is OrderResponse.CANCELLED:
            await ctx.messenger.send_buttons(
                ctx.user_id,
                ctx.platform,
                title="⚠️ Cancel Order?",
                body=(
                    "Are you sure you want to cancel?\n\n"
                    f"🛒 Cart: {state.cart_item_count()} item(s)\n"
                    f"💰 Total: {format_price(state.cart_total(), self._currency)}\n\n"
                    "This will remove all items from your cart."
                ),
                footer="Please confirm",
                buttons=[
                    Button(id="confirm_cancel", title="Yes, Cancel ❌"),
                    Button(id="back_to_cart", title="No, Go Back 🔙"),
                ],
            )
            state.stage = Stage.CONFIRMING_CANCEL
            return state

        item_count = state.cart_item_count()
        if state.order_id:
            try:
                await self._orders.cancel_order(state.order_id)
            except PersistenceError:
                ctx.log.warning("Order=%s could not be cancelled", state.order_id)
        await ctx.messenger.send_text(
            ctx.user_id,
            ctx.platform,
            f"❌ Order Cancelled\n\n{item_count} item(s) removed from cart.\n\n"
            "No worries! Feel free to browse our menu again whenever you're ready.\n\n"
            'Type "menu" to start a new order! 🍽️',
        )
        state.reset_order()
        state.stage = Stage.INITIAL
        return state

    async def _place_order(self, ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if state.stage != Stage.CONFIRMING_ORDER or not state.cart:
            return await self._resume_checkout(ctx, state)
        if state.order_id:
            ctx.log.info("Cart changed after order=%s was placed, replacing it", state.order_id)
            try:
                await self._orders.cancel_order(state.order_id)
            except PersistenceError:
                ctx.log.warning("Previous order=%s could not be cancelled", state.order_id)

        try:
            order_id = await self._orders.create_order(ctx.user_id, ctx.platform)
            for line in state.cart:
                await self._orders.add_line_item(
                    order_id,
                    line.food_id,
                    line.quantity,
                    name=line.name,
                    unit_price=line.unit_price,
                )
        except Exception:
            ctx.log.exception("Order persistence failed, using local order reference")
            local_id = fallback_order_id(self._settings.order_id_prefix)
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                "✅ Order Confirmed!\n\nThank you for your order! Your delicious food is being prepared "
                f"and will be delivered in 30-40 minutes.\n\nOrder ID: #{local_id}\n\nEnjoy your meal! 🥟",
            )
            state.reset_order()
            state.order_id = local_id
            state.stage = Stage.ORDER_COMPLETE
            return state

        if state.pending_order is None:
            state.pending_order = PendingOrder(
                items=[line.model_copy() for line in state.cart],
                total=state.cart_total(),
            )
        state.order_id = order_id
        state.stage = Stage.SELECTING_SERVICE
        return await self._select_service_type({}, ctx, state)

    async def _resume_checkout(self, ctx: HandlerContext, state: ConversationState) -> ConversationState:
        """
        Answer a checkout step that arrived out of order.

        Without a placed order the cart goes back through the order summary
        (or the menu when it is empty). With one, the prompt for the step the
        conversation is actually at is sent again and the stage is kept.
        """

        if not _has_open_order(state):
            if state.cart:
                return await self._confirm_order({}, ctx, state)
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, EMPTY_CART_TEXT)
            return await self._show_food_menu({}, ctx, state)

        ctx.log.info("Repeating checkout prompt stage=%s", state.stage)
        reservation = state.reservation or Reservation()
        if state.stage == Stage.PROVIDING_LOCATION:
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, LOCATION_PROMPT)
            return state
        if state.stage == Stage.COLLECTING_PARTY_SIZE or (
            state.stage == Stage.COLLECTING_ARRIVAL_TIME and not reservation.party_size
        ):
            return await self._collect_party_size({}, ctx, state)
        if state.stage == Stage.COLLECTING_ARRIVAL_TIME:
            return await self._collect_arrival_time({"party_size": reservation.party_size}, ctx, state)
        if state.stage == Stage.CONFIRMING_DEPOSIT and reservation.arrival_time:
            return await self._confirm_reservation_deposit({"arrival_time": reservation.arrival_time}, ctx, state)
        if state.stage == Stage.SELECTING_PAYMENT:
            if state.service_type is ServiceType.DINE_IN:
                return await self._send_dine_in_payment_menu(ctx, state)
            return await self._show_payment_options({}, ctx, state)
        return await self._select_service_type({}, ctx, state)

    # ------------------------------------------------------------------
    # Service type, delivery and reservation
    # ------------------------------------------------------------------

    async def _select_service_type(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)

        service = args.get("type")
        if not service:
            await ctx.messenger.send_buttons(
                ctx.user_id,
                ctx.platform,
                title="🍽️ Service Type",
                body="Would you like to Dine-in or have it Delivered?",
                footer="Please select one",
                buttons=[
                    Button(id="service_dine_in", title="Dine-in 🍽️"),
                    Button(id="service_delivery", title="Delivery 🛵"),
                ],
            )
            state.stage = Stage.SELECTING_SERVICE
            return state

        service_type = ServiceType(service)
        await self._orders.set_service_type(state.order_id, service_type)
        state.service_type = service_type

        if service_type is ServiceType.DINE_IN:
            await self._orders.set_delivery_address(state.order_id, "Dine-in")
            return await self._collect_party_size({}, ctx, state)

        await ctx.messenger.send_text(ctx.user_id, ctx.platform, LOCATION_PROMPT)
        state.stage = Stage.PROVIDING_LOCATION
        return state

    async def _provide_location(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)
        address = args["address"].strip()
        await self._orders.set_delivery_address(state.order_id, address)
        state.delivery_address = address
        state.service_type = state.service_type or ServiceType.DELIVERY
        await ctx.messenger.send_text(ctx.user_id, ctx.platform, f"✅ Delivery address set to: *{address}*")
        return await self._show_payment_options({}, ctx, state)

    async def _collect_party_size(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)
        await ctx.messenger.send_text(
            ctx.user_id,
            ctx.platform,
            "🍽️ *Dine-in Reservation*\n\nHow many people are coming? (Please type a number, e.g., '4')",
        )
        state.stage = Stage.COLLECTING_PARTY_SIZE
        return state

    async def _collect_arrival_time(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)
        party_size = int(args["party_size"])
        reservation = state.reservation or Reservation()
        state.reservation = reservation.model_copy(update={"party_size": party_size})
        await ctx.messenger.send_text(
            ctx.user_id,
            ctx.platform,
            f"🕒 *Arrival Time*\n\nGreat! Table for {party_size}. What time will you arrive today?\n"
            '(e.g., "7:30 PM" or "19:30")',
        )
        state.stage = Stage.COLLECTING_ARRIVAL_TIME
        return state

    async def _confirm_reservation_deposit(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)
        arrival_time = args["arrival_time"].strip()
        reservation = state.reservation or Reservation()
        order_total = state.pending_order.total if state.pending_order else state.cart_total()
        rate = self._settings.deposit_rate
        deposit = compute_deposit(order_total, rate)

        await self._orders.set_reservation(
            state.order_id,
            party_size=reservation.party_size,
            arrival_time=arrival_time,
        )
        await self._orders.set_deposit(state.order_id, deposit)

        state.reservation = reservation.model_copy(
            update={"arrival_time": arrival_time, "deposit_amount": deposit}
        )
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title="📝 Reservation Summary",
            body=(
                f"👤 Party Size: {reservation.party_size or '-'}\n🕒 Time: {arrival_time}\n\n"
                f"⚠️ *Deposit Required*\nTo confirm your table, we require a {round(rate * 100)}% deposit.\n\n"
                f"💰 Total Order: {format_price(order_total, self._currency)}\n"
                f"💳 *Deposit Amount: {format_price(deposit, self._currency)}*\n\n"
                "ℹ️ _This deposit is refundable if cancelled 3+ hours before booking time._"
            ),
            footer="Confirm to proceed",
            buttons=[
                Button(id="confirm_deposit", title="Confirm & Pay 💰"),
                Button(id="cancel_order", title="Cancel ❌"),
            ],
        )
        state.stage = Stage.CONFIRMING_DEPOSIT
        return state

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def _show_payment_options(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state):
            return await self._resume_checkout(ctx, state)
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title="💳 Payment Method",
            body="Choose your preferred payment method:",
            footer="Select to continue",
            buttons=[
                Button(id="pay_cod", title="Cash on Delivery 💵"),
                Button(id="pay_online", title="Online Payment 📱"),
            ],
        )
        state.stage = Stage.SELECTING_PAYMENT
        return state

    async def _show_dine_in_payment_options(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state) or state.stage != Stage.CONFIRMING_DEPOSIT:
            return await self._resume_checkout(ctx, state)
        return await self._send_dine_in_payment_menu(ctx, state)

    async def _send_dine_in_payment_menu(self, ctx: HandlerContext, state: ConversationState) -> ConversationState:
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title="💳 Payment Method",
            body="How would you like to pay for your dine-in order?",
            footer="Select to continue",
            buttons=[
                Button(id="pay_cash_counter", title="Cash at Counter 💵"),
                Button(id="pay_online", title="Online Payment 📱"),
            ],
        )
        state.service_type = state.service_type or ServiceType.DINE_IN
        state.stage = Stage.SELECTING_PAYMENT
        return state

    async def _process_payment(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        if not _has_open_order(state) or state.stage != Stage.SELECTING_PAYMENT or state.pending_order is None:
            return await self._resume_checkout(ctx, state)

        method = PaymentMethod(args["method"])
        total = state.pending_order.total
        try:
            await self._orders.set_payment_method(state.order_id, method)
        except Exception:
            ctx.log.exception("Saving payment method failed method=%s", method)
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, PAYMENT_FALLBACK_TEXT)
            return _complete(state, method)

        for text in self._payment_messages(method, state.service_type, total, state.order_id):
            await ctx.messenger.send_text(ctx.user_id, ctx.platform, text)
        return _complete(state, method)

    def _payment_messages(
        self,
        method: PaymentMethod,
        service_type: ServiceType | None,
        total: float,
        order_ref: str,
    ) -> List[str]:
        amount = format_price(total, self._currency)
        name = self._settings.restaurant_name
        if method is PaymentMethod.ONLINE:
            details = (
                "💳 *Online Payment Details*\n\n"
                "━━━━━━━━━━━━━━━━━━━━━\n"
                "📱 *eSewa*\n"
                "   ID: 9800000001\n"
                f"   Name: {name} Pvt Ltd\n\n"
                "📱 *Khalti*\n"
                "   ID: 9800000002\n"
                f"   Name: {name}\n\n"
                "🏦 *Bank Transfer*\n"
                "   Bank: Nepal Bank Ltd\n"
                "   A/C: 0123456789012\n"
                f"   Name: {name} Pvt Ltd\n"
                "━━━━━━━━━━━━━━━━━━━━━\n\n"
                f"💰 *Amount to Pay: {amount}*\n\n"
                "📝 Please send payment screenshot to confirm.\n"
                f"Order ID: #{order_ref}"
            )
            if service_type is ServiceType.DINE_IN:
                placed = (
                    "✅ Order Placed!\n\nYour order will be prepared once payment is confirmed.\n\n"
                    "🍽️ Please come to our restaurant to enjoy your meal!\n\n"
                    "Preparation time: 15-20 minutes.\n\nThank you for ordering! 🥟"
                )
            else:
                placed = (
                    "✅ Order Placed!\n\nYour order will be prepared once payment is confirmed.\n\n"
                    "🛵 Delivery: 30-40 minutes after confirmation.\n\nThank you for ordering! 🥟"
                )
            return [details, placed]
        if method is PaymentMethod.CASH_COUNTER:
            return [
                "✅ Order Confirmed!\n\n"
                "💳 Payment: Cash at Counter\n"
                f"💰 Amount: {amount}\n\n"
                "Your delicious food is being prepared!\n\n"
                "🍽️ Please come to our restaurant and pay at the counter.\n\n"
                f"Order ID: #{order_ref}\n\n"
                "Preparation time: 15-20 minutes.\n\nEnjoy your meal! 🥟"
            ]
        return [
            "✅ Order Confirmed!\n\n"
            "💳 Payment: Cash on Delivery\n"
            f"💰 Amount: {amount}\n\n"
            "Your delicious food is being prepared and will be delivered in 30-40 minutes.\n\n"
            f"Order ID: #{order_ref}\n\n"
            f"Please keep {amount} ready!\n\nEnjoy your meal! 🥟"
        ]

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    async def _show_welcome_message(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        await ctx.messenger.send_buttons(
            ctx.user_id,
            ctx.platform,
            title=f"Welcome to {self._settings.restaurant_name}! 🥟",
            body="We serve the best foods in town. Browse our menu to order now!",
            footer="Tap below to start",
            buttons=[Button(id="view_all_categories", title="View Menu 🍽️")],
        )
        state.stage = Stage.INITIAL
        return state

    async def _show_order_history(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        orders = await self._orders.list_recent_orders(ctx.user_id, self._settings.order_history_limit)
        if not orders:
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                "📋 *Order History*\n\nYou haven't placed any orders yet!\n\n"
                'Type "menu" to start your first order! 🍽️',
            )
            return state

        lines = ["📋 *Your Order History*", ""]
        for order in orders:
            emoji = ORDER_STATUS_EMOJIS.get(str(order.status), "📝")
            lines.append(f"{emoji} *Order #{order.order_id}*")
            lines.append(f"   📅 {order.created_at.strftime('%b %d, %I:%M %p')}")
            lines.append(
                f"   🛒 {order.item_count} item(s) | {format_price(round(order.total), self._currency)}"
            )
            lines.append(f"   💳 {order.payment_method or 'Pending'}")
            lines.append("")
        await ctx.messenger.send_text(ctx.user_id, ctx.platform, "\n".join(lines).rstrip())
        return state

    async def _recommend_food(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        tag = (args.get("tag") or RANDOM_TAG).strip() or RANDOM_TAG
        is_random = tag.lower() == RANDOM_TAG
        items = await self._catalog.search_by_tag(tag)
        if not items:
            await ctx.messenger.send_text(
                ctx.user_id,
                ctx.platform,
                f'🤔 I couldn\'t find any specific items for "{tag}", but we have lots of other '
                'delicious options!\n\nType "menu" to see our full range. 🍽️',
            )
            return state

        rows = [self._item_row(item, item.category) for item in items]
        await ctx.messenger.send_selectable_list(
            ctx.user_id,
            ctx.platform,
            title="🎲 Chef's Choice" if is_random else f'🌟 Recommendations: "{tag}"',
            body="Can't decide? Try this one!" if is_random else "Here are some dishes you might like:",
            footer="Tap to add to cart",
            button_label="View Recommendations",
            sections=[ListSection(title="Recommended", rows=rows)],
        )
        state.stage = Stage.VIEWING_RECOMMENDATIONS
        return state

    async def _send_text_reply(self, args: Dict[str, Any], ctx: HandlerContext, state: ConversationState) -> ConversationState:
        message = (args.get("message") or "").strip() or DEFAULT_TEXT_REPLY
        await ctx.messenger.send_text(ctx.user_id, ctx.platform, message)
        return state
