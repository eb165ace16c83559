from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..actions import PaymentMethod, ServiceType, Stage
from .catalog import FoodItem


class CartLine(BaseModel):
    """One cart row; unit_price always comes from the catalog."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    food_id: int = Field(validation_alias=AliasChoices("food_id", "foodId"))
    name: str
    unit_price: float = Field(validation_alias=AliasChoices("unit_price", "unitPrice", "price"))
    quantity: int = Field(default=1, ge=1)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class PendingOrder(BaseModel):
    """Snapshot of the validated cart taken when the order summary is shown."""

    items: List[CartLine] = Field(default_factory=list)
    total: float = 0.0


class Reservation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    party_size: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("party_size", "partySize")
    )
    arrival_time: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("arrival_time", "arrivalTime")
    )
    deposit_amount: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("deposit_amount", "depositAmount")
    )


class ConversationState(BaseModel):
    """Per (user, platform) conversation record persisted after every turn."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    stage: Stage = Stage.INITIAL
    cart: List[CartLine] = Field(default_factory=list)
    history: List[HistoryTurn] = Field(default_factory=list)

    order_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("order_id", "orderId"))
    service_type: Optional[ServiceType] = Field(
        default=None, validation_alias=AliasChoices("service_type", "serviceType")
    )
    delivery_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("delivery_address", "deliveryAddress")
    )
    pending_order: Optional[PendingOrder] = Field(
        default=None, validation_alias=AliasChoices("pending_order", "pendingOrder")
    )
    reservation: Optional[Reservation] = None
    payment_method: Optional[PaymentMethod] = Field(
        default=None, validation_alias=AliasChoices("payment_method", "paymentMethod")
    )
    current_category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("current_category", "currentCategory")
    )
    last_action: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("last_action", "lastAction")
    )
    last_added_item: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("last_added_item", "lastAddedItem")
    )

    def find_line(self, food_id: int) -> CartLine | None:
        for line in self.cart:
            if line.food_id == food_id:
                return line
        return None

    def add_to_cart(self, item: FoodItem, quantity: int = 1) -> CartLine:
        """Add ``quantity`` of ``item``, merging into an existing line for the same id."""

        line = self.find_line(item.id)
        if line is None:
            line = CartLine(food_id=item.id, name=item.name, unit_price=item.price, quantity=quantity)
            self.cart.append(line)
        else:
            line.quantity += quantity
            line.unit_price = item.price
        return line

    def cart_total(self) -> float:
        return sum(line.subtotal for line in self.cart)

    def cart_item_count(self) -> int:
        return sum(line.quantity for line in self.cart)

    def append_history(self, role: str, content: str, *, limit: int) -> None:
        if not content:
            return
        self.history.append(HistoryTurn(role=role, content=content))
        if limit > 0 and len(self.history) > limit:
            del self.history[: len(self.history) - limit]

    def reset_order(self) -> None:
        """Drop cart and every order sub-record; history is kept."""

        self.cart = []
        self.order_id = None
        self.service_type = None
        self.delivery_address = None
        self.pending_order = None
        self.reservation = None
        self.payment_method = None
        self.current_category = None
        self.last_added_item = None
