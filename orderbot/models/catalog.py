from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..actions import OrderStatus, PaymentMethod, ServiceType


class FoodItem(BaseModel):
    """Menu entry as served by the catalog."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    name: str
    description: str = ""
    price: float
    category: str
    image_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("image_url", "imageUrl"),
    )
    available: bool = Field(
        default=True,
        validation_alias=AliasChoices("available", "is_available"),
    )
    tags: List[str] = Field(default_factory=list)


class OrderLineItem(BaseModel):
    food_id: int
    name: str
    unit_price: float
    quantity: int = Field(ge=1)


class StoredOrder(BaseModel):
    """Order row kept by the order repository."""

    order_id: str
    user_id: str
    platform: str
    status: OrderStatus = OrderStatus.CREATED
    created_at: datetime
    lines: List[OrderLineItem] = Field(default_factory=list)
    service_type: Optional[ServiceType] = None
    delivery_address: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    party_size: Optional[int] = None
    arrival_time: Optional[str] = None
    deposit_amount: Optional[int] = None

    @property
    def total(self) -> float:
        return sum(line.unit_price * line.quantity for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


class OrderRecord(BaseModel):
    """Summary row returned by order history lookups."""

    order_id: str
    status: OrderStatus
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    item_count: int
    total: float
