from __future__ import annotations

from datetime import datetime, timezone
from itertools import count
from threading import Lock
from typing import Dict, List, Protocol

from ..actions import OrderStatus, PaymentMethod, ServiceType
from ..models import OrderLineItem, OrderRecord, StoredOrder
from .errors import PersistenceError


class OrderRepository(Protocol):
    """Write/read contract for persisted orders."""

    async def create_order(self, user_id: str, platform: str) -> str: ...

    async def add_line_item(
        self, order_id: str, food_id: int, quantity: int, *, name: str, unit_price: float
    ) -> None: ...

    async def set_service_type(self, order_id: str, service_type: ServiceType) -> None: ...

    async def set_delivery_address(self, order_id: str, address: str) -> None: ...

    async def set_payment_method(self, order_id: str, method: PaymentMethod) -> None: ...

    async def set_reservation(self, order_id: str, *, party_size: int | None, arrival_time: str | None) -> None: ...

    async def set_deposit(self, order_id: str, amount: int) -> None: ...

    async def cancel_order(self, order_id: str) -> None: ...

    async def list_recent_orders(self, user_id: str, limit: int) -> List[OrderRecord]: ...


class InMemoryOrderRepository:
    """Order storage kept in process memory, keyed by generated order id."""

    def __init__(self, *, start_id: int = 1001) -> None:
        self._orders: Dict[str, StoredOrder] = {}
        self._ids = count(start_id)
        self._lock = Lock()

    def _require(self, order_id: str) -> StoredOrder:
        order = self._orders.get(str(order_id))
        if order is None:
            raise PersistenceError(f"Order {order_id} not found", reason="order_not_found")
        return order

    def get_order(self, order_id: str) -> StoredOrder | None:
        with self._lock:
            order = self._orders.get(str(order_id))
            return order.model_copy(deep=True) if order else None

    async def create_order(self, user_id: str, platform: str) -> str:
        with self._lock:
            order_id = str(next(self._ids))
            self._orders[order_id] = StoredOrder(
                order_id=order_id,
                user_id=user_id,
                platform=platform,
                created_at=datetime.now(timezone.utc),
            )
            return order_id

    async def add_line_item(
        self, order_id: str, food_id: int, quantity: int, *, name: str, unit_price: float
    ) -> None:
        with self._lock:
            order = self._require(order_id)
            for line in order.lines:
                if line.food_id == food_id:
                    line.quantity += quantity
                    return
            order.lines.append(
                OrderLineItem(food_id=food_id, name=name, unit_price=unit_price, quantity=quantity)
            )

    async def set_service_type(self, order_id: str, service_type: ServiceType) -> None:
        with self._lock:
            self._require(order_id).service_type = service_type

    async def set_delivery_address(self, order_id: str, address: str) -> None:
        with self._lock:
            self._require(order_id).delivery_address = address

    async def set_payment_method(self, order_id: str, method: PaymentMethod) -> None:
        with self._lock:
            order = self._require(order_id)
            order.payment_method = method
            order.status = OrderStatus.CONFIRMED

    async def set_reservation(
        self,
        order_id: str,
        *,
        party_size: int | None,
        arrival_time: str | None,
    ) -> None:
        with self._lock:
            order = self._require(order_id)
            order.party_size = party_size
            order.arrival_time = arrival_time

    async def set_deposit(self, order_id: str, amount: int) -> None:
        with self._lock:
            self._require(order_id).deposit_amount = amount

    async def cancel_order(self, order_id: str) -> None:
        with self._lock:
            self._require(order_id).status = OrderStatus.CANCELLED

    async def list_recent_orders(self, user_id: str, limit: int) -> List[OrderRecord]:
        with self._lock:
            orders = [order for order in self._orders.values() if order.user_id == user_id]
        orders.sort(key=lambda order: (order.created_at, int(order.order_id)), reverse=True)
        return [
            OrderRecord(
                order_id=order.order_id,
                status=order.status,
                payment_method=order.payment_method,
                created_at=order.created_at,
                item_count=order.item_count,
                total=order.total,
            )
            for order in orders[: max(limit, 0)]
        ]


_order_repository = InMemoryOrderRepository()


def get_order_repository() -> InMemoryOrderRepository:
    return _order_repository
