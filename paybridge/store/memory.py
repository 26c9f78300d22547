import copy
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from paybridge.models.delivery import CallbackAttempt
from paybridge.models.events import TransactionEvent
from paybridge.models.order import Order, OrderStatus
from paybridge.store.base import OrderStore


class InMemoryOrderStore(OrderStore):
    """Thread-safe store; orders are copied in and out so callers never share state."""

    def __init__(self):
        self._orders: dict[str, Order] = {}
        self._by_reference: dict[str, str] = {}
        self._events: list[TransactionEvent] = []
        self._attempts: list[CallbackAttempt] = []
        self._lock = threading.Lock()

    def create_or_find_by_reference(
        self, reference: str, build: Callable[[], Order],
    ) -> tuple[Order, bool]:
        with self._lock:
            order_id = self._by_reference.get(reference)
            if order_id is not None:
                return copy.deepcopy(self._orders[order_id]), False
            order = build()
            if order.reference != reference:
                raise ValueError(
                    f"built order reference {order.reference!r} does not match {reference!r}"
                )
            self._orders[order.id] = copy.deepcopy(order)
            self._by_reference[reference] = order.id
            return copy.deepcopy(order), True

    def find_by_reference(self, reference: str) -> Order | None:
        with self._lock:
            order_id = self._by_reference.get(reference)
            if order_id is None:
                return None
            return copy.deepcopy(self._orders[order_id])

    def find_by_id(self, order_id: str) -> Order | None:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order is not None else None

    def find_by_gateway_id(self, gateway_transaction_id: str) -> Order | None:
        if not gateway_transaction_id:
            return None
        with self._lock:
            for order in self._orders.values():
                if order.gateway_transaction_id == gateway_transaction_id:
                    return copy.deepcopy(order)
            return None

    def update_status(
        self, order_id: str, expected: OrderStatus, new: OrderStatus, **changes,
    ) -> Order | None:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.status is not expected:
                return None
            updated = replace(
                order, status=new, updated_at=datetime.now(timezone.utc), **changes,
            )
            self._orders[order_id] = updated
            return copy.deepcopy(updated)

    def append_event(self, event: TransactionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def append_callback_attempt(self, attempt: CallbackAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def list_events(self, order_id: str) -> list[TransactionEvent]:
        with self._lock:
            return [e for e in self._events if e.order_id == order_id]

    def list_callback_attempts(self, order_id: str | None = None) -> list[CallbackAttempt]:
        with self._lock:
            if order_id is None:
                return list(self._attempts)
            return [a for a in self._attempts if a.order_id == order_id]

    def clear(self) -> None:
        with self._lock:
            self._orders.clear()
            self._by_reference.clear()
            self._events.clear()
            self._attempts.clear()
