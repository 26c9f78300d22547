from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.FAILED})


class Outcome(Enum):
    """Canonical gateway outcome, independent of any gateway's vocabulary."""

    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"
    FAILED = "failed"

    def to_status(self) -> OrderStatus:
        # A pending outcome leaves the order in processing.
        if self is Outcome.PENDING:
            return OrderStatus.PROCESSING
        return OrderStatus(self.value)

    @classmethod
    def from_status(cls, status: OrderStatus) -> "Outcome":
        if status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            return cls.PENDING
        return cls(status.value)


@dataclass
class Order:
    id: str
    reference: str
    account_id: str
    shop_name: str
    amount: Decimal
    currency: str
    url_complete: str
    url_cancel: str
    url_callback: str
    created_at: datetime
    updated_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    gateway: str | None = None
    gateway_transaction_id: str | None = None
    converted_amount: Decimal | None = None
    converted_currency: str | None = None
    metadata: dict = field(default_factory=dict)
