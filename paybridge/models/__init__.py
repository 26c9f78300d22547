from .order import Order, OrderStatus, Outcome, TERMINAL_STATUSES
from .events import TransactionEvent
from .delivery import CallbackAttempt

__all__ = [
    "Order", "OrderStatus", "Outcome", "TERMINAL_STATUSES",
    "TransactionEvent",
    "CallbackAttempt",
]
