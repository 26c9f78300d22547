from abc import ABC, abstractmethod
from typing import Callable

from paybridge.models.delivery import CallbackAttempt
from paybridge.models.events import TransactionEvent
from paybridge.models.order import Order, OrderStatus


class OrderStore(ABC):
    """Persistence boundary for orders and their append-only logs.

    Implementations must make ``create_or_find_by_reference`` atomic and
    ``update_status`` a compare-and-set on the current status.
    """

    @abstractmethod
    def create_or_find_by_reference(
        self, reference: str, build: Callable[[], Order],
    ) -> tuple[Order, bool]:
        """Return ``(order, created)``; ``build`` runs only when no order exists."""

    @abstractmethod
    def find_by_reference(self, reference: str) -> Order | None: ...

    @abstractmethod
    def find_by_id(self, order_id: str) -> Order | None: ...

    @abstractmethod
    def find_by_gateway_id(self, gateway_transaction_id: str) -> Order | None: ...

    @abstractmethod
    def update_status(
        self, order_id: str, expected: OrderStatus, new: OrderStatus, **changes,
    ) -> Order | None:
        """Set ``new`` (and ``changes``) only if the status is still ``expected``.

        Returns the updated order, or None when the guard did not hold.
        """

    @abstractmethod
    def append_event(self, event: TransactionEvent) -> None: ...

    @abstractmethod
    def append_callback_attempt(self, attempt: CallbackAttempt) -> None: ...

    @abstractmethod
    def list_events(self, order_id: str) -> list[TransactionEvent]: ...

    @abstractmethod
    def list_callback_attempts(self, order_id: str | None = None) -> list[CallbackAttempt]: ...
