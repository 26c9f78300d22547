import logging

from paybridge.errors import ConflictError, OrderNotFoundError
from paybridge.models.order import OrderStatus, Outcome
from paybridge.notifier.engine import CallbackNotifier
from paybridge.store.base import OrderStore

logger = logging.getLogger(__name__)


class CallbackReplayManager:
    """Operator-triggered redelivery of merchant callbacks.

    Never runs on its own: automatic delivery stops at the notifier's retry
    budget, and anything past that goes through here.
    """

    def __init__(self, notifier: CallbackNotifier, store: OrderStore):
        self.notifier = notifier
        self.store = store

    def redeliver(self, reference: str, message: str | None = None,
                  delay_factor: float = 1.0) -> bool:
        """Re-send the order's current outcome with a fresh timestamp and signature."""
        order = self.store.find_by_reference(reference)
        if order is None:
            raise OrderNotFoundError(f"order {reference} not found for redelivery")
        if order.status is OrderStatus.PENDING:
            raise ConflictError(
                "order has no outcome to report",
                reference=reference,
                current=order.status.value,
            )

        outcome = Outcome.from_status(order.status)
        logger.info("Manual redelivery of %s for %s", outcome.value, reference)
        return self.notifier.notify(order, outcome, message, delay_factor=delay_factor)

    def undelivered_references(self) -> list[str]:
        """References whose latest delivery run got no 200.

        Attempts are grouped by delivery id; an acknowledged earlier callback
        (say, a pending one) does not cover a later outcome that went unanswered.
        """
        latest: dict[str, tuple[str, bool]] = {}
        for attempt in self.store.list_callback_attempts():
            run, acknowledged = latest.get(attempt.order_id, (None, False))
            if attempt.delivery_id != run:
                acknowledged = False
            latest[attempt.order_id] = (attempt.delivery_id, acknowledged or attempt.succeeded)

        references = []
        for order_id, (_, acknowledged) in latest.items():
            if acknowledged:
                continue
            order = self.store.find_by_id(order_id)
            if order is not None:
                references.append(order.reference)
        return references

    def redeliver_failed(self, delay_factor: float = 1.0) -> dict[str, bool]:
        """Redeliver every undelivered callback. Returns reference -> delivered."""
        return {
            reference: self.redeliver(reference, delay_factor=delay_factor)
            for reference in self.undelivered_references()
        }
