"""Order state machine: pending -> processing -> completed | cancelled | failed.

Every transition appends exactly one TransactionEvent. Operators replay that
log to reconcile discrepancies with gateways, so it is written even when a
resolve turns out to be a no-op.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from paybridge.errors import ConflictError, OrderNotFoundError
from paybridge.models.events import TransactionEvent
from paybridge.models.order import Order, OrderStatus, Outcome
from paybridge.orders.intake import CheckoutRequest
from paybridge.store.base import OrderStore

logger = logging.getLogger(__name__)

MERCHANT_PLATFORM = "merchant_platform"


class OrderLifecycle:
    def __init__(self, store: OrderStore):
        self.store = store

    def create(self, request: CheckoutRequest) -> Order:
        """Create the order for a reference, or return the existing pending one.

        Raises:
            ConflictError: the reference already belongs to an order that has
                left ``pending``.
        """
        order, created = self.store.create_or_find_by_reference(
            request.reference, lambda: self._build_order(request),
        )
        if created:
            self._append_event(
                order, "payment_initiated", MERCHANT_PLATFORM,
                request_data=_request_snapshot(request),
                response_data={"order_id": order.id, "status": order.status.value},
            )
            logger.info("Order %s created for reference %s (%s %s)",
                        order.id, order.reference, order.amount, order.currency)
            return order

        if order.status is OrderStatus.PENDING:
            logger.info("Order %s already exists for reference %s, reusing",
                        order.id, order.reference)
            return order

        logger.warning("Rejected resubmission of reference %s, order %s is %s",
                       order.reference, order.id, order.status.value)
        raise ConflictError(
            "order already processed",
            reference=order.reference,
            current=order.status.value,
            requested=OrderStatus.PENDING.value,
        )

    def select_gateway(
        self,
        order: Order,
        gateway: str,
        gateway_transaction_id: str,
        converted_amount: Decimal | None = None,
        converted_currency: str | None = None,
        request_data: dict | None = None,
        response_data: dict | None = None,
    ) -> Order:
        """Bind a gateway checkout to a pending order, moving it to processing."""
        changes = {
            "gateway": gateway,
            "gateway_transaction_id": gateway_transaction_id,
        }
        if converted_amount is not None:
            changes["converted_amount"] = converted_amount
            changes["converted_currency"] = converted_currency

        updated = self.store.update_status(
            order.id, OrderStatus.PENDING, OrderStatus.PROCESSING, **changes,
        )
        if updated is None:
            current = self._reload(order.id)
            logger.warning("Cannot select gateway %s for order %s in status %s",
                           gateway, current.id, current.status.value)
            raise ConflictError(
                "order already processed",
                reference=current.reference,
                current=current.status.value,
                requested=OrderStatus.PROCESSING.value,
            )

        self._append_event(
            updated, "payment_processing", gateway,
            request_data=request_data or {"gateway": gateway},
            response_data=response_data or {"gateway_transaction_id": gateway_transaction_id},
        )
        logger.info("Order %s processing via %s (%s)", updated.id, gateway, gateway_transaction_id)
        return updated

    def resolve(
        self,
        order_id: str,
        outcome: Outcome,
        gateway: str | None = None,
        request_data: dict | None = None,
        response_data: dict | None = None,
    ) -> Order:
        """Apply a normalized gateway outcome.

        Resolving a terminal order to its recorded outcome is a logged no-op;
        resolving it to any other outcome raises ConflictError.
        """
        order, _ = self.apply_outcome(order_id, outcome, gateway, request_data, response_data)
        return order

    def apply_outcome(
        self,
        order_id: str,
        outcome: Outcome,
        gateway: str | None = None,
        request_data: dict | None = None,
        response_data: dict | None = None,
    ) -> tuple[Order, bool]:
        """Same as ``resolve`` but also reports whether the status changed."""
        current = self._reload(order_id)
        gateway = gateway or current.gateway or "unknown"
        event_type = f"payment_{outcome.value}"

        if current.status is OrderStatus.PENDING:
            logger.warning("Cannot resolve order %s to %s before a gateway is selected",
                           current.id, outcome.value)
            raise ConflictError(
                "no gateway selected",
                reference=current.reference,
                current=current.status.value,
                requested=outcome.value,
            )

        if current.status is OrderStatus.PROCESSING:
            if outcome is Outcome.PENDING:
                self._append_event(
                    current, event_type, gateway, request_data,
                    {"status": current.status.value, "changed": False, **(response_data or {})},
                )
                return current, False

            updated = self.store.update_status(
                current.id, OrderStatus.PROCESSING, outcome.to_status(),
            )
            if updated is not None:
                self._append_event(
                    updated, event_type, gateway, request_data,
                    {"status": updated.status.value, "changed": True, **(response_data or {})},
                )
                logger.info("Order %s resolved to %s via %s", updated.id, outcome.value, gateway)
                return updated, True
            # Lost the race against another resolver.
            current = self._reload(order_id)

        if current.status is outcome.to_status():
            self._append_event(
                current, event_type, gateway, request_data,
                {"status": current.status.value, "changed": False, **(response_data or {})},
            )
            logger.info("Order %s already %s, nothing to do", current.id, current.status.value)
            return current, False

        logger.warning("Inconsistent outcome for order %s: recorded %s, received %s from %s",
                       current.id, current.status.value, outcome.value, gateway)
        raise ConflictError(
            "order already resolved to a different outcome",
            reference=current.reference,
            current=current.status.value,
            requested=outcome.value,
        )

    def _reload(self, order_id: str) -> Order:
        order = self.store.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(f"order {order_id} not found")
        return order

    def _append_event(self, order: Order, event_type: str, gateway: str,
                      request_data: dict | None = None,
                      response_data: dict | None = None) -> TransactionEvent:
        event = TransactionEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            order_id=order.id,
            event_type=event_type,
            gateway=gateway,
            timestamp=datetime.now(timezone.utc),
            request_data=dict(request_data or {}),
            response_data=dict(response_data or {}),
        )
        self.store.append_event(event)
        return event

    @staticmethod
    def _build_order(request: CheckoutRequest) -> Order:
        now = datetime.now(timezone.utc)
        return Order(
            id=uuid.uuid4().hex,
            reference=request.reference,
            account_id=request.account_id,
            shop_name=request.shop_name,
            amount=request.amount,
            currency=request.currency,
            url_complete=request.url_complete,
            url_cancel=request.url_cancel,
            url_callback=request.url_callback,
            created_at=now,
            updated_at=now,
            metadata=dict(request.extra),
        )


def _request_snapshot(request: CheckoutRequest) -> dict:
    return {
        "x_reference": request.reference,
        "x_amount": str(request.amount),
        "x_currency": request.currency,
        "x_shop_name": request.shop_name,
        "x_account_id": request.account_id,
        "x_url_complete": request.url_complete,
        "x_url_cancel": request.url_cancel,
        "x_url_callback": request.url_callback,
        **request.extra,
    }
