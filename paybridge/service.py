"""
Payment flow between the merchant platform and the gateways.

    signed request -> start_checkout -> select_gateway -> buyer at gateway
    -> handle_return / handle_webhook / capture -> resolve -> callback job
"""

import logging
from typing import Mapping
from urllib.parse import urlencode

from paybridge.errors import ConflictError, GatewayEligibilityError, OrderNotFoundError
from paybridge.gateways.base import CheckoutSession, GatewayAdapter
from paybridge.gateways.registry import GatewayRegistry
from paybridge.models.order import Order, OrderStatus, Outcome
from paybridge.notifier.payload import build_callback_params
from paybridge.notifier.worker import DeliveryJob, NotificationWorker
from paybridge.orders.intake import CheckoutRequest
from paybridge.orders.lifecycle import OrderLifecycle
from paybridge.signing.signer import ParameterSigner
from paybridge.store.base import OrderStore

logger = logging.getLogger(__name__)

_OUTCOME_MESSAGES = {
    Outcome.COMPLETED: "Payment completed via {gateway}",
    Outcome.PENDING: "Payment pending via {gateway}",
    Outcome.CANCELLED: "Payment cancelled by user via {gateway}",
    Outcome.FAILED: "Payment failed via {gateway}",
}


def _append_query(url: str, params: Mapping[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class PaymentService:
    def __init__(
        self,
        inbound_signer: ParameterSigner,
        outbound_signer: ParameterSigner,
        lifecycle: OrderLifecycle,
        registry: GatewayRegistry,
        store: OrderStore,
        worker: NotificationWorker,
    ):
        self.inbound_signer = inbound_signer
        self.outbound_signer = outbound_signer
        self.lifecycle = lifecycle
        self.registry = registry
        self.store = store
        self.worker = worker

    def start_checkout(self, params: Mapping) -> Order:
        """Verify a signed hand-off and create (or reuse) its order."""
        request = CheckoutRequest.from_params(params, self.inbound_signer)
        return self.lifecycle.create(request)

    def get_order(self, order_id: str, event_limit: int = 10) -> dict:
        order = self._load(order_id)
        events = self.store.list_events(order.id)[-event_limit:]
        return {
            "id": order.id,
            "reference": order.reference,
            "shop_name": order.shop_name,
            "original_amount": str(order.amount),
            "original_currency": order.currency,
            "converted_amount": str(order.converted_amount) if order.converted_amount is not None else None,
            "converted_currency": order.converted_currency,
            "status": order.status.value,
            "payment_gateway": order.gateway,
            "created_at": order.created_at.isoformat(),
            "events": [
                {"type": e.event_type, "gateway": e.gateway, "timestamp": e.timestamp.isoformat()}
                for e in reversed(events)
            ],
        }

    def available_gateways(self, order_id: str, country: str | None = None) -> list[str]:
        order = self._load(order_id)
        eligible = []
        for name in self.registry.names():
            try:
                self.registry.get(name).check_eligibility(order, country)
            except GatewayEligibilityError:
                continue
            eligible.append(name)
        return eligible

    def select_gateway(self, order_id: str, gateway: str,
                       country: str | None = None) -> CheckoutSession:
        """Open a checkout with ``gateway`` and move the order to processing.

        Eligibility is checked before any call to the gateway.
        """
        order = self._load(order_id)
        if order.status is not OrderStatus.PENDING:
            raise ConflictError(
                "order already processed",
                reference=order.reference,
                current=order.status.value,
                requested=OrderStatus.PROCESSING.value,
            )

        adapter = self.registry.get(gateway)
        try:
            adapter.check_eligibility(order, country)
        except GatewayEligibilityError as e:
            logger.warning("Gateway %s not eligible for order %s: %s", adapter.name, order.id, e)
            raise

        session = adapter.initiate(order, country)
        self.lifecycle.select_gateway(
            order,
            adapter.name,
            session.gateway_transaction_id,
            converted_amount=session.converted_amount,
            converted_currency=session.converted_currency,
            request_data={"gateway": adapter.name, "country": country, "order_id": order.id},
            response_data={
                "gateway_transaction_id": session.gateway_transaction_id,
                "redirect_target": session.redirect_target,
            },
        )
        return session

    def handle_return(self, gateway: str, order_id: str, native_status,
                      request_data: dict | None = None) -> str:
        """Buyer came back from the gateway. Returns the merchant URL to redirect to."""
        adapter = self.registry.get(gateway)
        order = self._load(order_id)
        self._check_binding(order, adapter)

        outcome = adapter.map_status(native_status)
        order = self._apply(order, adapter, outcome, native_status, request_data)
        return self.redirect_url(order, outcome, self._message(outcome, adapter.name))

    def handle_webhook(self, gateway: str, gateway_transaction_id: str, native_status,
                       payload: dict | None = None) -> Order:
        """Server-to-server notification from a gateway."""
        adapter = self.registry.get(gateway)
        order = self.store.find_by_gateway_id(gateway_transaction_id)
        if order is None:
            logger.error("No order for %s transaction %s", adapter.name, gateway_transaction_id)
            raise OrderNotFoundError(f"no order for {adapter.name} transaction {gateway_transaction_id}")
        self._check_binding(order, adapter)

        outcome = adapter.map_status(native_status)
        return self._apply(order, adapter, outcome, native_status, payload)

    def capture(self, order_id: str) -> Order:
        order = self._load(order_id)
        if order.status is not OrderStatus.PROCESSING or not order.gateway:
            raise ConflictError(
                "order is not awaiting capture",
                reference=order.reference,
                current=order.status.value,
            )
        adapter = self.registry.get(order.gateway)
        if not adapter.supports_capture:
            raise GatewayEligibilityError(f"{adapter.name} has no explicit capture step")

        outcome = adapter.capture(order.gateway_transaction_id)
        return self._apply(order, adapter, outcome, outcome.value,
                           {"capture": order.gateway_transaction_id})

    def redirect_url(self, order: Order, outcome: Outcome, message: str | None = None) -> str:
        """Merchant return URL carrying the signed outcome parameters."""
        envelope = self.outbound_signer.sign_envelope(build_callback_params(order, outcome, message))
        target = order.url_complete if outcome in (Outcome.COMPLETED, Outcome.PENDING) else order.url_cancel
        return _append_query(target, envelope.to_form())

    def _apply(self, order: Order, adapter: GatewayAdapter, outcome: Outcome, native_status,
               request_data: dict | None) -> Order:
        updated, changed = self.lifecycle.apply_outcome(
            order.id,
            outcome,
            gateway=adapter.name,
            request_data=request_data or {},
            response_data={"native_status": str(native_status)},
        )
        # A duplicate report of an already recorded outcome must not notify twice.
        if changed or outcome is Outcome.PENDING:
            self.worker.submit(DeliveryJob(updated.reference, outcome, self._message(outcome, adapter.name)))
        return updated

    def _check_binding(self, order: Order, adapter: GatewayAdapter) -> None:
        if order.gateway and order.gateway != adapter.name:
            logger.warning("Order %s is bound to %s, ignoring report from %s",
                           order.id, order.gateway, adapter.name)
            raise ConflictError(
                f"order is bound to gateway {order.gateway}",
                reference=order.reference,
                current=order.status.value,
            )

    def _load(self, order_id: str) -> Order:
        order = self.store.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(f"order {order_id} not found")
        return order

    @staticmethod
    def _message(outcome: Outcome, gateway: str) -> str:
        return _OUTCOME_MESSAGES[outcome].format(gateway=gateway)
