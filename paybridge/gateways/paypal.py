import logging
from decimal import Decimal

import requests

from paybridge.errors import ConfigurationError, GatewayError
from paybridge.gateways.base import CheckoutSession, GatewayAdapter
from paybridge.models.order import Order, Outcome

logger = logging.getLogger(__name__)

# Currencies PayPal refuses to receive with a fractional part.
ZERO_DECIMAL_CURRENCIES = {"JPY", "CLP"}


def format_amount(amount: Decimal, currency: str) -> str:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return f"{amount:.0f}"
    return f"{amount:.2f}"


class PayPalAdapter(GatewayAdapter):
    """PayPal Orders v2: create order, buyer approves, we capture."""

    name = "paypal"
    supports_capture = True

    STATUS_MAP = {
        # order statuses
        "CREATED": Outcome.PENDING,
        "SAVED": Outcome.PENDING,
        "APPROVED": Outcome.PENDING,
        "PAYER_ACTION_REQUIRED": Outcome.PENDING,
        "COMPLETED": Outcome.COMPLETED,
        "VOIDED": Outcome.CANCELLED,
        # capture statuses
        "PENDING": Outcome.PENDING,
        "DECLINED": Outcome.FAILED,
        "FAILED": Outcome.FAILED,
        "CANCELLED": Outcome.CANCELLED,
        # webhook event types
        "CHECKOUT.ORDER.APPROVED": Outcome.PENDING,
        "PAYMENT.CAPTURE.PENDING": Outcome.PENDING,
        "PAYMENT.CAPTURE.COMPLETED": Outcome.COMPLETED,
        "PAYMENT.CAPTURE.DENIED": Outcome.FAILED,
        "PAYMENT.CAPTURE.DECLINED": Outcome.FAILED,
    }

    def __init__(self, public_base_url: str, client_id: str | None, client_secret: str | None,
                 api_base: str = "https://api-m.sandbox.paypal.com",
                 session: requests.Session | None = None, timeout_seconds: float = 30):
        super().__init__(public_base_url, session=session, timeout_seconds=timeout_seconds)
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")

    @classmethod
    def supported_currencies(cls) -> list[str]:
        return ["USD", "EUR", "GBP", "CAD", "AUD", "JPY", "ARS", "MXN", "CLP", "COP"]

    def _access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("PayPal credentials not configured")
        body = self._call(
            "POST",
            f"{self.api_base}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        token = body.get("access_token")
        if not token:
            raise GatewayError(self.name, "token response without access_token")
        return token

    def initiate(self, order: Order, country: str | None = None) -> CheckoutSession:
        token = self._access_token()
        urls = self.return_urls(order)
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": order.reference,
                "custom_id": order.id,
                "description": f"Payment for order {order.reference}",
                "amount": {
                    "currency_code": order.currency,
                    "value": format_amount(order.amount, order.currency),
                },
            }],
            "application_context": {
                "brand_name": order.shop_name,
                "user_action": "PAY_NOW",
                "return_url": urls.success,
                "cancel_url": urls.cancel,
            },
        }
        logger.info("Creating PayPal order for %s", order.reference)
        body = self._call(
            "POST",
            f"{self.api_base}/v2/checkout/orders",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        approve = next(
            (link.get("href") for link in body.get("links", [])
             if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        if not body.get("id") or not approve:
            raise GatewayError(self.name, "order response without id or approval link")
        return CheckoutSession(redirect_target=approve, gateway_transaction_id=body["id"], raw=body)

    def capture(self, gateway_transaction_id: str) -> Outcome:
        token = self._access_token()
        body = self._call(
            "POST",
            f"{self.api_base}/v2/checkout/orders/{gateway_transaction_id}/capture",
            json={},
            headers={"Authorization": f"Bearer {token}"},
        )
        status = body.get("status")
        logger.info("PayPal order %s captured with status %s", gateway_transaction_id, status)
        return self.map_status(status)
