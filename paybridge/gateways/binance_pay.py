import hashlib
import hmac
import json
import logging
import time
import uuid

import requests

from paybridge.errors import ConfigurationError, GatewayError
from paybridge.gateways.base import CheckoutSession, GatewayAdapter
from paybridge.gateways.currency import CurrencyConverter
from paybridge.models.order import Order, Outcome

logger = logging.getLogger(__name__)

SETTLEMENT_CURRENCY = "USDT"


def sign_request(secret: str, timestamp: str, nonce: str, body: str) -> str:
    """Binance Pay request signature: upper-case hex HMAC-SHA512."""
    payload = f"{timestamp}\n{nonce}\n{body}\n"
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha512).hexdigest().upper()


class BinancePayAdapter(GatewayAdapter):
    name = "binance_pay"

    STATUS_MAP = {
        "INITIAL": Outcome.PENDING,
        "PENDING": Outcome.PENDING,
        "PAID": Outcome.COMPLETED,
        "PAY_SUCCESS": Outcome.COMPLETED,
        "EXPIRED": Outcome.CANCELLED,
        "CANCELED": Outcome.CANCELLED,
        "CANCELLED": Outcome.CANCELLED,
        "PAY_CLOSED": Outcome.CANCELLED,
        "ERROR": Outcome.FAILED,
    }

    def __init__(self, public_base_url: str, api_key: str | None, secret_key: str | None,
                 converter: CurrencyConverter | None = None,
                 api_base: str = "https://bpay.binanceapi.com",
                 session: requests.Session | None = None, timeout_seconds: float = 30):
        super().__init__(public_base_url, session=session, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.secret_key = secret_key
        self.converter = converter or CurrencyConverter()
        self.api_base = api_base.rstrip("/")

    @classmethod
    def supported_currencies(cls) -> list[str]:
        """Currencies settled natively; see accepted_currencies for convertible ones."""
        return ["USDT", "BTC", "ETH", "BNB"]

    def accepted_currencies(self, country: str | None = None) -> list[str]:
        convertible = self.converter.sources_for(SETTLEMENT_CURRENCY)
        return sorted(set(self.supported_currencies()) | set(convertible))

    def check_eligibility(self, order: Order, country: str | None = None) -> None:
        if order.currency.upper() not in self.supported_currencies():
            self.converter.rate(order.currency, SETTLEMENT_CURRENCY)

    def initiate(self, order: Order, country: str | None = None) -> CheckoutSession:
        if not self.api_key or not self.secret_key:
            raise ConfigurationError("Binance Pay credentials not configured")
        self.check_eligibility(order, country)

        currency = order.currency.upper()
        amount = order.amount
        converted_amount = None
        converted_currency = None
        if currency not in self.supported_currencies():
            amount = self.converter.convert(order.amount, currency, SETTLEMENT_CURRENCY)
            currency = SETTLEMENT_CURRENCY
            converted_amount, converted_currency = amount, currency

        urls = self.return_urls(order)
        body = json.dumps({
            "env": {"terminalType": "WEB"},
            "merchantTradeNo": order.id,
            "orderAmount": float(amount),
            "currency": currency,
            "description": f"Payment for order {order.reference}",
            "goodsDetails": [{
                "goodsType": "02",
                "goodsCategory": "Z000",
                "referenceGoodsId": order.reference,
                "goodsName": f"Order {order.reference}",
            }],
            "returnUrl": urls.success,
            "cancelUrl": urls.cancel,
            "webhookUrl": urls.notification,
        }, separators=(",", ":"))
        timestamp = str(int(time.time() * 1000))
        nonce = uuid.uuid4().hex
        headers = {
            "Content-Type": "application/json",
            "BinancePay-Timestamp": timestamp,
            "BinancePay-Nonce": nonce,
            "BinancePay-Certificate-SN": self.api_key,
            "BinancePay-Signature": sign_request(self.secret_key, timestamp, nonce, body),
        }
        logger.info("Creating Binance Pay order for %s (%s %s)", order.reference, amount, currency)
        resp = self._call("POST", f"{self.api_base}/binancepay/openapi/v3/order",
                          data=body, headers=headers)
        data = resp.get("data") or {}
        if resp.get("status") != "SUCCESS" or not data.get("prepayId"):
            raise GatewayError(self.name, f"order rejected: {resp.get('errorMessage') or resp.get('code')}")
        return CheckoutSession(
            redirect_target=data.get("checkoutUrl") or data.get("universalUrl", ""),
            gateway_transaction_id=str(data["prepayId"]),
            converted_amount=converted_amount,
            converted_currency=converted_currency,
            raw=resp,
        )
