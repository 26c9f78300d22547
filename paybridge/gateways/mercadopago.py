import logging

import requests

from paybridge.errors import ConfigurationError, GatewayEligibilityError, GatewayError
from paybridge.gateways.base import CheckoutSession, GatewayAdapter
from paybridge.gateways.currency import CurrencyConverter
from paybridge.models.order import Order, Outcome

logger = logging.getLogger(__name__)

COUNTRY_CURRENCIES = {
    "AR": "ARS",
    "MX": "MXN",
    "CL": "CLP",
}


class MercadoPagoAdapter(GatewayAdapter):
    """Checkout Pro preferences, one access token per country."""

    name = "mercadopago"

    STATUS_MAP = {
        "APPROVED": Outcome.COMPLETED,
        "PENDING": Outcome.PENDING,
        "AUTHORIZED": Outcome.PENDING,
        "IN_PROCESS": Outcome.PENDING,
        "IN_MEDIATION": Outcome.PENDING,
        "REJECTED": Outcome.FAILED,
        "CANCELLED": Outcome.CANCELLED,
    }

    def __init__(self, public_base_url: str, access_tokens: dict[str, str],
                 converter: CurrencyConverter | None = None,
                 api_base: str = "https://api.mercadopago.com",
                 session: requests.Session | None = None, timeout_seconds: float = 30):
        super().__init__(public_base_url, session=session, timeout_seconds=timeout_seconds)
        self.access_tokens = {k.upper(): v for k, v in access_tokens.items()}
        self.converter = converter or CurrencyConverter()
        self.api_base = api_base.rstrip("/")

    @classmethod
    def supported_countries(cls) -> list[str]:
        return sorted(COUNTRY_CURRENCIES)

    @classmethod
    def supported_currencies(cls) -> list[str]:
        """Local settlement currencies, one per supported country."""
        return sorted(COUNTRY_CURRENCIES.values())

    def accepted_currencies(self, country: str | None = None) -> list[str]:
        if country is not None:
            local = COUNTRY_CURRENCIES.get(country.upper())
            return self.converter.sources_for(local) if local else []
        accepted: set[str] = set()
        for local in COUNTRY_CURRENCIES.values():
            accepted.update(self.converter.sources_for(local))
        return sorted(accepted)

    def check_eligibility(self, order: Order, country: str | None = None) -> None:
        if not country or country.upper() not in COUNTRY_CURRENCIES:
            raise GatewayEligibilityError(f"{self.name} does not support country {country!r}")
        # Orders quoted in another currency are settled in the country's currency.
        self.converter.rate(order.currency, COUNTRY_CURRENCIES[country.upper()])

    def _access_token(self, country: str) -> str:
        token = self.access_tokens.get(country.upper())
        if not token:
            raise ConfigurationError(f"MercadoPago access token not configured for country: {country}")
        return token

    def initiate(self, order: Order, country: str | None = None) -> CheckoutSession:
        self.check_eligibility(order, country)
        country = country.upper()
        token = self._access_token(country)
        currency = COUNTRY_CURRENCIES[country]

        converted_amount = None
        converted_currency = None
        amount = order.amount
        if order.currency != currency:
            amount = self.converter.convert(order.amount, order.currency, currency)
            converted_amount, converted_currency = amount, currency

        urls = self.return_urls(order)
        payload = {
            "items": [{
                "id": order.reference,
                "title": f"Compra con referencia {order.reference}",
                "quantity": 1,
                "unit_price": float(amount),
                "currency_id": currency,
            }],
            "external_reference": order.reference,
            "back_urls": {
                "success": urls.success,
                "failure": urls.cancel,
                "pending": urls.pending,
            },
            "auto_return": "approved",
            "notification_url": urls.notification,
            "metadata": {"order_id": order.id},
        }
        logger.info("Creating MercadoPago preference for %s (%s)", order.reference, country)
        body = self._call(
            "POST",
            f"{self.api_base}/checkout/preferences",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        if not body.get("id") or not body.get("init_point"):
            raise GatewayError(self.name, "preference response without id or init_point")
        return CheckoutSession(
            redirect_target=body["init_point"],
            gateway_transaction_id=str(body["id"]),
            converted_amount=converted_amount,
            converted_currency=converted_currency,
            raw=body,
        )
