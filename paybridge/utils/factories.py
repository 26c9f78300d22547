import uuid
from datetime import datetime, timezone
from decimal import Decimal

from paybridge.models.order import Order, OrderStatus
from paybridge.signing.envelope import SIGNATURE_FIELD, generate_signature


class OrderFactory:
    """Factory for creating Order instances with sensible defaults."""

    @staticmethod
    def create(**overrides) -> Order:
        now = datetime.now(timezone.utc)
        reference = overrides.pop("reference", f"ORDER-{uuid.uuid4().hex[:8].upper()}")
        defaults = {
            "id": uuid.uuid4().hex,
            "reference": reference,
            "account_id": "acc-1",
            "shop_name": "Demo Shop",
            "amount": Decimal("100.00"),
            "currency": "USD",
            "url_complete": "https://shop.example.com/checkout/complete",
            "url_cancel": "https://shop.example.com/checkout/cancel",
            "url_callback": "https://shop.example.com/checkout/callback",
            "created_at": now,
            "updated_at": now,
            "status": OrderStatus.PENDING,
        }
        defaults.update(overrides)
        return Order(**defaults)


class CheckoutParamsFactory:
    """Builds the signed form the merchant platform posts to start a checkout."""

    @staticmethod
    def create(secret: str, sign: bool = True, **overrides) -> dict[str, str]:
        params = {
            "x_reference": f"ORDER-{uuid.uuid4().hex[:8].upper()}",
            "x_amount": "100.00",
            "x_currency": "USD",
            "x_shop_name": "Demo Shop",
            "x_shop_country": "AR",
            "x_url_complete": "https://shop.example.com/checkout/complete",
            "x_url_cancel": "https://shop.example.com/checkout/cancel",
            "x_url_callback": "https://shop.example.com/checkout/callback",
            "x_account_id": "acc-1",
            "x_description": "Order from Demo Shop",
        }
        for key, value in overrides.items():
            if value is None:
                params.pop(key, None)
            else:
                params[key] = str(value)
        if sign:
            params[SIGNATURE_FIELD] = generate_signature(params, secret)
        return params
