import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping
from urllib.parse import urlparse

from paybridge.errors import TrustError
from paybridge.log import redact
from paybridge.signing.envelope import PARAM_PREFIX, SIGNATURE_FIELD
from paybridge.signing.signer import ParameterSigner

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "x_reference",
    "x_amount",
    "x_currency",
    "x_shop_name",
    "x_url_complete",
    "x_url_cancel",
    "x_url_callback",
    "x_account_id",
    SIGNATURE_FIELD,
)

_AMOUNT_RE = re.compile(r"\d+(\.\d{1,2})?")
_CURRENCY_RE = re.compile(r"[A-Za-z]{3}")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class CheckoutRequest:
    """A verified checkout hand-off from the merchant platform."""

    reference: str
    amount: Decimal
    currency: str
    shop_name: str
    url_complete: str
    url_cancel: str
    url_callback: str
    account_id: str
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Mapping, signer: ParameterSigner) -> "CheckoutRequest":
        """Validate and authenticate raw request parameters.

        Raises:
            TrustError: a required field is missing or empty, the signature
                does not verify, or a field has the wrong shape. Nothing is
                persisted before this check passes.
        """
        params = {str(k): v for k, v in params.items()}
        missing = [name for name in REQUIRED_FIELDS if not params.get(name)]
        if missing:
            logger.warning("Rejected checkout request, missing fields %s: %s",
                           missing, redact(params))
            raise TrustError(f"missing fields: {missing}", redact(params))

        if not signer.verify(params):
            raise TrustError("invalid signature", redact(params))

        amount = str(params["x_amount"])
        if not _AMOUNT_RE.fullmatch(amount):
            logger.warning("Rejected checkout request, invalid amount: %s", redact(params))
            raise TrustError(f"invalid amount: {amount!r}", redact(params))

        currency = str(params["x_currency"])
        if not _CURRENCY_RE.fullmatch(currency):
            logger.warning("Rejected checkout request, invalid currency: %s", redact(params))
            raise TrustError(f"invalid currency: {currency!r}", redact(params))

        for name in ("x_url_complete", "x_url_cancel", "x_url_callback"):
            if not _is_http_url(str(params[name])):
                logger.warning("Rejected checkout request, invalid %s: %s", name, redact(params))
                raise TrustError(f"invalid url in {name}", redact(params))

        extra = {
            key: str(value)
            for key, value in params.items()
            if key.startswith(PARAM_PREFIX) and key not in REQUIRED_FIELDS
        }
        return cls(
            reference=str(params["x_reference"]),
            amount=Decimal(amount),
            currency=currency.upper(),
            shop_name=str(params["x_shop_name"]),
            url_complete=str(params["x_url_complete"]),
            url_cancel=str(params["x_url_cancel"]),
            url_callback=str(params["x_url_callback"]),
            account_id=str(params["x_account_id"]),
            extra=extra,
        )

    @property
    def country(self) -> str | None:
        return self.extra.get("x_shop_country") or None
