"""
Capability interface every payment gateway adapter implements.

Adapters shape requests for one provider and translate its status
vocabulary into a canonical Outcome. They never touch the order lifecycle:
the caller binds the gateway to the order only after ``initiate`` succeeds.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

import requests

from paybridge.errors import GatewayEligibilityError, GatewayError
from paybridge.models.order import Order, Outcome

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    """Result of ``initiate``: where to send the buyer and the gateway's id."""

    redirect_target: str
    gateway_transaction_id: str
    converted_amount: Decimal | None = None
    converted_currency: str | None = None
    raw: dict = field(default_factory=dict)


@dataclass
class ReturnUrls:
    success: str
    cancel: str
    pending: str
    notification: str


class GatewayAdapter(ABC):
    name: str = ""
    supports_capture: bool = False

    # Native status (upper-cased) -> canonical outcome. Anything missing is failed.
    STATUS_MAP: dict[str, Outcome] = {}

    def __init__(self, public_base_url: str, session: requests.Session | None = None,
                 timeout_seconds: float = 30):
        self.public_base_url = public_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    @classmethod
    def supported_currencies(cls) -> list[str]:
        """Currencies the gateway settles in."""
        return []

    def accepted_currencies(self, country: str | None = None) -> list[str]:
        """Order currencies that pass ``check_eligibility``.

        Settlement currencies, plus whatever a converting gateway can turn into one.
        """
        return self.supported_currencies()

    @classmethod
    def supported_countries(cls) -> list[str] | None:
        """Countries the gateway can settle in, or None when not country-gated."""
        return None

    @classmethod
    def known_statuses(cls) -> list[str]:
        return sorted(cls.STATUS_MAP)

    def check_eligibility(self, order: Order, country: str | None = None) -> None:
        """Raise GatewayEligibilityError if this gateway cannot settle ``order``."""
        countries = self.supported_countries()
        if countries is not None:
            if not country or country.upper() not in countries:
                raise GatewayEligibilityError(
                    f"{self.name} does not support country {country!r}"
                )
        currencies = self.accepted_currencies(country)
        if currencies and order.currency.upper() not in currencies:
            raise GatewayEligibilityError(
                f"{self.name} does not support currency {order.currency}"
            )

    @abstractmethod
    def initiate(self, order: Order, country: str | None = None) -> CheckoutSession:
        """Open a checkout session with the gateway."""

    def capture(self, gateway_transaction_id: str) -> Outcome:
        raise NotImplementedError(f"{self.name} has no explicit capture step")

    def map_status(self, native_status) -> Outcome:
        """Total mapping of a native status onto an Outcome; unknown values fail closed."""
        key = str(native_status).strip().upper() if native_status is not None else ""
        outcome = self.STATUS_MAP.get(key)
        if outcome is None:
            logger.warning("Unmapped %s status %r, treating as failed", self.name, native_status)
            return Outcome.FAILED
        return outcome

    def return_urls(self, order: Order) -> ReturnUrls:
        base = f"{self.public_base_url}/api/callback/{self.name}"
        return ReturnUrls(
            success=f"{base}/success/{order.id}",
            cancel=f"{base}/cancel/{order.id}",
            pending=f"{base}/pending/{order.id}",
            notification=f"{self.public_base_url}/api/webhook/{self.name}",
        )

    def _call(self, method: str, url: str, **kwargs) -> dict:
        """Perform one gateway API call and return its JSON body."""
        kwargs.setdefault("timeout", self.timeout_seconds)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.exceptions.Timeout:
            raise GatewayError(self.name, f"timeout calling {url}") from None
        except requests.exceptions.RequestException as e:
            raise GatewayError(self.name, f"error calling {url}: {e}") from e

        if resp.status_code >= 400:
            logger.error("%s returned %s for %s %s: %s",
                         self.name, resp.status_code, method, url, resp.text[:500])
            raise GatewayError(self.name, f"HTTP {resp.status_code} from {url}", resp.status_code)
        try:
            return resp.json()
        except ValueError:
            raise GatewayError(self.name, f"invalid JSON from {url}", resp.status_code) from None
