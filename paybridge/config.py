import os
from dataclasses import dataclass, field
from typing import Mapping

from paybridge.errors import ConfigurationError

# The merchant platform requires at least three delivery attempts per callback.
MIN_CALLBACK_ATTEMPTS = 3


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None


@dataclass
class Settings:
    """Process configuration, read once from the environment."""

    inbound_secret: str | None = None
    outbound_secret: str | None = None
    public_base_url: str = "http://localhost:8000"
    callback_timeout_seconds: float = 10.0
    callback_max_attempts: int = MIN_CALLBACK_ATTEMPTS
    callback_base_delay_seconds: float = 2.0
    callback_max_delay_seconds: float = 30.0
    callback_workers: int = 4
    alert_failure_rate: float = 0.10
    log_level: str = "INFO"
    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    paypal_api_base: str = "https://api-m.sandbox.paypal.com"
    mercadopago_tokens: dict[str, str] = field(default_factory=dict)
    mercadopago_api_base: str = "https://api.mercadopago.com"
    binance_pay_api_key: str | None = None
    binance_pay_secret: str | None = None
    binance_pay_api_base: str = "https://bpay.binanceapi.com"

    def __post_init__(self):
        if self.callback_max_attempts < MIN_CALLBACK_ATTEMPTS:
            raise ConfigurationError(
                f"callback_max_attempts must be at least {MIN_CALLBACK_ATTEMPTS}, "
                f"got {self.callback_max_attempts}"
            )
        if self.callback_workers < 1:
            raise ConfigurationError(f"callback_workers must be at least 1, got {self.callback_workers}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        tokens = {}
        for country in ("AR", "MX", "CL"):
            token = env.get(f"MERCADOPAGO_ACCESS_TOKEN_{country}")
            if token:
                tokens[country] = token

        return cls(
            inbound_secret=env.get("PAYBRIDGE_INBOUND_SECRET") or None,
            outbound_secret=env.get("PAYBRIDGE_OUTBOUND_SECRET") or None,
            public_base_url=env.get("PAYBRIDGE_PUBLIC_BASE_URL", cls.public_base_url).rstrip("/"),
            callback_timeout_seconds=_float(env, "PAYBRIDGE_CALLBACK_TIMEOUT_SECONDS", 10.0),
            callback_max_attempts=_int(env, "PAYBRIDGE_CALLBACK_MAX_ATTEMPTS", MIN_CALLBACK_ATTEMPTS),
            callback_base_delay_seconds=_float(env, "PAYBRIDGE_CALLBACK_BASE_DELAY_SECONDS", 2.0),
            callback_max_delay_seconds=_float(env, "PAYBRIDGE_CALLBACK_MAX_DELAY_SECONDS", 30.0),
            callback_workers=_int(env, "PAYBRIDGE_CALLBACK_WORKERS", 4),
            alert_failure_rate=_float(env, "PAYBRIDGE_ALERT_FAILURE_RATE", 0.10),
            log_level=env.get("PAYBRIDGE_LOG_LEVEL", "INFO"),
            paypal_client_id=env.get("PAYPAL_CLIENT_ID") or None,
            paypal_client_secret=env.get("PAYPAL_CLIENT_SECRET") or None,
            paypal_api_base=env.get("PAYPAL_API_BASE", cls.paypal_api_base).rstrip("/"),
            mercadopago_tokens=tokens,
            mercadopago_api_base=env.get("MERCADOPAGO_API_BASE", cls.mercadopago_api_base).rstrip("/"),
            binance_pay_api_key=env.get("BINANCE_PAY_API_KEY") or None,
            binance_pay_secret=env.get("BINANCE_PAY_SECRET") or None,
            binance_pay_api_base=env.get("BINANCE_PAY_API_BASE", cls.binance_pay_api_base).rstrip("/"),
        )

    def require(self, name: str) -> str:
        """Return a configured value or fail loudly."""
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(f"{name} is not configured")
        return value
