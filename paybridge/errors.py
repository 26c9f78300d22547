class PaybridgeError(Exception):
    """Base class for every error raised by paybridge."""


class TrustError(PaybridgeError):
    """An inbound request could not be trusted (missing field, bad signature)."""

    def __init__(self, reason: str, payload: dict | None = None):
        super().__init__(reason)
        self.reason = reason
        self.payload = payload or {}


class ConflictError(PaybridgeError):
    """A lifecycle operation conflicts with the order's recorded state."""

    def __init__(self, message: str, reference: str, current: str | None = None,
                 requested: str | None = None):
        super().__init__(message)
        self.reference = reference
        self.current = current
        self.requested = requested

    def to_dict(self) -> dict:
        return {
            "error": "conflict",
            "message": str(self),
            "reference": self.reference,
            "current": self.current,
            "requested": self.requested,
        }


class GatewayEligibilityError(PaybridgeError):
    """The selected gateway cannot settle this order."""


class GatewayError(PaybridgeError):
    """A gateway API call failed or returned an unusable response."""

    def __init__(self, gateway: str, message: str, status_code: int | None = None):
        super().__init__(f"{gateway}: {message}")
        self.gateway = gateway
        self.status_code = status_code


class ConfigurationError(PaybridgeError):
    """A required secret or credential is not configured."""


class OrderNotFoundError(PaybridgeError):
    pass
