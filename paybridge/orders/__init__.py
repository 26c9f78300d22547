from .intake import CheckoutRequest, REQUIRED_FIELDS
from .lifecycle import OrderLifecycle

__all__ = ["CheckoutRequest", "REQUIRED_FIELDS", "OrderLifecycle"]
