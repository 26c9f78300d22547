from .factories import CheckoutParamsFactory, OrderFactory

__all__ = ["CheckoutParamsFactory", "OrderFactory"]
