from .base import CheckoutSession, GatewayAdapter, ReturnUrls
from .binance_pay import BinancePayAdapter
from .currency import CurrencyConverter
from .mercadopago import MercadoPagoAdapter
from .paypal import PayPalAdapter
from .registry import GatewayRegistry

__all__ = [
    "CheckoutSession", "GatewayAdapter", "ReturnUrls",
    "BinancePayAdapter", "MercadoPagoAdapter", "PayPalAdapter",
    "CurrencyConverter", "GatewayRegistry",
]
