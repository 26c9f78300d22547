from .base import OrderStore
from .memory import InMemoryOrderStore

__all__ = ["OrderStore", "InMemoryOrderStore"]
