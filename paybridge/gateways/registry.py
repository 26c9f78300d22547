from paybridge.errors import GatewayEligibilityError
from paybridge.gateways.base import GatewayAdapter


class GatewayRegistry:
    """Adapters keyed by gateway name."""

    def __init__(self, adapters: list[GatewayAdapter] | None = None):
        self._adapters: dict[str, GatewayAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: GatewayAdapter) -> None:
        if not adapter.name:
            raise ValueError("gateway adapter has no name")
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> GatewayAdapter:
        adapter = self._adapters.get((name or "").lower())
        if adapter is None:
            raise GatewayEligibilityError(f"unsupported payment gateway: {name!r}")
        return adapter

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, name: str) -> bool:
        return (name or "").lower() in self._adapters
