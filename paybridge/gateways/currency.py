import logging
from decimal import ROUND_HALF_UP, Decimal

from paybridge.errors import GatewayEligibilityError

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

# Reference rates; not a pricing source.
DEFAULT_RATES: dict[str, dict[str, Decimal]] = {
    "USD": {
        "ARS": Decimal("350.50"),
        "MXN": Decimal("17.25"),
        "CLP": Decimal("900.00"),
        "COP": Decimal("4100.00"),
        "USDT": Decimal("1.00"),
    },
}


def _with_inverses(rates: dict[str, dict[str, Decimal]]) -> dict[str, dict[str, Decimal]]:
    table = {src: dict(targets) for src, targets in rates.items()}
    for src, targets in rates.items():
        for dst, rate in targets.items():
            table.setdefault(dst, {}).setdefault(src, Decimal(1) / rate)
    # Every currency quoted against USD can also reach USDT via USD.
    for src, targets in list(table.items()):
        if "USD" in targets and "USDT" not in targets and src != "USDT":
            targets["USDT"] = targets["USD"] * table["USD"].get("USDT", Decimal(1))
    return table


class CurrencyConverter:
    def __init__(self, rates: dict[str, dict[str, Decimal]] | None = None):
        self._rates = _with_inverses(rates or DEFAULT_RATES)

    def supported_currencies(self) -> list[str]:
        return sorted(self._rates)

    def sources_for(self, target: str) -> list[str]:
        """Currencies that convert to ``target``, ``target`` included."""
        target = target.upper()
        return sorted({target} | {src for src, targets in self._rates.items() if target in targets})

    def rate(self, source: str, target: str) -> Decimal:
        source, target = source.upper(), target.upper()
        if source == target:
            return Decimal(1)
        rate = self._rates.get(source, {}).get(target)
        if rate is None:
            raise GatewayEligibilityError(f"no exchange rate for {source} -> {target}")
        return rate

    def convert(self, amount: Decimal, source: str, target: str) -> Decimal:
        converted = (Decimal(amount) * self.rate(source, target)).quantize(_CENT, rounding=ROUND_HALF_UP)
        logger.info("Converted %s %s to %s %s", amount, source, converted, target)
        return converted
