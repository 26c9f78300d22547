import logging
from datetime import datetime, timezone

from paybridge.models.delivery import CallbackAttempt
from paybridge.models.order import Order, Outcome
from paybridge.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class AlertManager:
    """Raises operational alerts about merchant callback delivery.

    Two kinds: one per delivery that exhausted its retries, and a fire-once
    alert when the rolling failure rate crosses ``threshold``.
    """

    def __init__(
        self,
        metrics: MetricsCollector,
        threshold: float = 0.10,
        callback=None,
    ):
        self.metrics = metrics
        self.threshold = threshold
        self.callback = callback
        self._fired = False
        self._alerts: list[dict] = []

    def delivery_exhausted(self, order: Order, outcome: Outcome,
                           attempts: list[CallbackAttempt]) -> dict:
        last = attempts[-1] if attempts else None
        alert = {
            "type": "callback_delivery_exhausted",
            "order_id": order.id,
            "reference": order.reference,
            "outcome": outcome.value,
            "callback_url": order.url_callback,
            "attempts": len(attempts),
            "last_status_code": last.status_code if last else None,
            "last_error": last.error if last else None,
            "raised_at": datetime.now(timezone.utc).isoformat(),
            "message": (
                f"Merchant callback for {order.reference} ({outcome.value}) "
                f"not acknowledged after {len(attempts)} attempts"
            ),
        }
        logger.error(alert["message"])
        self._emit(alert)
        return alert

    def check(self) -> dict | None:
        """Check the failure rate against the threshold. Returns alert dict or None."""
        rate = self.metrics.failure_rate()
        total = self.metrics.total_in_window()
        failures = self.metrics.failure_count_in_window()

        if total == 0:
            return None

        if rate > self.threshold:
            if self._fired:
                return None

            alert = {
                "type": "callback_failure_rate",
                "failure_rate": rate,
                "threshold": self.threshold,
                "total_deliveries": total,
                "failed_deliveries": failures,
                "references": self.metrics.failed_references_in_window(),
                "message": (
                    f"Callback failure rate {rate:.1%} exceeds "
                    f"threshold {self.threshold:.1%} "
                    f"({failures}/{total} deliveries failed)"
                ),
            }
            self._fired = True
            logger.error(alert["message"])
            self._emit(alert)
            return alert

        self._fired = False
        return None

    def _emit(self, alert: dict) -> None:
        self._alerts.append(alert)
        if self.callback:
            self.callback(alert)

    def get_alerts(self, alert_type: str | None = None) -> list[dict]:
        if alert_type is None:
            return list(self._alerts)
        return [a for a in self._alerts if a["type"] == alert_type]

    def reset(self) -> None:
        self._fired = False
        self._alerts.clear()
