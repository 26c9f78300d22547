# Locust load test for signed merchant callback throughput.
#
# How to run:
#   locust -f tests/load/locustfile.py --headless -u 50 -r 10 --run-time 30s --host http://127.0.0.1:8080
#
# A MerchantCallbackServer with signature verification is started on port
# 8080 by the test_start listener, so no external receiver is needed.
#
# Each task builds the callback the notifier sends for an order outcome,
# signs it with the outbound secret, and posts it form-encoded.

import logging
import threading

from locust import HttpUser, between, events, task

from paybridge.merchant_receiver.server import MerchantCallbackServer
from paybridge.models.order import Outcome
from paybridge.notifier.payload import build_callback_params
from paybridge.signing.signer import ParameterSigner
from paybridge.utils.factories import OrderFactory

logger = logging.getLogger(__name__)

OUTBOUND_SECRET = "load-test-secret"

_stats_lock = threading.Lock()
_sent_count: int = 0
_success_count: int = 0
_failure_count: int = 0

_server: MerchantCallbackServer | None = None

OUTCOMES = [Outcome.COMPLETED, Outcome.PENDING, Outcome.CANCELLED, Outcome.FAILED]


def _record(ok: bool | None) -> None:
    """None counts a send; True/False count the merchant's answer."""
    global _sent_count, _success_count, _failure_count
    with _stats_lock:
        if ok is None:
            _sent_count += 1
        elif ok:
            _success_count += 1
        else:
            _failure_count += 1


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    global _server, _sent_count, _success_count, _failure_count

    with _stats_lock:
        _sent_count = 0
        _success_count = 0
        _failure_count = 0

    _server = MerchantCallbackServer(host="127.0.0.1", port=8080, secret=OUTBOUND_SECRET)
    _server.start()
    logger.info("MerchantCallbackServer started on port 8080")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Stop the receiver and check that no signed callback was lost or rejected."""
    global _server

    received = 0
    if _server is not None:
        received = _server.get_processed_count()
        _server.stop()
        _server = None

    with _stats_lock:
        total_sent = _sent_count
        total_ok = _success_count
        total_fail = _failure_count

    logger.info("Load test summary: sent=%d, http_ok=%d, http_fail=%d, merchant_received=%d",
                total_sent, total_ok, total_fail, received)

    if total_sent > 0:
        success_rate = total_ok / total_sent * 100
        logger.info("Acknowledged: %.2f%% (target: >99%%)", success_rate)
        if success_rate < 99.0:
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: acknowledged rate %.2f%% is below 99%%", success_rate)
        if received < total_sent:
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: %d callbacks lost (%d sent, %d received)",
                         total_sent - received, total_sent, received)

    for stat in environment.runner.stats.entries.values():
        p95 = stat.get_response_time_percentile(0.95)
        if p95 and p95 > 5000:
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: p95 latency %dms exceeds 5000ms for '%s'", p95, stat.name)


class MerchantCallbackUser(HttpUser):
    """Posts signed order-outcome callbacks the way the notifier does."""

    wait_time = between(0.01, 0.05)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._signer = ParameterSigner(OUTBOUND_SECRET)
        self._index = 0

    def _next_outcome(self) -> Outcome:
        outcome = OUTCOMES[self._index % len(OUTCOMES)]
        self._index += 1
        return outcome

    @task
    def deliver_callback(self) -> None:
        outcome = self._next_outcome()
        order = OrderFactory.create()
        envelope = self._signer.sign_envelope(build_callback_params(order, outcome))

        _record(None)
        with self.client.post(
            "/callback",
            data=envelope.to_form(),
            catch_response=True,
            name=f"/callback [{outcome.value}]",
        ) as response:
            if response.status_code == 200:
                _record(True)
                response.success()
            else:
                _record(False)
                response.failure(f"HTTP {response.status_code}: {response.text[:200]}")
