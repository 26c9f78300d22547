import logging
import time
import uuid
from datetime import datetime, timedelta, timezone

import requests

from paybridge.errors import ConflictError, OrderNotFoundError
from paybridge.models.delivery import CallbackAttempt, DeliveryResult
from paybridge.models.order import Order, Outcome
from paybridge.notifier.payload import build_callback_params
from paybridge.notifier.retry import RetryPolicy
from paybridge.orders.lifecycle import OrderLifecycle
from paybridge.signing.envelope import SignedParameterSet
from paybridge.signing.signer import ParameterSigner
from paybridge.store.base import OrderStore

logger = logging.getLogger(__name__)

_MAX_BODY = 2000


class CallbackNotifier:
    """Delivers signed outcome callbacks to the merchant platform, at least once."""

    def __init__(
        self,
        signer: ParameterSigner,
        retry_policy: RetryPolicy,
        store: OrderStore,
        lifecycle: OrderLifecycle,
        timeout_seconds: float = 10,
        session: requests.Session | None = None,
    ):
        self.signer = signer
        self.retry_policy = retry_policy
        self.store = store
        self.lifecycle = lifecycle
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def build_envelope(self, order: Order, outcome: Outcome,
                       message: str | None = None) -> SignedParameterSet:
        return self.signer.sign_envelope(build_callback_params(order, outcome, message))

    def deliver(self, order: Order, envelope: SignedParameterSet, attempt_number: int = 1,
                delay_factor: float = 1.0, delivery_id: str = "") -> CallbackAttempt:
        """Make one delivery attempt and record it. Never raises on HTTP failure."""
        start = time.monotonic()
        status_code = None
        body = None
        error = None

        try:
            resp = self.session.post(
                order.url_callback,
                data=envelope.to_form(),
                timeout=self.timeout_seconds,
            )
            status_code = resp.status_code
            body = resp.text[:_MAX_BODY]
        except requests.exceptions.Timeout:
            error = "timeout"
        except requests.exceptions.ConnectionError:
            error = "connection_error"
        except requests.exceptions.RequestException as e:
            error = str(e)

        elapsed_ms = (time.monotonic() - start) * 1000
        now = datetime.now(timezone.utc)

        next_retry_at = None
        if (self.retry_policy.should_retry(status_code)
                and self.retry_policy.has_attempts_remaining(attempt_number)):
            delay = self.retry_policy.next_delay(attempt_number) * delay_factor
            next_retry_at = now + timedelta(seconds=delay)

        attempt = CallbackAttempt(
            attempt_id=f"att_{uuid.uuid4().hex[:16]}",
            order_id=order.id,
            url=order.url_callback,
            attempt_number=attempt_number,
            status_code=status_code,
            timestamp=now,
            response_time_ms=elapsed_ms,
            response_body=body if error is None else error,
            error=error,
            next_retry_at=next_retry_at,
            delivery_id=delivery_id,
        )
        self.store.append_callback_attempt(attempt)

        if attempt.succeeded:
            logger.info("Callback for %s delivered on attempt %d",
                        order.reference, attempt_number)
        else:
            logger.warning("Callback for %s failed on attempt %d: status=%s error=%s",
                           order.reference, attempt_number, status_code, error)
        return attempt

    def send(self, order: Order, outcome: Outcome, message: str | None = None,
             delay_factor: float = 1.0) -> DeliveryResult:
        """Deliver ``outcome`` for ``order`` with bounded retries.

        Args:
            order: The order whose outcome is being reported.
            outcome: Canonical outcome to report as ``x_result``.
            message: Optional human-readable ``x_message``.
            delay_factor: Multiplier for backoff waits (use 0 in tests).

        Returns:
            The run's attempts under one delivery id. ``delivered`` is True
            once the merchant platform answered 200 and False after the retry
            budget is spent. Exhaustion is an operational signal for the
            caller, the order's own status is left as it is.
        """
        envelope = self.build_envelope(order, outcome, message)
        delivery_id = f"dlv_{uuid.uuid4().hex[:16]}"
        logger.info("Notifying merchant platform for %s: result=%s url=%s delivery=%s",
                    order.reference, outcome.value, order.url_callback, delivery_id)

        attempts: list[CallbackAttempt] = []
        while True:
            attempt_number = len(attempts) + 1
            attempt = self.deliver(order, envelope, attempt_number, delay_factor,
                                   delivery_id=delivery_id)
            attempts.append(attempt)

            if attempt.succeeded:
                self._mark_delivered(order, outcome, attempt)
                break

            if not self.retry_policy.has_attempts_remaining(attempt_number):
                logger.error("All %d callback attempts failed for %s (%s)",
                             attempt_number, order.reference, order.url_callback)
                break

            delay = self.retry_policy.next_delay(attempt_number) * delay_factor
            if delay > 0:
                time.sleep(delay)

        return DeliveryResult(delivery_id=delivery_id, order_id=order.id, attempts=attempts)

    def notify(self, order: Order, outcome: Outcome, message: str | None = None,
               delay_factor: float = 1.0) -> bool:
        """Like :meth:`send`, returning only whether the merchant acknowledged."""
        return self.send(order, outcome, message, delay_factor).delivered

    def _mark_delivered(self, order: Order, outcome: Outcome, attempt: CallbackAttempt) -> None:
        try:
            self.lifecycle.resolve(
                order.id,
                outcome,
                request_data={"source": "merchant_callback", "attempt": attempt.attempt_number},
                response_data={"status_code": attempt.status_code},
            )
        except (ConflictError, OrderNotFoundError) as e:
            # The callback went out; the order keeps whatever outcome it already has.
            logger.warning("Delivered %s for %s but could not record it: %s",
                           outcome.value, order.reference, e)
