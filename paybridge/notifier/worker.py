import logging
import queue
import threading
import zlib
from dataclasses import dataclass

from paybridge.models.order import Outcome
from paybridge.notifier.engine import CallbackNotifier
from paybridge.observability.alerting import AlertManager
from paybridge.observability.metrics import MetricsCollector
from paybridge.store.base import OrderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryJob:
    reference: str
    outcome: Outcome
    message: str | None = None


class NotificationWorker:
    """Runs callback deliveries on a small pool of background threads.

    Requests enqueue a job and return; the retry loop (including its sleeps)
    happens here, holding no lock on the order. Jobs are sharded by order
    reference, so callbacks for one order go out in submission order while an
    unreachable merchant only holds up the orders on its own shard.
    """

    def __init__(
        self,
        notifier: CallbackNotifier,
        store: OrderStore,
        metrics: MetricsCollector | None = None,
        alerts: AlertManager | None = None,
        delay_factor: float = 1.0,
        workers: int = 4,
    ):
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.notifier = notifier
        self.store = store
        self.metrics = metrics
        self.alerts = alerts
        self.delay_factor = delay_factor
        self._queues: list[queue.Queue[DeliveryJob | None]] = [queue.Queue() for _ in range(workers)]
        self._threads: list[threading.Thread] = []
        self._alert_lock = threading.Lock()

    @property
    def workers(self) -> int:
        return len(self._queues)

    def shard_for(self, reference: str) -> int:
        return zlib.crc32(reference.encode("utf-8")) % len(self._queues)

    def start(self) -> None:
        if self._threads:
            return
        for index, jobs in enumerate(self._queues):
            thread = threading.Thread(target=self._run, args=(jobs,),
                                      name=f"paybridge-notifier-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 5) -> None:
        if not self._threads:
            return
        for jobs in self._queues:
            jobs.put(None)
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    def submit(self, job: DeliveryJob) -> None:
        self._queues[self.shard_for(job.reference)].put(job)

    def join(self) -> None:
        """Block until every submitted job has been processed."""
        for jobs in self._queues:
            jobs.join()

    def _run(self, jobs: queue.Queue) -> None:
        while True:
            job = jobs.get()
            try:
                if job is None:
                    return
                self.process(job)
            except Exception:
                logger.exception("Callback job for %s crashed", job.reference if job else None)
            finally:
                jobs.task_done()

    def process(self, job: DeliveryJob) -> bool:
        order = self.store.find_by_reference(job.reference)
        if order is None:
            logger.error("Order not found for callback job: %s", job.reference)
            return False

        result = self.notifier.send(order, job.outcome, job.message,
                                    delay_factor=self.delay_factor)
        if self.metrics is not None:
            if result.delivered:
                self.metrics.record_success(order.reference)
            else:
                self.metrics.record_failure(order.reference)

        if self.alerts is not None:
            with self._alert_lock:
                if not result.delivered:
                    self.alerts.delivery_exhausted(order, job.outcome, result.attempts)
                self.alerts.check()
        return result.delivered
