from dataclasses import dataclass

import requests

from paybridge.config import Settings
from paybridge.gateways.binance_pay import BinancePayAdapter
from paybridge.gateways.currency import CurrencyConverter
from paybridge.gateways.mercadopago import MercadoPagoAdapter
from paybridge.gateways.paypal import PayPalAdapter
from paybridge.gateways.registry import GatewayRegistry
from paybridge.log import configure_logging
from paybridge.notifier.engine import CallbackNotifier
from paybridge.notifier.retry import RetryPolicy
from paybridge.notifier.worker import NotificationWorker
from paybridge.observability.alerting import AlertManager
from paybridge.observability.metrics import MetricsCollector
from paybridge.orders.lifecycle import OrderLifecycle
from paybridge.replay.manager import CallbackReplayManager
from paybridge.service import PaymentService
from paybridge.signing.signer import ParameterSigner
from paybridge.store.base import OrderStore
from paybridge.store.memory import InMemoryOrderStore


@dataclass
class Application:
    settings: Settings
    store: OrderStore
    service: PaymentService
    notifier: CallbackNotifier
    worker: NotificationWorker
    replay: CallbackReplayManager
    metrics: MetricsCollector
    alerts: AlertManager


def build_registry(settings: Settings, session: requests.Session | None = None,
                   converter: CurrencyConverter | None = None) -> GatewayRegistry:
    converter = converter or CurrencyConverter()
    return GatewayRegistry([
        PayPalAdapter(
            settings.public_base_url,
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            api_base=settings.paypal_api_base,
            session=session,
        ),
        MercadoPagoAdapter(
            settings.public_base_url,
            access_tokens=settings.mercadopago_tokens,
            converter=converter,
            api_base=settings.mercadopago_api_base,
            session=session,
        ),
        BinancePayAdapter(
            settings.public_base_url,
            api_key=settings.binance_pay_api_key,
            secret_key=settings.binance_pay_secret,
            converter=converter,
            api_base=settings.binance_pay_api_base,
            session=session,
        ),
    ])


def build_app(
    settings: Settings | None = None,
    store: OrderStore | None = None,
    registry: GatewayRegistry | None = None,
    delay_factor: float = 1.0,
    alert_callback=None,
    start_worker: bool = True,
) -> Application:
    """Wire every component from settings.

    Raises ConfigurationError when either signing secret is missing: without
    them no request can be trusted and no callback can be signed.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    store = store or InMemoryOrderStore()
    inbound_signer = ParameterSigner(settings.inbound_secret, direction="inbound")
    outbound_signer = ParameterSigner(settings.outbound_secret, direction="outbound")
    lifecycle = OrderLifecycle(store)

    notifier = CallbackNotifier(
        signer=outbound_signer,
        retry_policy=RetryPolicy(
            max_attempts=settings.callback_max_attempts,
            base_delay=settings.callback_base_delay_seconds,
            max_delay=settings.callback_max_delay_seconds,
        ),
        store=store,
        lifecycle=lifecycle,
        timeout_seconds=settings.callback_timeout_seconds,
    )
    metrics = MetricsCollector()
    alerts = AlertManager(metrics, threshold=settings.alert_failure_rate, callback=alert_callback)
    worker = NotificationWorker(notifier, store, metrics=metrics, alerts=alerts,
                                delay_factor=delay_factor, workers=settings.callback_workers)
    if start_worker:
        worker.start()

    service = PaymentService(
        inbound_signer=inbound_signer,
        outbound_signer=outbound_signer,
        lifecycle=lifecycle,
        registry=registry or build_registry(settings),
        store=store,
        worker=worker,
    )
    return Application(
        settings=settings,
        store=store,
        service=service,
        notifier=notifier,
        worker=worker,
        replay=CallbackReplayManager(notifier, store),
        metrics=metrics,
        alerts=alerts,
    )
