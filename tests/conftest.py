import pytest

from paybridge.bootstrap import build_app, build_registry
from paybridge.config import Settings
from paybridge.merchant_receiver.server import MerchantCallbackServer
from paybridge.models.order import OrderStatus
from paybridge.notifier.engine import CallbackNotifier
from paybridge.notifier.retry import RetryPolicy
from paybridge.observability.alerting import AlertManager
from paybridge.observability.metrics import MetricsCollector
from paybridge.orders.lifecycle import OrderLifecycle
from paybridge.replay.manager import CallbackReplayManager
from paybridge.signing.signer import ParameterSigner
from paybridge.store.memory import InMemoryOrderStore
from paybridge.utils.factories import CheckoutParamsFactory, OrderFactory


INBOUND_SECRET = "test-inbound-secret"
OUTBOUND_SECRET = "test-outbound-secret"

PAYPAL_API = "https://api-m.sandbox.paypal.com"
MERCADOPAGO_API = "https://api.mercadopago.com"
BINANCE_API = "https://bpay.binanceapi.com"


class FakeResponse:
    def __init__(self, status_code: int = 200, json_body=None, text: str | None = None):
        self.status_code = status_code
        self._json = json_body
        self.text = text if text is not None else ("" if json_body is None else str(json_body))

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class FakeSession:
    """Stands in for requests.Session in gateway adapters; records every call."""

    def __init__(self):
        self.routes: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple[str, str, dict]] = []

    def add(self, method: str, url: str, status_code: int = 200, json_body=None, exc=None):
        self.routes[(method.upper(), url)] = {
            "status_code": status_code, "json_body": json_body, "exc": exc,
        }
        return self

    def request(self, method: str, url: str, **kwargs):
        self.calls.append((method.upper(), url, kwargs))
        route = self.routes.get((method.upper(), url))
        if route is None:
            return FakeResponse(404, {"error": "not found"})
        if route["exc"] is not None:
            raise route["exc"]
        return FakeResponse(route["status_code"], route["json_body"])

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def calls_to(self, url: str) -> list[tuple[str, str, dict]]:
        return [c for c in self.calls if c[1] == url]


@pytest.fixture
def inbound_secret():
    return INBOUND_SECRET


@pytest.fixture
def outbound_secret():
    return OUTBOUND_SECRET


@pytest.fixture
def inbound_signer():
    return ParameterSigner(INBOUND_SECRET, direction="inbound")


@pytest.fixture
def outbound_signer():
    return ParameterSigner(OUTBOUND_SECRET, direction="outbound")


@pytest.fixture
def retry_policy():
    return RetryPolicy()


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def lifecycle(store):
    return OrderLifecycle(store)


@pytest.fixture
def notifier(outbound_signer, retry_policy, store, lifecycle):
    return CallbackNotifier(
        signer=outbound_signer,
        retry_policy=retry_policy,
        store=store,
        lifecycle=lifecycle,
        timeout_seconds=5,
    )


@pytest.fixture
def merchant_server():
    server = MerchantCallbackServer(secret=OUTBOUND_SECRET)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def merchant_server_no_auth():
    """Merchant receiver without signature verification."""
    server = MerchantCallbackServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def metrics():
    return MetricsCollector(window_seconds=300)


@pytest.fixture
def alert_manager(metrics):
    return AlertManager(metrics=metrics, threshold=0.10)


@pytest.fixture
def replay_manager(notifier, store):
    return CallbackReplayManager(notifier=notifier, store=store)


@pytest.fixture
def order_factory():
    return OrderFactory


@pytest.fixture
def params_factory():
    return CheckoutParamsFactory


@pytest.fixture
def processing_order(store):
    """Store an order already bound to a gateway; callback URL is set by the caller."""

    def make(url_callback: str, **overrides):
        fields = {
            "url_callback": url_callback,
            "status": OrderStatus.PROCESSING,
            "gateway": "paypal",
            "gateway_transaction_id": "PP-ORDER-1",
        }
        fields.update(overrides)
        order = OrderFactory.create(**fields)
        stored, _ = store.create_or_find_by_reference(order.reference, lambda: order)
        return stored

    return make


@pytest.fixture
def gateway_session():
    session = FakeSession()
    session.add("POST", f"{PAYPAL_API}/v1/oauth2/token", json_body={"access_token": "A21-token"})
    session.add("POST", f"{PAYPAL_API}/v2/checkout/orders", json_body={
        "id": "PP-ORDER-1",
        "status": "CREATED",
        "links": [
            {"rel": "self", "href": f"{PAYPAL_API}/v2/checkout/orders/PP-ORDER-1"},
            {"rel": "approve", "href": "https://www.sandbox.paypal.com/checkoutnow?token=PP-ORDER-1"},
        ],
    })
    session.add("POST", f"{PAYPAL_API}/v2/checkout/orders/PP-ORDER-1/capture", json_body={
        "id": "PP-ORDER-1",
        "status": "COMPLETED",
    })
    session.add("POST", f"{MERCADOPAGO_API}/checkout/preferences", json_body={
        "id": "pref-123",
        "init_point": "https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref-123",
    })
    session.add("POST", f"{BINANCE_API}/binancepay/openapi/v3/order", json_body={
        "status": "SUCCESS",
        "code": "000000",
        "data": {
            "prepayId": "29383937493038367292",
            "checkoutUrl": "https://pay.binance.com/en/checkout/e30c9a3a",
        },
    })
    return session


@pytest.fixture
def settings():
    return Settings(
        inbound_secret=INBOUND_SECRET,
        outbound_secret=OUTBOUND_SECRET,
        public_base_url="http://paybridge.test",
        callback_timeout_seconds=5,
        paypal_client_id="pp-client",
        paypal_client_secret="pp-secret",
        mercadopago_tokens={"AR": "TEST-AR-TOKEN", "MX": "TEST-MX-TOKEN"},
        binance_pay_api_key="bp-key",
        binance_pay_secret="bp-secret",
    )


@pytest.fixture
def app(settings, gateway_session):
    application = build_app(
        settings,
        registry=build_registry(settings, session=gateway_session),
        delay_factor=0,
    )
    yield application
    application.worker.stop()
