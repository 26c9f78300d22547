"""End-to-end: the same outcome reported more than once produces one callback."""

import threading

import pytest

from paybridge.errors import ConflictError
from paybridge.models.order import OrderStatus

pytestmark = pytest.mark.e2e


@pytest.fixture
def processing(app, params_factory, inbound_secret, merchant_server):
    params = params_factory.create(inbound_secret, x_reference="ORDER-1",
                                   x_url_callback=merchant_server.url)
    order = app.service.start_checkout(params)
    app.service.select_gateway(order.id, "mercadopago", "AR")
    return order


class TestDuplicateReports:

    def test_return_then_webhook(self, app, processing, merchant_server):
        app.service.handle_return("mercadopago", processing.id, "approved")
        app.service.handle_webhook("mercadopago", "pref-123", "approved", {"type": "payment"})
        app.worker.join()

        assert merchant_server.get_request_count() == 1
        assert app.store.find_by_id(processing.id).status is OrderStatus.COMPLETED

    def test_webhook_then_return_still_redirects(self, app, processing, merchant_server):
        app.service.handle_webhook("mercadopago", "pref-123", "approved")
        redirect = app.service.handle_return("mercadopago", processing.id, "approved")
        app.worker.join()

        assert "x_result=completed" in redirect
        assert merchant_server.get_request_count() == 1

    def test_concurrent_return_and_webhook(self, app, processing, merchant_server):
        barrier = threading.Barrier(2)
        errors = []

        def report(fn, *args):
            barrier.wait()
            try:
                fn(*args)
            except Exception as e:  # surfaced through the assertion below
                errors.append(e)

        threads = [
            threading.Thread(target=report, args=(
                app.service.handle_return, "mercadopago", processing.id, "approved")),
            threading.Thread(target=report, args=(
                app.service.handle_webhook, "mercadopago", "pref-123", "approved")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        app.worker.join()

        assert errors == []
        assert merchant_server.get_request_count() == 1
        completed = [e for e in app.store.list_events(processing.id)
                     if e.event_type == "payment_completed" and e.response_data.get("changed")]
        assert len(completed) == 1

    def test_contradicting_report_is_rejected(self, app, processing, merchant_server):
        app.service.handle_return("mercadopago", processing.id, "approved")
        with pytest.raises(ConflictError) as exc:
            app.service.handle_webhook("mercadopago", "pref-123", "rejected")
        app.worker.join()

        assert exc.value.current == "completed"
        assert exc.value.requested == "failed"
        assert app.store.find_by_id(processing.id).status is OrderStatus.COMPLETED
        assert [c["params"]["x_result"] for c in merchant_server.get_received_callbacks()] == ["completed"]

    def test_idempotent_merchant_ignores_replayed_callback(self, app, processing, merchant_server):
        merchant_server.enable_idempotency()
        app.service.handle_return("mercadopago", processing.id, "approved")
        app.worker.join()

        assert app.replay.redeliver("ORDER-1", delay_factor=0)
        assert merchant_server.get_request_count() == 2
        assert merchant_server.get_processed_count() == 1
