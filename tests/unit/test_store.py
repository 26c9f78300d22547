import threading
from datetime import datetime, timezone

import pytest

from paybridge.models.delivery import CallbackAttempt
from paybridge.models.events import TransactionEvent
from paybridge.models.order import OrderStatus


def _event(order_id, event_type="payment_initiated"):
    return TransactionEvent(
        event_id=f"evt_{event_type}",
        order_id=order_id,
        event_type=event_type,
        gateway="merchant_platform",
        timestamp=datetime.now(timezone.utc),
    )


class TestCreateOrFind:

    @pytest.mark.unit
    def test_first_call_creates(self, store, order_factory):
        order = order_factory.create(reference="ORDER-1")
        stored, created = store.create_or_find_by_reference("ORDER-1", lambda: order)
        assert created
        assert stored.id == order.id

    @pytest.mark.unit
    def test_second_call_finds_without_building(self, store, order_factory):
        first, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))

        def build():
            raise AssertionError("must not build twice")

        again, created = store.create_or_find_by_reference("ORDER-1", build)
        assert not created
        assert again.id == first.id

    @pytest.mark.unit
    def test_concurrent_creates_yield_one_order(self, store, order_factory):
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            order, created = store.create_or_find_by_reference(
                "ORDER-RACE", lambda: order_factory.create(reference="ORDER-RACE"))
            results.append((order.id, created))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({order_id for order_id, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1

    @pytest.mark.unit
    def test_mismatched_reference_rejected(self, store, order_factory):
        with pytest.raises(ValueError):
            store.create_or_find_by_reference("ORDER-1", lambda: order_factory.create(reference="ORDER-2"))


class TestLookups:

    @pytest.mark.unit
    def test_find_by_reference_and_id(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))
        assert store.find_by_reference("ORDER-1").id == order.id
        assert store.find_by_id(order.id).reference == "ORDER-1"
        assert store.find_by_reference("ORDER-404") is None
        assert store.find_by_id("nope") is None

    @pytest.mark.unit
    def test_find_by_gateway_id(self, store, order_factory):
        store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1", gateway_transaction_id="pref-1"))
        assert store.find_by_gateway_id("pref-1").reference == "ORDER-1"
        assert store.find_by_gateway_id("pref-2") is None
        assert store.find_by_gateway_id("") is None

    @pytest.mark.unit
    def test_returned_orders_are_copies(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))
        order.metadata["tampered"] = "yes"
        assert "tampered" not in store.find_by_id(order.id).metadata


class TestUpdateStatus:

    @pytest.mark.unit
    def test_compare_and_set_succeeds_from_expected(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))
        updated = store.update_status(order.id, OrderStatus.PENDING, OrderStatus.PROCESSING,
                                      gateway="paypal")
        assert updated.status is OrderStatus.PROCESSING
        assert updated.gateway == "paypal"
        assert updated.updated_at >= order.updated_at

    @pytest.mark.unit
    def test_compare_and_set_fails_from_other_status(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))
        assert store.update_status(order.id, OrderStatus.PROCESSING, OrderStatus.COMPLETED) is None
        assert store.find_by_id(order.id).status is OrderStatus.PENDING

    @pytest.mark.unit
    def test_unknown_order(self, store):
        assert store.update_status("nope", OrderStatus.PENDING, OrderStatus.PROCESSING) is None

    @pytest.mark.unit
    def test_only_one_concurrent_transition_wins(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1", status=OrderStatus.PROCESSING))
        wins = []
        barrier = threading.Barrier(2)

        def resolve(target):
            barrier.wait()
            if store.update_status(order.id, OrderStatus.PROCESSING, target) is not None:
                wins.append(target)

        threads = [
            threading.Thread(target=resolve, args=(OrderStatus.COMPLETED,)),
            threading.Thread(target=resolve, args=(OrderStatus.CANCELLED,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert store.find_by_id(order.id).status is wins[0]


class TestHistory:

    @pytest.mark.unit
    def test_events_filtered_by_order(self, store):
        store.append_event(_event("a"))
        store.append_event(_event("b"))
        store.append_event(_event("a", "payment_processing"))
        assert [e.event_type for e in store.list_events("a")] == [
            "payment_initiated", "payment_processing",
        ]

    @pytest.mark.unit
    def test_callback_attempts(self, store):
        now = datetime.now(timezone.utc)
        for n, order_id in enumerate(["a", "b", "a"], start=1):
            store.append_callback_attempt(CallbackAttempt(
                attempt_id=f"att_{n}", order_id=order_id, url="http://m/cb",
                attempt_number=n, status_code=500, timestamp=now, response_time_ms=1.0,
            ))
        assert len(store.list_callback_attempts()) == 3
        assert [a.attempt_id for a in store.list_callback_attempts("a")] == ["att_1", "att_3"]

    @pytest.mark.unit
    def test_clear(self, store, order_factory):
        order, _ = store.create_or_find_by_reference(
            "ORDER-1", lambda: order_factory.create(reference="ORDER-1"))
        store.append_event(_event(order.id))
        store.clear()
        assert store.find_by_id(order.id) is None
        assert store.list_events(order.id) == []
