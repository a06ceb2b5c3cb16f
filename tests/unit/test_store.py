import threading
from datetime import timedelta

import pytest

from x402_rails.errors import InvalidOperationError, NotFoundError, ValidationError
from x402_rails.models.payment import PaymentRequest, PaymentStatus


pytestmark = pytest.mark.unit


class TestCreate:
    """Tests for InMemoryPaymentStore.create()."""

    def test_create_yields_awaiting_payment(self, store, payment_factory):
        payment = store.create(payment_factory.request())
        assert payment.status is PaymentStatus.AWAITING_PAYMENT
        assert payment.id.startswith("pay_")

    def test_expires_exactly_one_hour_after_creation(self, store, payment_factory):
        payment = store.create(payment_factory.request())
        assert payment.expires_at - payment.created_at == timedelta(hours=1)
        assert payment.updated_at == payment.created_at

    def test_payment_url_points_at_checkout(self, store, payment_factory):
        payment = store.create(payment_factory.request())
        assert payment.payment_url.endswith(f"/{payment.id}")

    def test_description_and_metadata_pass_through(self, store):
        metadata = {"userId": "user_123", "plan": {"id": "premium_monthly"}}
        payment = store.create(PaymentRequest(
            amount=1000, currency="USD", description="Premium subscription", metadata=metadata,
        ))
        assert payment.description == "Premium subscription"
        assert payment.metadata == metadata

    @pytest.mark.parametrize("amount", [0, -5, 10.5, "1000", None, True])
    def test_rejects_non_positive_or_non_integer_amount(self, store, amount):
        with pytest.raises(ValidationError):
            store.create(PaymentRequest(amount=amount, currency="USD"))

    @pytest.mark.parametrize("currency", [None, "", "   "])
    def test_rejects_missing_currency(self, store, currency):
        with pytest.raises(ValidationError):
            store.create(PaymentRequest(amount=1000, currency=currency))

    def test_rejected_request_stores_nothing(self, store):
        with pytest.raises(ValidationError):
            store.create(PaymentRequest(amount=0, currency="USD"))
        assert len(store) == 0

    def test_ids_are_unique(self, store, payment_factory):
        ids = {store.create(payment_factory.request()).id for _ in range(50)}
        assert len(ids) == 50


class TestGet:
    """Tests for InMemoryPaymentStore.get() including expiry on read."""

    def test_get_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.get("pay_missing")

    def test_get_returns_stored_record(self, store, payment_factory):
        created = store.create(payment_factory.request())
        assert store.get(created.id) == created

    def test_get_after_expiry_reports_expired(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        clock.advance(3601)

        payment = store.get(created.id)

        assert payment.status is PaymentStatus.EXPIRED
        assert payment.updated_at == clock.now

    def test_get_at_exact_expiry_is_not_yet_expired(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        clock.advance(3600)
        assert store.get(created.id).status is PaymentStatus.AWAITING_PAYMENT

    def test_processing_payment_also_expires(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        store.transition(created.id, PaymentStatus.PROCESSING)
        clock.advance(7200)
        assert store.get(created.id).status is PaymentStatus.EXPIRED

    def test_terminal_status_survives_expiry(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        store.transition(created.id, PaymentStatus.COMPLETED)
        clock.advance(7200)
        assert store.get(created.id).status is PaymentStatus.COMPLETED

    def test_returned_record_is_a_copy(self, store, payment_factory):
        created = store.create(payment_factory.request(metadata={"k": "v"}))
        snapshot = store.get(created.id)
        snapshot.status = PaymentStatus.COMPLETED
        snapshot.metadata["k"] = "tampered"

        fresh = store.get(created.id)
        assert fresh.status is PaymentStatus.AWAITING_PAYMENT
        assert fresh.metadata == {"k": "v"}


class TestCancel:
    """Tests for InMemoryPaymentStore.cancel()."""

    def test_cancel_awaiting_payment(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        clock.advance(10)

        payment = store.cancel(created.id)

        assert payment.status is PaymentStatus.CANCELLED
        assert payment.updated_at == clock.now

    def test_cancel_processing_payment(self, store, payment_factory):
        created = store.create(payment_factory.request())
        store.transition(created.id, PaymentStatus.PROCESSING)
        assert store.cancel(created.id).status is PaymentStatus.CANCELLED

    def test_cancel_completed_raises_invalid_operation(self, store, payment_factory):
        created = store.create(payment_factory.request())
        store.transition(created.id, PaymentStatus.COMPLETED)

        with pytest.raises(InvalidOperationError):
            store.cancel(created.id)
        assert store.get(created.id).status is PaymentStatus.COMPLETED

    def test_cancel_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.cancel("pay_missing")

    def test_cancel_twice_is_idempotent(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        first = store.cancel(created.id)
        clock.advance(30)

        second = store.cancel(created.id)

        assert second.status is PaymentStatus.CANCELLED
        assert second.updated_at == first.updated_at

    @pytest.mark.parametrize("terminal", [PaymentStatus.FAILED, PaymentStatus.EXPIRED])
    def test_cancel_other_terminal_states_is_a_no_op(self, store, payment_factory, terminal):
        created = store.create(payment_factory.request())
        store.transition(created.id, terminal)
        assert store.cancel(created.id).status is terminal

    def test_cancel_after_lapse_reports_expired(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        clock.advance(3601)
        assert store.cancel(created.id).status is PaymentStatus.EXPIRED

    def test_cancelled_status_is_not_reverted(self, store, payment_factory):
        created = store.create(payment_factory.request())
        store.cancel(created.id)
        assert store.get(created.id).status is PaymentStatus.CANCELLED


class TestTransition:
    """Tests for the payment state machine edges."""

    def test_happy_path_through_processing(self, store, payment_factory):
        created = store.create(payment_factory.request())
        assert store.transition(created.id, PaymentStatus.PROCESSING).status is PaymentStatus.PROCESSING
        assert store.transition(created.id, PaymentStatus.COMPLETED).status is PaymentStatus.COMPLETED

    @pytest.mark.parametrize("terminal", [
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    ])
    def test_terminal_states_accept_no_transition(self, store, payment_factory, terminal):
        created = store.create(payment_factory.request())
        store.transition(created.id, terminal)
        with pytest.raises(InvalidOperationError):
            store.transition(created.id, PaymentStatus.PROCESSING)

    def test_cannot_return_to_awaiting_payment(self, store, payment_factory):
        created = store.create(payment_factory.request())
        store.transition(created.id, PaymentStatus.PROCESSING)
        with pytest.raises(InvalidOperationError):
            store.transition(created.id, PaymentStatus.AWAITING_PAYMENT)

    def test_cannot_move_to_pending(self, store, payment_factory):
        created = store.create(payment_factory.request())
        with pytest.raises(InvalidOperationError):
            store.transition(created.id, PaymentStatus.PENDING)

    def test_same_status_is_a_no_op(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        first = store.transition(created.id, PaymentStatus.PROCESSING)
        clock.advance(5)
        again = store.transition(created.id, PaymentStatus.PROCESSING)
        assert again.updated_at == first.updated_at

    def test_transition_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.transition("pay_missing", PaymentStatus.COMPLETED)

    def test_concurrent_complete_and_cancel_leave_one_consistent_state(self, store, payment_factory):
        created = store.create(payment_factory.request())
        errors = []
        barrier = threading.Barrier(20)

        def complete():
            barrier.wait()
            try:
                store.transition(created.id, PaymentStatus.COMPLETED)
            except InvalidOperationError as e:
                errors.append(e)

        def cancel():
            barrier.wait()
            try:
                store.cancel(created.id)
            except InvalidOperationError as e:
                errors.append(e)

        threads = [threading.Thread(target=complete if i % 2 else cancel) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        final = store.get(created.id).status
        assert final in (PaymentStatus.COMPLETED, PaymentStatus.CANCELLED)
        # Every call on the losing side is rejected; the winning side's repeats are no-ops
        assert len(errors) == 10


class TestList:
    """Tests for InMemoryPaymentStore.list()."""

    def _seed(self, store, clock, payment_factory, statuses):
        created = []
        for status in statuses:
            payment = store.create(payment_factory.request())
            if status is not PaymentStatus.AWAITING_PAYMENT:
                store.transition(payment.id, status)
            created.append(payment)
            clock.advance(1)
        return created

    def test_filters_by_status_newest_first(self, store, clock, payment_factory):
        created = self._seed(store, clock, payment_factory, [
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
            PaymentStatus.COMPLETED,
        ])

        result = store.list(status=PaymentStatus.COMPLETED, limit=10, offset=0)

        assert [p.id for p in result] == [created[4].id, created[2].id, created[0].id]

    def test_unfiltered_list_is_newest_first(self, store, clock, payment_factory):
        created = self._seed(store, clock, payment_factory, [PaymentStatus.AWAITING_PAYMENT] * 3)
        assert [p.id for p in store.list()] == [p.id for p in reversed(created)]

    def test_pagination_applies_after_sorting(self, store, clock, payment_factory):
        created = self._seed(store, clock, payment_factory, [PaymentStatus.AWAITING_PAYMENT] * 5)
        page = store.list(limit=2, offset=1)
        assert [p.id for p in page] == [created[3].id, created[2].id]

    def test_same_timestamp_keeps_newest_insert_first(self, store, payment_factory):
        first = store.create(payment_factory.request())
        second = store.create(payment_factory.request())
        assert [p.id for p in store.list()] == [second.id, first.id]

    def test_empty_result_is_empty_list(self, store):
        assert store.list(status=PaymentStatus.COMPLETED) == []

    def test_offset_past_end_is_empty(self, store, clock, payment_factory):
        self._seed(store, clock, payment_factory, [PaymentStatus.AWAITING_PAYMENT] * 2)
        assert store.list(offset=10) == []

    def test_list_reflects_expiry(self, store, clock, payment_factory):
        created = store.create(payment_factory.request())
        clock.advance(3601)
        assert [p.id for p in store.list(status=PaymentStatus.EXPIRED)] == [created.id]

    @pytest.mark.parametrize("limit,offset", [(-1, 0), (10, -1)])
    def test_negative_pagination_rejected(self, store, limit, offset):
        with pytest.raises(ValidationError):
            store.list(limit=limit, offset=offset)


class TestChangeReports:
    """Status changes are reported to subscribers exactly once."""

    @pytest.fixture
    def changes(self, store):
        recorded = []
        store.subscribe(lambda payment, previous: recorded.append((payment.status, previous)))
        return recorded

    def test_create_reports_no_previous_status(self, store, changes, payment_factory):
        store.create(payment_factory.request())
        assert changes == [(PaymentStatus.AWAITING_PAYMENT, None)]

    def test_transition_reports_previous_status(self, store, changes, payment_factory):
        payment = store.create(payment_factory.request())
        store.transition(payment.id, PaymentStatus.PROCESSING)
        store.transition(payment.id, PaymentStatus.PROCESSING)

        assert changes[1:] == [(PaymentStatus.PROCESSING, PaymentStatus.AWAITING_PAYMENT)]

    def test_expiry_on_read_is_reported_once(self, store, changes, clock, payment_factory):
        payment = store.create(payment_factory.request())
        clock.advance(3601)

        store.get(payment.id)
        store.list()
        store.cancel(payment.id)

        assert changes[1:] == [(PaymentStatus.EXPIRED, PaymentStatus.AWAITING_PAYMENT)]

    def test_rejected_operations_report_nothing(self, store, changes, payment_factory):
        payment = store.create(payment_factory.request())
        store.transition(payment.id, PaymentStatus.COMPLETED)

        with pytest.raises(InvalidOperationError):
            store.cancel(payment.id)

        assert [status for status, _ in changes] == [PaymentStatus.AWAITING_PAYMENT, PaymentStatus.COMPLETED]
