"""
Tests for `domain/payout.py` and `services/payout_service.py`.

Covers contract rules:
- Payout requests need a positive amount, a payout method and enough balance.
- Concurrent requests cannot reserve more than the available balance.
- A payout completes at most once; concurrent processing settles exactly once.
- Overlapping settlements for one user fund disjoint sessions.
- Processor failures leave the payout pending and retryable.
- Only the sessions a payout funds move to paid_out.
- Only pending payouts can be rejected.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.errors import (
    ExternalFailureError,
    InvalidArgumentError,
    InvalidStateError,
    NotConfiguredError,
    NotFoundError,
)
from domain.payout import Payee, Payout, PayoutMethod, PayoutStatus, plan_funded_sessions
from domain.rate_config import RecordingMode
from domain.session import DataSaleStatus, RecordingSession, SessionStatus
from repositories.memory_store import InMemoryLedgerStore
from services.allocation_service import sell_sessions
from services.earnings_service import get_available_for_payout, get_user_earnings
from services.payment_processor import MockPaymentProcessor, PaymentProcessorError
from services.payout_service import (
    connect_payout_destination,
    get_payout,
    list_payouts,
    process_payout,
    reject_payout,
    request_payout,
)
from services.session_service import (
    end_session,
    get_session,
    mark_uploaded,
    start_session,
    update_duration,
)

BASE = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FailingProcessor:
    """Processor whose transfers always fail."""

    def __init__(self) -> None:
        self.attempts = 0

    def create_transfer_destination(self, user_id: UUID) -> str:
        return "acct_failing"

    def transfer_funds(self, destination_ref: str, amount: Decimal, idempotency_key: str) -> str:
        self.attempts += 1
        raise PaymentProcessorError("processor unavailable")


class InterleavingProcessor(MockPaymentProcessor):
    """Settles another payout while the first transfer is still in flight."""

    def __init__(self, store, interleaved_payout_id: UUID) -> None:
        super().__init__()
        self._store = store
        self._interleaved = interleaved_payout_id

    def transfer_funds(self, destination_ref: str, amount: Decimal, idempotency_key: str) -> str:
        transfer_ref = super().transfer_funds(destination_ref, amount, idempotency_key)
        if self._interleaved is not None:
            payout_id, self._interleaved = self._interleaved, None
            process_payout(self._store, self, payout_id)
        return transfer_ref


class GatedStore(InMemoryLedgerStore):
    """Holds payout requests at the payee lookup until all of them arrive."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = None

    def get_payee(self, user_id: UUID):
        payee = super().get_payee(user_id)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return payee


@pytest.fixture
def earning_user(store, processor, record_session, user_id: UUID) -> UUID:
    """A user with a payout destination and two sold sessions (15.00 + 45.00 owed)."""

    short = record_session(user_id, "10")
    long = record_session(user_id, "30")
    sell_sessions(store, [short.session_id, long.session_id], Decimal("100.00"))
    connect_payout_destination(store, processor, user_id)
    return user_id


def _sold(user_id: UUID, payout: str, hours_after: int) -> RecordingSession:
    amount = Decimal(payout)
    return RecordingSession(
        session_id=uuid4(),
        user_id=user_id,
        mode=RecordingMode.NARRATED,
        started_at=BASE,
        status=SessionStatus.COMPLETED,
        data_sale_status=DataSaleStatus.SOLD,
        duration_minutes=Decimal("10.00"),
        actual_earnings=amount * 2,
        user_payout=amount,
        platform_revenue=amount,
        sold_at=BASE + timedelta(hours=hours_after),
        sale_rate_version=1,
    )


def test_connect_payout_destination_reuses_existing(store, processor, user_id: UUID) -> None:
    first = connect_payout_destination(store, processor, user_id)
    second = connect_payout_destination(store, processor, user_id, PayoutMethod.BANK)

    assert first.destination_ref.startswith("acct_mock_")
    assert second.destination_ref == first.destination_ref
    assert second.payout_method is PayoutMethod.BANK


def test_request_payout_creates_pending(store, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("60.00"))

    assert payout.status is PayoutStatus.PENDING
    assert payout.amount == Decimal("60.00")
    assert payout.method is PayoutMethod.STRIPE
    assert get_payout(store, payout.payout_id) == payout


def test_request_payout_without_method_is_not_configured(store, record_session, user_id: UUID) -> None:
    """Verify payoutMethod = none fails with NotConfigured."""

    session = record_session(user_id, "10")
    sell_sessions(store, [session.session_id], Decimal("3.00"))
    store.save_payee(Payee(user_id=user_id, payout_method=PayoutMethod.NONE))

    with pytest.raises(NotConfiguredError):
        request_payout(store, user_id, Decimal("1.00"))


def test_request_payout_without_payee_is_not_configured(store, user_id: UUID) -> None:
    with pytest.raises(NotConfiguredError):
        request_payout(store, user_id, Decimal("1.00"))


def test_request_payout_rejects_non_positive_amount(store, earning_user: UUID) -> None:
    with pytest.raises(InvalidArgumentError):
        request_payout(store, earning_user, Decimal("0"))

    with pytest.raises(InvalidArgumentError):
        request_payout(store, earning_user, Decimal("-5.00"))


def test_request_payout_cannot_exceed_available_balance(store, earning_user: UUID) -> None:
    with pytest.raises(InvalidArgumentError):
        request_payout(store, earning_user, Decimal("60.01"))

    request_payout(store, earning_user, Decimal("40.00"))

    # 20.00 left once the open request is reserved.
    with pytest.raises(InvalidArgumentError):
        request_payout(store, earning_user, Decimal("30.00"))


def test_concurrent_requests_cannot_overdraw_balance(rates, processor, user_id: UUID) -> None:
    """Two requests for the whole balance at once: one reserves it, one is refused."""

    gated = GatedStore()
    gated.save_rate_config(rates, expected_version=None)
    session = start_session(gated, user_id, RecordingMode.NARRATED)
    update_duration(gated, session.session_id, Decimal("10"))
    end_session(gated, session.session_id)
    mark_uploaded(gated, session.session_id, "recordings/test/session.mp4")
    sell_sessions(gated, [session.session_id], Decimal("10.00"))
    connect_payout_destination(gated, processor, user_id)
    gated.gate = threading.Barrier(2)

    outcomes = []
    lock = threading.Lock()

    def worker() -> None:
        try:
            request_payout(gated, user_id, Decimal("6.00"))
            outcome = "reserved"
        except InvalidArgumentError:
            outcome = "refused"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["refused", "reserved"]
    reserved = sum(p.amount for p in gated.list_payouts(user_id=user_id) if p.is_open)
    assert reserved == Decimal("6.00")
    assert get_available_for_payout(gated, user_id) == Decimal("0.00")


def test_request_payout_is_idempotent_by_key(store, earning_user: UUID) -> None:
    first = request_payout(store, earning_user, Decimal("10.00"), idempotency_key="withdraw-1")
    again = request_payout(store, earning_user, Decimal("10.00"), idempotency_key="withdraw-1")

    assert again.payout_id == first.payout_id
    assert len(list_payouts(store)) == 1


def test_process_payout_completes_and_marks_funded_sessions(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("60.00"))

    result = process_payout(store, processor, payout.payout_id)

    assert result.payout.status is PayoutStatus.COMPLETED
    assert result.transfer_ref.startswith("tr_mock_")
    assert len(result.funded_session_ids) == 2
    for session_id in result.funded_session_ids:
        session = get_session(store, session_id)
        assert session.data_sale_status is DataSaleStatus.PAID_OUT
        assert session.payout_id == payout.payout_id

    summary = get_user_earnings(store, earning_user)
    assert summary.paid_out == Decimal("60.00")
    assert summary.pending_payout == Decimal("0.00")

    assert [t.idempotency_key for t in processor.transfers] == [f"payout:{payout.payout_id}"]


def test_partial_payout_only_pays_out_covered_sessions(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("10.00"))

    result = process_payout(store, processor, payout.payout_id)

    assert result.funded_session_ids == frozenset()
    sold = store.list_sessions(user_id=earning_user, data_sale_status=DataSaleStatus.SOLD)
    assert len(sold) == 2
    assert get_user_earnings(store, earning_user).pending_payout == Decimal("50.00")


def test_process_payout_twice_is_invalid_state(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("60.00"))
    process_payout(store, processor, payout.payout_id)

    with pytest.raises(InvalidStateError):
        process_payout(store, processor, payout.payout_id)

    assert len(processor.transfers) == 1


def test_concurrent_process_payout_settles_exactly_once(store, processor, earning_user: UUID) -> None:
    """Two concurrent calls -> one completed transition and one InvalidState."""

    payout = request_payout(store, earning_user, Decimal("60.00"))
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            process_payout(store, processor, payout.payout_id)
            outcome = "completed"
        except InvalidStateError:
            outcome = "invalid_state"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["completed", "invalid_state"]
    assert get_payout(store, payout.payout_id).status is PayoutStatus.COMPLETED
    assert len(processor.transfers) == 1


def test_interleaved_settlements_fund_distinct_sessions(store, record_session, user_id: UUID) -> None:
    """A settlement that completes mid-transfer does not strand the other one."""

    first = record_session(user_id, "10")
    second = record_session(user_id, "10")
    sell_sessions(store, [first.session_id], Decimal("10.00"))
    sell_sessions(store, [second.session_id], Decimal("10.00"))
    connect_payout_destination(store, MockPaymentProcessor(), user_id)
    early = request_payout(store, user_id, Decimal("6.00"))
    late = request_payout(store, user_id, Decimal("6.00"))
    processor = InterleavingProcessor(store, early.payout_id)

    result = process_payout(store, processor, late.payout_id)

    settled_early = get_payout(store, early.payout_id)
    assert settled_early.status is PayoutStatus.COMPLETED
    assert result.payout.status is PayoutStatus.COMPLETED
    assert get_payout(store, late.payout_id) == result.payout
    assert len(settled_early.funded_session_ids) == 1
    assert len(result.funded_session_ids) == 1
    assert settled_early.funded_session_ids | result.funded_session_ids == {
        first.session_id,
        second.session_id,
    }
    for session_id in (first.session_id, second.session_id):
        assert get_session(store, session_id).data_sale_status is DataSaleStatus.PAID_OUT

    assert len(processor.transfers) == 2
    summary = get_user_earnings(store, user_id)
    assert summary.paid_out == Decimal("12.00")
    assert summary.pending_payout == Decimal("0.00")


def test_processor_failure_leaves_payout_pending(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("60.00"))
    failing = FailingProcessor()

    with pytest.raises(ExternalFailureError):
        process_payout(store, failing, payout.payout_id)

    assert failing.attempts == 1
    assert get_payout(store, payout.payout_id).status is PayoutStatus.PENDING
    assert not store.list_sessions(user_id=earning_user, data_sale_status=DataSaleStatus.PAID_OUT)

    retried = process_payout(store, processor, payout.payout_id)
    assert retried.payout.status is PayoutStatus.COMPLETED


def test_process_payout_without_destination_is_not_configured(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("10.00"))
    store.save_payee(Payee(user_id=earning_user, payout_method=PayoutMethod.BANK))

    with pytest.raises(NotConfiguredError):
        process_payout(store, processor, payout.payout_id)

    assert get_payout(store, payout.payout_id).status is PayoutStatus.PENDING


def test_process_unknown_payout_is_not_found(store, processor) -> None:
    with pytest.raises(NotFoundError):
        process_payout(store, processor, uuid4())


def test_reject_pending_payout(store, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("10.00"))

    rejected = reject_payout(store, payout.payout_id, "duplicate request")

    assert rejected.status is PayoutStatus.REJECTED
    assert rejected.rejection_reason == "duplicate request"
    # The reserved amount is released again.
    request_payout(store, earning_user, Decimal("60.00"))


def test_reject_completed_payout_is_invalid_state(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("60.00"))
    process_payout(store, processor, payout.payout_id)

    with pytest.raises(InvalidStateError, match="payout is completed, not pending"):
        reject_payout(store, payout.payout_id)


def test_rejected_payout_cannot_be_processed(store, processor, earning_user: UUID) -> None:
    payout = request_payout(store, earning_user, Decimal("10.00"))
    reject_payout(store, payout.payout_id)

    with pytest.raises(InvalidStateError):
        process_payout(store, processor, payout.payout_id)

    assert processor.transfers == []


def test_plan_funded_sessions_funds_oldest_sales_first(user_id: UUID) -> None:
    oldest = _sold(user_id, "5.00", hours_after=1)
    middle = _sold(user_id, "3.00", hours_after=2)
    newest = _sold(user_id, "4.00", hours_after=3)
    settling = Payout.request(
        user_id=user_id,
        amount=Decimal("9.00"),
        method=PayoutMethod.STRIPE,
        created_at=BASE,
    ).claimed()

    funded = plan_funded_sessions([newest, oldest, middle], [settling], settling)

    assert [s.session_id for s in funded] == [oldest.session_id, middle.session_id]


def test_plan_funded_sessions_counts_earlier_payout_credit(user_id: UUID) -> None:
    """Credit left over from an earlier payout carries into the next one."""

    earlier_paid = _sold(user_id, "5.00", hours_after=1).paid_out(uuid4())
    waiting = _sold(user_id, "4.00", hours_after=2)
    earlier = Payout(
        payout_id=uuid4(),
        user_id=user_id,
        amount=Decimal("7.00"),
        method=PayoutMethod.STRIPE,
        created_at=BASE,
        status=PayoutStatus.COMPLETED,
    )
    settling = Payout.request(
        user_id=user_id,
        amount=Decimal("2.00"),
        method=PayoutMethod.STRIPE,
        created_at=BASE,
    ).claimed()

    funded = plan_funded_sessions([earlier_paid, waiting], [earlier, settling], settling)

    assert [s.session_id for s in funded] == [waiting.session_id]
