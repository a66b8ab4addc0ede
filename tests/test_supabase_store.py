"""
Tests for `repositories/supabase_store.py` without a database.

Covers:
- Row mapping preserves every ledger field (Decimals, UTC timestamps, ids).
- Guarded-write function results map back to the typed ledger errors.
- Settlement and reservation results are read back from the database.
- Compare-and-set session writes distinguish missing from modified rows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from postgrest.exceptions import APIError

from domain.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from domain.payout import Payout, PayoutMethod, PayoutStatus
from domain.rate_config import RecordingMode
from domain.session import DataSaleStatus, RecordingSession, SessionStatus
from repositories.supabase_store import (
    SupabaseLedgerStore,
    _payout_to_row,
    _row_to_payout,
    _row_to_session,
    _session_to_row,
)

STARTED = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeQuery:
    """Chainable stand-in for a PostgREST request builder."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def __getattr__(self, name):
        def _record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return _record

    def execute(self):
        result = self._responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(data=result, error=None)


class FakeClient:
    def __init__(self, responses):
        self.query = FakeQuery(responses)

    def table(self, name):
        return self.query

    def rpc(self, function, params):
        self.query.calls.append(("rpc", (function, params), {}))
        return self.query


def _sold_session() -> RecordingSession:
    return RecordingSession(
        session_id=uuid4(),
        user_id=uuid4(),
        mode=RecordingMode.SILENT,
        started_at=STARTED,
        label="Garage tour",
        status=SessionStatus.COMPLETED,
        data_sale_status=DataSaleStatus.SOLD,
        duration_minutes=Decimal("12.50"),
        data_size_mb=Decimal("562.5"),
        estimated_earnings=Decimal("1.50"),
        actual_earnings=Decimal("10.00"),
        user_payout=Decimal("3.00"),
        platform_revenue=Decimal("7.00"),
        storage_key="recordings/2025-01-01/x/garage-tour.mp4",
        ended_at=STARTED,
        sold_at=STARTED,
        sale_rate_version=3,
    )


def test_session_row_mapping_preserves_fields() -> None:
    session = _sold_session()

    row = _session_to_row(session)

    assert row["duration_minutes"] == "12.50"
    assert row["started_at_utc"] == "2025-01-01T12:00:00+00:00"
    assert _row_to_session(row) == session


def test_session_row_accepts_zulu_timestamps() -> None:
    row = _session_to_row(_sold_session())
    row["sold_at_utc"] = "2025-01-01T12:00:00Z"

    assert _row_to_session(row).sold_at == STARTED


def test_payout_row_mapping_preserves_funding_relation() -> None:
    funded = frozenset({uuid4(), uuid4()})
    payout = Payout(
        payout_id=uuid4(),
        user_id=uuid4(),
        amount=Decimal("25.00"),
        method=PayoutMethod.STRIPE,
        created_at=STARTED,
        status=PayoutStatus.COMPLETED,
        completed_at=STARTED,
        transfer_ref="tr_mock_1",
        funded_session_ids=funded,
    )

    assert _row_to_payout(_payout_to_row(payout)) == payout


def test_guarded_write_failure_maps_to_typed_error() -> None:
    client = FakeClient([{"success": False, "error": "INVALID_STATE", "message": "payout is completed, not pending"}])
    store = SupabaseLedgerStore(client=client)
    payout = Payout.request(user_id=uuid4(), amount=Decimal("5.00"), method=PayoutMethod.BANK, created_at=STARTED)

    with pytest.raises(InvalidStateError, match="payout is completed, not pending"):
        store.transition_payout(payout.rejected(), expected=PayoutStatus.PENDING)

    assert client.query.calls[0][1][0] == "transition_payout"


def test_guarded_write_result_raised_as_api_error_is_inspected() -> None:
    client = FakeClient([APIError({"success": True})])
    store = SupabaseLedgerStore(client=client)
    payout = Payout.request(user_id=uuid4(), amount=Decimal("5.00"), method=PayoutMethod.BANK, created_at=STARTED)

    assert store.transition_payout(payout.claimed(), expected=PayoutStatus.PENDING).status is PayoutStatus.PROCESSING


def test_commit_settlement_returns_sessions_chosen_by_the_database() -> None:
    funded = uuid4()
    client = FakeClient([{"success": True, "funded_session_ids": [str(funded)]}])
    store = SupabaseLedgerStore(client=client)
    payout = Payout.request(user_id=uuid4(), amount=Decimal("5.00"), method=PayoutMethod.BANK, created_at=STARTED)
    completed = payout.claimed().completed(transfer_ref="tr_1", completed_at=STARTED, funded_session_ids=frozenset())

    settled = store.commit_settlement(completed)

    assert settled.funded_session_ids == frozenset({funded})
    assert settled.status is PayoutStatus.COMPLETED
    function, params = client.query.calls[0][1]
    assert function == "commit_payout_settlement"
    assert set(params) == {"p_payout"}


def test_reserve_payout_over_balance_is_invalid_argument() -> None:
    client = FakeClient([
        {"success": False, "error": "INVALID_ARGUMENT", "message": "payout amount 9.00 exceeds available balance 6.00"}
    ])
    store = SupabaseLedgerStore(client=client)
    payout = Payout.request(user_id=uuid4(), amount=Decimal("9.00"), method=PayoutMethod.BANK, created_at=STARTED)

    with pytest.raises(InvalidArgumentError, match="exceeds available balance"):
        store.reserve_payout(payout)

    assert client.query.calls[0][1][0] == "reserve_payout"


def test_reserve_payout_returns_payout_stored_under_same_key() -> None:
    user = uuid4()
    earlier = Payout.request(
        user_id=user, amount=Decimal("5.00"), method=PayoutMethod.BANK, created_at=STARTED, idempotency_key="k1"
    )
    client = FakeClient([{"success": True, "payout_id": str(earlier.payout_id)}, [_payout_to_row(earlier)]])
    store = SupabaseLedgerStore(client=client)
    retry = Payout.request(
        user_id=user, amount=Decimal("5.00"), method=PayoutMethod.BANK, created_at=STARTED, idempotency_key="k1"
    )

    assert store.reserve_payout(retry) == earlier


def test_save_session_reports_concurrent_modification() -> None:
    session = _sold_session()
    client = FakeClient([[], [_session_to_row(session)]])
    store = SupabaseLedgerStore(client=client)

    with pytest.raises(InvalidStateError):
        store.save_session(session.paid_out(uuid4()), expected=session)

    assert ("eq", ("data_sale_status", "sold"), {}) in client.query.calls


def test_save_session_reports_missing_row() -> None:
    session = _sold_session()
    client = FakeClient([[], []])
    store = SupabaseLedgerStore(client=client)

    with pytest.raises(NotFoundError):
        store.save_session(session.paid_out(uuid4()), expected=session)
