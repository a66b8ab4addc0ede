"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides a fresh in-memory ledger with
fixed rates for every test.
"""

import sys
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.rate_config import RateConfig, RecordingMode  # noqa: E402
from repositories.memory_store import InMemoryLedgerStore  # noqa: E402
from services.payment_processor import MockPaymentProcessor  # noqa: E402
from services.session_service import (  # noqa: E402
    build_storage_key,
    end_session,
    mark_uploaded,
    start_session,
    update_duration,
)


@pytest.fixture
def rates() -> RateConfig:
    """Narrated $0.28/min split 60/40, silent $0.12/min split 30/70."""

    return RateConfig(
        version=1,
        narrated_rate=Decimal("0.28"),
        narrated_user_split=Decimal("0.60"),
        narrated_platform_split=Decimal("0.40"),
        silent_rate=Decimal("0.12"),
        silent_user_split=Decimal("0.30"),
        silent_platform_split=Decimal("0.70"),
    )


@pytest.fixture
def store(rates: RateConfig) -> InMemoryLedgerStore:
    ledger = InMemoryLedgerStore()
    ledger.save_rate_config(rates, expected_version=None)
    return ledger


@pytest.fixture
def processor() -> MockPaymentProcessor:
    return MockPaymentProcessor()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def record_session(store: InMemoryLedgerStore):
    """Factory: record, end and (optionally) upload a session of the given length."""

    def _record(
        user: UUID,
        minutes: str,
        mode: RecordingMode = RecordingMode.NARRATED,
        upload: bool = True,
    ):
        session = start_session(store, user, mode)
        update_duration(store, session.session_id, Decimal(minutes))
        session = end_session(store, session.session_id)
        if upload:
            session = mark_uploaded(store, session.session_id, build_storage_key(session))
        return session

    return _record
