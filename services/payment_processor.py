"""
Payment processor boundary.

The ledger never moves money itself. It calls an external processor through
this protocol:

- create_transfer_destination(user_id) -> destination reference
  (e.g. a connected payout account id)
- transfer_funds(destination_ref, amount, idempotency_key) -> transfer reference

Implementations must treat `idempotency_key` as a deduplication key: a
repeated call with the same key must not move money twice and should return
the original transfer reference. Any failure is raised as
PaymentProcessorError.

MockPaymentProcessor mirrors the platform's mock mode used when no real
processor is configured: it issues `acct_mock_*` destinations and `tr_mock_*`
transfers without contacting anyone.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Protocol, runtime_checkable
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


class PaymentProcessorError(Exception):
    """Raised by a processor when a destination or transfer cannot be created."""


@runtime_checkable
class PaymentProcessor(Protocol):
    def create_transfer_destination(self, user_id: UUID) -> str: ...

    def transfer_funds(self, destination_ref: str, amount: Decimal, idempotency_key: str) -> str: ...


@dataclass(frozen=True, slots=True)
class TransferRecord:
    destination_ref: str
    amount: Decimal
    idempotency_key: str
    transfer_ref: str


class MockPaymentProcessor:
    """In-process processor that records transfers instead of sending them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_key: Dict[str, TransferRecord] = {}

    @property
    def transfers(self) -> List[TransferRecord]:
        with self._lock:
            return list(self._by_key.values())

    def create_transfer_destination(self, user_id: UUID) -> str:
        return f"acct_mock_{uuid4().hex[:16]}"

    def transfer_funds(self, destination_ref: str, amount: Decimal, idempotency_key: str) -> str:
        if amount <= 0:
            raise PaymentProcessorError(f"transfer amount must be > 0, got {amount}")
        with self._lock:
            existing = self._by_key.get(idempotency_key)
            if existing is not None:
                return existing.transfer_ref
            record = TransferRecord(
                destination_ref=destination_ref,
                amount=amount,
                idempotency_key=idempotency_key,
                transfer_ref=f"tr_mock_{uuid4().hex[:16]}",
            )
            self._by_key[idempotency_key] = record
        logger.info("Mock transfer %s of %s to %s", record.transfer_ref, amount, destination_ref)
        return record.transfer_ref


__all__ = [
    "PaymentProcessor",
    "PaymentProcessorError",
    "MockPaymentProcessor",
    "TransferRecord",
]
