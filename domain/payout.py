"""
Domain: Payouts and payee profiles.

Payout lifecycle:
    pending -> processing -> completed
    pending -> processing -> pending   (payment processor failure, retryable)
    pending -> rejected                (terminal)

Rules:
- Completing is one-way: only a `processing` payout (claimed from `pending`)
  can complete, so a payout can never be settled twice.
- Rejection is legal only from `pending`.
- A payout records the sessions it funded (its funding relation) when it
  completes.

`failed` exists for records written by operators or imported from elsewhere;
the ledger itself never moves a payout to `failed` (processor failures return
the payout to `pending`).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence
from uuid import UUID, uuid4

from .errors import InvalidArgumentError, InvalidStateError
from .money import ZERO, round_currency
from .session import DataSaleStatus, RecordingSession
from .time import require_utc_timestamp


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


class PayoutMethod(str, Enum):
    NONE = "none"
    STRIPE = "stripe"
    BANK = "bank"


@dataclass(frozen=True, slots=True)
class Payee:
    """A user's payout profile: how and where their money is sent."""

    user_id: UUID
    payout_method: PayoutMethod = PayoutMethod.NONE
    destination_ref: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def has_method(self) -> bool:
        return self.payout_method is not PayoutMethod.NONE


@dataclass(frozen=True, slots=True)
class Payout:
    payout_id: UUID
    user_id: UUID
    amount: Decimal
    method: PayoutMethod
    created_at: datetime
    status: PayoutStatus = PayoutStatus.PENDING
    idempotency_key: Optional[str] = None
    completed_at: Optional[datetime] = None
    transfer_ref: Optional[str] = None
    rejection_reason: Optional[str] = None
    funded_session_ids: FrozenSet[UUID] = frozenset()

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.completed_at is not None:
            require_utc_timestamp("completed_at", self.completed_at)
        if self.amount <= 0:
            raise InvalidArgumentError(f"payout amount must be > 0, got {self.amount}")

    @staticmethod
    def request(
        *,
        user_id: UUID,
        amount: Decimal,
        method: PayoutMethod,
        created_at: datetime,
        idempotency_key: Optional[str] = None,
    ) -> "Payout":
        return Payout(
            payout_id=uuid4(),
            user_id=user_id,
            amount=round_currency(amount),
            method=method,
            created_at=created_at,
            idempotency_key=idempotency_key,
        )

    @property
    def is_open(self) -> bool:
        """Pending or processing payouts still reserve part of the user's balance."""

        return self.status in (PayoutStatus.PENDING, PayoutStatus.PROCESSING)

    def _require(self, expected: PayoutStatus) -> None:
        if self.status is not expected:
            raise InvalidStateError(f"payout is {self.status.value}, not {expected.value}")

    def claimed(self) -> "Payout":
        self._require(PayoutStatus.PENDING)
        return replace(self, status=PayoutStatus.PROCESSING)

    def released(self) -> "Payout":
        """Return a claimed payout to pending after a failed transfer."""

        self._require(PayoutStatus.PROCESSING)
        return replace(self, status=PayoutStatus.PENDING)

    def completed(
        self,
        *,
        transfer_ref: str,
        completed_at: datetime,
        funded_session_ids: FrozenSet[UUID],
    ) -> "Payout":
        self._require(PayoutStatus.PROCESSING)
        return replace(
            self,
            status=PayoutStatus.COMPLETED,
            transfer_ref=transfer_ref,
            completed_at=completed_at,
            funded_session_ids=frozenset(funded_session_ids),
        )

    def rejected(self, reason: Optional[str] = None) -> "Payout":
        self._require(PayoutStatus.PENDING)
        return replace(self, status=PayoutStatus.REJECTED, rejection_reason=reason)


def plan_funded_sessions(
    sessions: Sequence[RecordingSession],
    payouts: Sequence[Payout],
    settling: Payout,
) -> List[RecordingSession]:
    """
    Choose which of a user's sold sessions a settling payout moves to paid_out.

    Credit available = all completed payouts (plus the one settling now) minus
    what already paid_out sessions consumed. Sold sessions are funded oldest
    sale first, each only when the remaining credit covers its whole
    user_payout; funding stops at the first session that is not covered.
    """

    credit = settling.amount + sum(
        (p.amount for p in payouts if p.status is PayoutStatus.COMPLETED and p.payout_id != settling.payout_id),
        ZERO,
    )
    credit -= sum(
        (s.user_payout for s in sessions if s.data_sale_status is DataSaleStatus.PAID_OUT),
        ZERO,
    )

    sold = sorted(
        (s for s in sessions if s.data_sale_status is DataSaleStatus.SOLD),
        key=lambda s: (s.sold_at, str(s.session_id)),
    )
    funded: List[RecordingSession] = []
    for session in sold:
        if session.user_payout > credit:
            break
        credit -= session.user_payout
        funded.append(session)
    return funded


__all__ = ["PayoutStatus", "PayoutMethod", "Payee", "Payout", "plan_funded_sessions"]
