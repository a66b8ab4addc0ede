"""
Payout service for settling accrued user revenue.

Handles:
- Payout destination onboarding through the payment processor
- Payout requests against the user's available balance
- Settlement: claim -> external transfer -> atomic completion
- Rejection of pending requests

Settlement sequence for process_payout():
1. Claim the payout (pending -> processing) with a compare-and-set write.
   Of two concurrent calls only one claims; the other gets InvalidStateError
   and never reaches the processor.
2. Transfer funds with idempotency key "payout:<payout_id>", so a retry after
   an ambiguous failure cannot move money twice.
3. On processor failure, release the claim (processing -> pending) and raise
   ExternalFailureError; the payout stays retryable.
4. On success, complete the payout in one guarded store commit. The store
   chooses the sessions it funds (sold -> paid_out) inside that commit, so
   two settlements for the same user never compete for the same session.

Requests are reserved the same way: the available-balance check and the
insert are a single guarded store write (reserve_payout), so concurrent
requests cannot reserve more than the user has earned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import FrozenSet, List, Optional
from uuid import UUID

from domain.errors import (
    ExternalFailureError,
    InvalidArgumentError,
    InvalidStateError,
    NotConfiguredError,
    NotFoundError,
)
from domain.money import round_currency, to_decimal
from domain.payout import Payee, Payout, PayoutMethod, PayoutStatus
from domain.time import utc_now
from repositories.store import LedgerStore
from services.payment_processor import PaymentProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SettlementResult:
    """Outcome of a successful process_payout()."""

    payout: Payout
    transfer_ref: str
    funded_session_ids: FrozenSet[UUID]


def get_payout(store: LedgerStore, payout_id: UUID) -> Payout:
    payout = store.get_payout(payout_id)
    if payout is None:
        raise NotFoundError(f"payout {payout_id} not found")
    return payout


def connect_payout_destination(
    store: LedgerStore,
    processor: PaymentProcessor,
    user_id: UUID,
    method: PayoutMethod = PayoutMethod.STRIPE,
) -> Payee:
    """
    Link a user to a processor payout destination.

    An existing destination is reused; only the method is updated.

    Raises:
        InvalidArgumentError: method is `none`.
        ExternalFailureError: the processor could not create a destination.
    """

    if method is PayoutMethod.NONE:
        raise InvalidArgumentError("payout method must not be 'none'")

    existing = store.get_payee(user_id)
    destination_ref = existing.destination_ref if existing is not None else None

    if not destination_ref:
        try:
            destination_ref = processor.create_transfer_destination(user_id)
        except Exception as e:
            logger.warning("Payout destination creation failed for user %s: %s", user_id, e)
            raise ExternalFailureError(f"could not create payout destination: {e}") from e

    payee = Payee(
        user_id=user_id,
        payout_method=method,
        destination_ref=destination_ref,
        updated_at=utc_now(),
    )
    store.save_payee(payee)
    logger.info("User %s connected payout destination %s (%s)", user_id, destination_ref, method.value)
    return payee


def request_payout(
    store: LedgerStore,
    user_id: UUID,
    amount: Decimal,
    idempotency_key: Optional[str] = None,
) -> Payout:
    """
    Create a pending payout request.

    A repeated request carrying the same idempotency key returns the payout
    created by the first request.

    Raises:
        InvalidArgumentError: amount <= 0, or amount above the available
            balance (pending payout minus open requests).
        NotConfiguredError: the user has no payout method.
    """

    value = round_currency(to_decimal(amount))
    if value <= 0:
        raise InvalidArgumentError(f"payout amount must be > 0, got {value}")

    if idempotency_key:
        existing = store.find_payout_by_idempotency_key(user_id, idempotency_key)
        if existing is not None:
            return existing

    payee = store.get_payee(user_id)
    if payee is None or not payee.has_method:
        raise NotConfiguredError(
            f"user {user_id} has no payout method configured; set up a payment method first"
        )

    payout = store.reserve_payout(
        Payout.request(
            user_id=user_id,
            amount=value,
            method=payee.payout_method,
            created_at=utc_now(),
            idempotency_key=idempotency_key or None,
        )
    )
    logger.info("Payout %s of %s requested by user %s", payout.payout_id, payout.amount, user_id)
    return payout


def process_payout(store: LedgerStore, processor: PaymentProcessor, payout_id: UUID) -> SettlementResult:
    """
    Settle a pending payout through the payment processor.

    Raises:
        NotFoundError: unknown payout.
        InvalidStateError: payout not pending (including losing a concurrent claim).
        NotConfiguredError: the user has no linked payout destination.
        ExternalFailureError: the transfer failed; the payout is pending again.
    """

    payout = get_payout(store, payout_id)
    if payout.status is not PayoutStatus.PENDING:
        raise InvalidStateError(f"payout is {payout.status.value}, not pending")

    payee = store.get_payee(payout.user_id)
    if payee is None or not payee.destination_ref:
        raise NotConfiguredError(f"user {payout.user_id} has no linked payout destination")

    claimed = store.transition_payout(payout.claimed(), expected=PayoutStatus.PENDING)
    logger.info("Payout %s claimed for processing", payout_id)

    try:
        transfer_ref = processor.transfer_funds(
            payee.destination_ref, claimed.amount, f"payout:{payout_id}"
        )
    except Exception as e:
        store.transition_payout(claimed.released(), expected=PayoutStatus.PROCESSING)
        logger.warning("Transfer for payout %s failed, returned to pending: %s", payout_id, e)
        raise ExternalFailureError(f"payment processor failed for payout {payout_id}: {e}") from e

    completed = claimed.completed(
        transfer_ref=transfer_ref,
        completed_at=utc_now(),
        funded_session_ids=frozenset(),
    )

    try:
        completed = store.commit_settlement(completed)
    except Exception:
        logger.error(
            "Payout %s transferred as %s but settlement commit failed; payout left processing",
            payout_id,
            transfer_ref,
        )
        raise

    logger.info(
        "Payout %s completed (%s), %d sessions paid out",
        payout_id,
        transfer_ref,
        len(completed.funded_session_ids),
    )
    return SettlementResult(
        payout=completed,
        transfer_ref=transfer_ref,
        funded_session_ids=completed.funded_session_ids,
    )


def reject_payout(store: LedgerStore, payout_id: UUID, reason: Optional[str] = None) -> Payout:
    """
    Reject a pending payout (terminal).

    Raises:
        NotFoundError: unknown payout.
        InvalidStateError: payout not pending.
    """

    payout = get_payout(store, payout_id)
    rejected = store.transition_payout(payout.rejected(reason), expected=PayoutStatus.PENDING)
    logger.info("Payout %s rejected%s", payout_id, f": {reason}" if reason else "")
    return rejected


def list_user_payouts(store: LedgerStore, user_id: UUID) -> List[Payout]:
    """A user's payouts, newest first."""

    return store.list_payouts(user_id=user_id)


def list_payouts(store: LedgerStore, status: Optional[PayoutStatus] = None) -> List[Payout]:
    return store.list_payouts(status=status)


__all__ = [
    "SettlementResult",
    "get_payout",
    "connect_payout_destination",
    "request_payout",
    "process_payout",
    "reject_payout",
    "list_user_payouts",
    "list_payouts",
]
