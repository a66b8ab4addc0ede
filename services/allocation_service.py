"""
Allocation service for selling recorded sessions.

Handles:
- Selling an ad-hoc selection of sessions for one total price
- Selling a data package (its member sessions plus the package itself)
- All-or-nothing commit: every session update (and the package update) is
  written in one guarded store transaction, or nothing is written

The arithmetic lives in domain/allocation.py; this module resolves ids,
fetches the rate config once for the request, and commits the result.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import UUID

from domain.allocation import AllocationResult, allocate_sale, apply_allocation
from domain.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from domain.money import to_decimal
from domain.package import DataPackage
from domain.rate_config import RateConfig
from domain.session import RecordingSession
from domain.time import utc_now
from repositories.store import LedgerStore
from services.package_service import get_package
from services.rate_config_service import get_rates

logger = logging.getLogger(__name__)


def _load_sessions(store: LedgerStore, session_ids: Sequence[UUID]) -> List[RecordingSession]:
    """Resolve ids in the caller's order; every id must exist."""

    if not session_ids:
        raise InvalidArgumentError("session_ids must contain at least one session")
    if len(set(session_ids)) != len(session_ids):
        raise InvalidArgumentError("session_ids contains duplicates")

    by_id = {s.session_id: s for s in store.list_sessions(session_ids=session_ids)}
    missing = [str(sid) for sid in session_ids if sid not in by_id]
    if missing:
        raise NotFoundError(f"sessions not found: {', '.join(missing)}")
    return [by_id[sid] for sid in session_ids]


def _validate_price(price: Decimal) -> Decimal:
    value = to_decimal(price)
    if value <= 0:
        raise InvalidArgumentError(f"sale price must be > 0, got {value}")
    return value


def _allocate_and_commit(
    store: LedgerStore,
    sessions: Sequence[RecordingSession],
    total_sale_price: Decimal,
    buyer_ref: Optional[str],
    rates: RateConfig,
    package: Optional[DataPackage] = None,
) -> AllocationResult:
    sold_at = utc_now()
    result = allocate_sale(
        sessions,
        total_sale_price,
        rates,
        sold_at=sold_at,
        buyer_ref=buyer_ref,
        package_id=package.package_id if package is not None else None,
    )
    sold_sessions = apply_allocation(sessions, result)
    sold_package = (
        package.sold(sale_price=result.total_sale_price, buyer_ref=buyer_ref, sold_at=sold_at)
        if package is not None
        else None
    )

    store.commit_sale(sold_sessions, sold_package)

    logger.info(
        "Sold %d sessions for %s (users %s, platform %s, rounding %s, rates v%s)%s",
        result.session_count,
        result.total_sale_price,
        result.total_user_payout,
        result.total_platform_revenue,
        result.rounding_difference,
        result.rate_version,
        f" as package {package.package_id}" if package is not None else "",
    )
    return result


def sell_sessions(
    store: LedgerStore,
    session_ids: Sequence[UUID],
    total_sale_price: Decimal,
    buyer_ref: Optional[str] = None,
    rates: Optional[RateConfig] = None,
) -> AllocationResult:
    """
    Sell sessions together and distribute the price proportionally by duration.

    Process:
    1. Validate the price and resolve every session id
    2. Allocate shares by duration and split each by its session's mode
    3. Commit all sold sessions atomically (re-checked as `uploaded` inside
       the transaction)

    Raises:
        InvalidArgumentError: empty/duplicate ids, price <= 0, zero total duration.
        NotFoundError: an id does not resolve.
        InvalidStateError: a session is not `uploaded` (including concurrent sales).
    """

    price = _validate_price(total_sale_price)
    sessions = _load_sessions(store, session_ids)
    return _allocate_and_commit(store, sessions, price, buyer_ref, rates or get_rates(store))


def sell_package(
    store: LedgerStore,
    package_id: UUID,
    sale_price: Decimal,
    buyer_ref: Optional[str] = None,
    rates: Optional[RateConfig] = None,
) -> AllocationResult:
    """
    Sell a package: allocate over its member sessions and mark it sold.

    Session updates and the package's sold transition commit together.

    Raises:
        NotFoundError: unknown package or missing member session.
        InvalidStateError: package not open, or a member session not `uploaded`.
        InvalidArgumentError: sale_price <= 0 or zero total duration.
    """

    price = _validate_price(sale_price)
    package = get_package(store, package_id)
    if not package.is_open:
        raise InvalidStateError(f"package {package_id} is {package.status.value}, not open")

    sessions = _load_sessions(store, sorted(package.session_ids, key=str))
    return _allocate_and_commit(
        store, sessions, price, buyer_ref, rates or get_rates(store), package=package
    )


__all__ = ["sell_sessions", "sell_package"]
