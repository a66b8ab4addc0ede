"""
Domain: Proportional revenue allocation (pure).

Given a total sale price and the sessions sold together, each session receives
a share proportional to its duration:

    T     = sum(duration(s))
    share = round_half_up(total * duration(s) / T, 0.01)

The share is then split by the session's own recording mode:

    user_payout      = round_half_up(share * user_split, 0.01)
    platform_revenue = share - user_payout

Computing the platform side as the remainder keeps
actual_earnings == user_payout + platform_revenue exact for every session; it
equals round(share * platform_split) except on an exact half-cent tie.

Per-share rounding means sum(share) may differ from the total by up to half a
cent per session. That drift is reported as `rounding_difference` and is never
redistributed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from .errors import InvalidArgumentError, InvalidStateError
from .money import ZERO, round_currency, sum_currency, to_decimal
from .rate_config import RateConfig, RecordingMode
from .session import RecordingSession
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class SessionAllocation:
    """Line item: the portion of a sale assigned to one session."""

    session_id: UUID
    user_id: UUID
    mode: RecordingMode
    duration_minutes: Decimal
    share: Decimal
    user_payout: Decimal
    platform_revenue: Decimal


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """Outcome of one sale across one or more sessions."""

    sold_at: datetime
    total_sale_price: Decimal
    total_minutes: Decimal
    allocations: Tuple[SessionAllocation, ...]
    rate_version: int
    buyer_ref: Optional[str] = None
    package_id: Optional[UUID] = None

    @property
    def session_count(self) -> int:
        return len(self.allocations)

    @property
    def total_allocated(self) -> Decimal:
        return sum_currency(a.share for a in self.allocations)

    @property
    def total_user_payout(self) -> Decimal:
        return sum_currency(a.user_payout for a in self.allocations)

    @property
    def total_platform_revenue(self) -> Decimal:
        return sum_currency(a.platform_revenue for a in self.allocations)

    @property
    def rounding_difference(self) -> Decimal:
        """total_sale_price - sum(share); bounded by 0.005 per session."""

        return self.total_sale_price - self.total_allocated


def _validate_sale(sessions: Sequence[RecordingSession], total_sale_price: Decimal) -> Decimal:
    if not sessions:
        raise InvalidArgumentError("at least one session is required for a sale")
    if total_sale_price <= 0:
        raise InvalidArgumentError(f"sale price must be > 0, got {total_sale_price}")

    seen: set[UUID] = set()
    for session in sessions:
        if session.session_id in seen:
            raise InvalidArgumentError(f"session {session.session_id} is listed more than once")
        seen.add(session.session_id)
        if not session.is_sellable:
            raise InvalidStateError(
                f"session {session.session_id} is "
                f"{session.data_sale_status.value if session.data_sale_status else session.status.value}, "
                "not uploaded"
            )

    total_minutes = sum((s.duration_minutes for s in sessions), ZERO)
    if total_minutes <= 0:
        raise InvalidArgumentError("total duration of the selected sessions is zero")
    return total_minutes


def allocate_sale(
    sessions: Sequence[RecordingSession],
    total_sale_price: Decimal,
    config: RateConfig,
    *,
    sold_at: datetime,
    buyer_ref: Optional[str] = None,
    package_id: Optional[UUID] = None,
) -> AllocationResult:
    """
    Compute the per-session distribution of a sale.

    Raises:
        InvalidArgumentError: empty selection, duplicate ids, non-positive
            price, or zero total duration.
        InvalidStateError: any session is not in the `uploaded` state.
    """

    require_utc_timestamp("sold_at", sold_at)
    total = round_currency(to_decimal(total_sale_price))
    total_minutes = _validate_sale(sessions, total)

    allocations: List[SessionAllocation] = []
    for session in sessions:
        rates = config.rates_for(session.mode)
        share = round_currency(total * session.duration_minutes / total_minutes)
        user_payout = round_currency(share * rates.user_split)
        allocations.append(
            SessionAllocation(
                session_id=session.session_id,
                user_id=session.user_id,
                mode=session.mode,
                duration_minutes=session.duration_minutes,
                share=share,
                user_payout=user_payout,
                platform_revenue=share - user_payout,
            )
        )

    return AllocationResult(
        sold_at=sold_at,
        total_sale_price=total,
        total_minutes=total_minutes,
        allocations=tuple(allocations),
        rate_version=config.version,
        buyer_ref=buyer_ref,
        package_id=package_id,
    )


def apply_allocation(
    sessions: Sequence[RecordingSession], result: AllocationResult
) -> List[RecordingSession]:
    """Return the sold versions of `sessions` carrying their allocated amounts."""

    by_id = {a.session_id: a for a in result.allocations}
    sold: List[RecordingSession] = []
    for session in sessions:
        allocation = by_id[session.session_id]
        sold.append(
            session.sold(
                share=allocation.share,
                user_payout=allocation.user_payout,
                platform_revenue=allocation.platform_revenue,
                sold_at=result.sold_at,
                rate_version=result.rate_version,
            )
        )
    return sold


__all__ = [
    "SessionAllocation",
    "AllocationResult",
    "allocate_sale",
    "apply_allocation",
]
