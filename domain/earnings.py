"""
Domain: Earnings rollups (pure, read-only).

Summaries are derived views built from session and payout records on every
call. They are never stored and never mutated directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Sequence
from uuid import UUID

from .money import ZERO, round_currency, round_tenth, sum_currency
from .payout import Payout, PayoutStatus
from .session import DataSaleStatus, RecordingSession, SessionStatus

_MB_PER_GB = Decimal("1024")
_MINUTES_PER_HOUR = Decimal("60")


@dataclass(frozen=True, slots=True)
class EarningsSummary:
    user_id: UUID
    session_count: int
    total_estimated: Decimal
    total_actual_earned: Decimal
    total_user_payouts: Decimal
    total_platform_revenue: Decimal
    paid_out: Decimal
    pending_payout: Decimal
    total_data_gb: Decimal
    total_hours: Decimal


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total_users: int
    total_sessions: int
    sessions_by_sale_status: Dict[str, int]
    total_data_mb: Decimal
    total_data_gb: Decimal
    total_hours: Decimal
    total_estimated: Decimal
    total_actual_sales: Decimal
    total_user_payouts: Decimal
    total_platform_revenue: Decimal
    total_payouts: int
    completed_payout_amount: Decimal
    pending_payout_amount: Decimal


def _completed(sessions: Sequence[RecordingSession]) -> list[RecordingSession]:
    return [s for s in sessions if s.status is SessionStatus.COMPLETED]


def _gb(total_mb: Decimal) -> Decimal:
    return round_currency(total_mb / _MB_PER_GB)


def _hours(total_minutes: Decimal) -> Decimal:
    return round_tenth(total_minutes / _MINUTES_PER_HOUR)


def summarize_user_earnings(
    user_id: UUID,
    sessions: Sequence[RecordingSession],
    payouts: Sequence[Payout],
) -> EarningsSummary:
    """
    Roll up one user's completed sessions and payouts.

    pending_payout = max(0, total_user_payouts - paid_out), where paid_out is
    the sum of completed payouts only.
    """

    completed = _completed([s for s in sessions if s.user_id == user_id])
    total_user_payouts = sum_currency(s.user_payout for s in completed)
    paid_out = sum_currency(
        p.amount for p in payouts if p.user_id == user_id and p.status is PayoutStatus.COMPLETED
    )

    return EarningsSummary(
        user_id=user_id,
        session_count=len(completed),
        total_estimated=sum_currency(s.estimated_earnings for s in completed),
        total_actual_earned=sum_currency(s.actual_earnings for s in completed),
        total_user_payouts=total_user_payouts,
        total_platform_revenue=sum_currency(s.platform_revenue for s in completed),
        paid_out=paid_out,
        pending_payout=max(ZERO, total_user_payouts - paid_out),
        total_data_gb=_gb(sum((s.data_size_mb for s in completed), ZERO)),
        total_hours=_hours(sum((s.duration_minutes for s in completed), ZERO)),
    )


def available_for_payout(summary: EarningsSummary, payouts: Sequence[Payout]) -> Decimal:
    """Pending payout balance not yet reserved by pending/processing requests."""

    reserved = sum_currency(p.amount for p in payouts if p.user_id == summary.user_id and p.is_open)
    return max(ZERO, summary.pending_payout - reserved)


def summarize_platform(
    sessions: Sequence[RecordingSession],
    payouts: Sequence[Payout],
) -> DashboardSummary:
    completed = _completed(sessions)
    by_status = {status.value: 0 for status in DataSaleStatus}
    for session in completed:
        if session.data_sale_status is not None:
            by_status[session.data_sale_status.value] += 1

    total_mb = sum((s.data_size_mb for s in completed), ZERO)

    return DashboardSummary(
        total_users=len({s.user_id for s in sessions} | {p.user_id for p in payouts}),
        total_sessions=len(completed),
        sessions_by_sale_status=by_status,
        total_data_mb=round_tenth(total_mb),
        total_data_gb=_gb(total_mb),
        total_hours=_hours(sum((s.duration_minutes for s in completed), ZERO)),
        total_estimated=sum_currency(s.estimated_earnings for s in completed),
        total_actual_sales=sum_currency(s.actual_earnings for s in completed),
        total_user_payouts=sum_currency(s.user_payout for s in completed),
        total_platform_revenue=sum_currency(s.platform_revenue for s in completed),
        total_payouts=len(payouts),
        completed_payout_amount=sum_currency(
            p.amount for p in payouts if p.status is PayoutStatus.COMPLETED
        ),
        pending_payout_amount=sum_currency(
            p.amount for p in payouts if p.status is PayoutStatus.PENDING
        ),
    )


__all__ = [
    "EarningsSummary",
    "DashboardSummary",
    "summarize_user_earnings",
    "available_for_payout",
    "summarize_platform",
]
