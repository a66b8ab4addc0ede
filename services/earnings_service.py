"""
Earnings service: read-only rollups for users and the platform dashboard.

Summaries are recomputed from the store on every call; there is no cache.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from domain.earnings import (
    DashboardSummary,
    EarningsSummary,
    available_for_payout,
    summarize_platform,
    summarize_user_earnings,
)
from repositories.store import LedgerStore


def get_user_earnings(store: LedgerStore, user_id: UUID) -> EarningsSummary:
    """
    Earnings breakdown for one user.

    Example:
        summary = get_user_earnings(store, user_id)
        print(f"Pending payout: ${summary.pending_payout}")
    """

    return summarize_user_earnings(
        user_id,
        store.list_sessions(user_id=user_id),
        store.list_payouts(user_id=user_id),
    )


def get_available_for_payout(store: LedgerStore, user_id: UUID) -> Decimal:
    """Pending payout balance not already reserved by open payout requests."""

    payouts = store.list_payouts(user_id=user_id)
    summary = summarize_user_earnings(user_id, store.list_sessions(user_id=user_id), payouts)
    return available_for_payout(summary, payouts)


def get_platform_dashboard(store: LedgerStore) -> DashboardSummary:
    """Platform-wide counts and sums, partitioned by data sale status."""

    return summarize_platform(store.list_sessions(), store.list_payouts())


__all__ = ["get_user_earnings", "get_available_for_payout", "get_platform_dashboard"]
