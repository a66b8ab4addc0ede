"""
Check ledger status - sessions by sale status, revenue totals and open payouts.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.payout import PayoutStatus
from repositories.supabase_store import SupabaseLedgerStore
from services.earnings_service import get_platform_dashboard
from services.payout_service import list_payouts


def check_ledger_status():
    """Print the platform dashboard and the payouts waiting for an operator."""

    store = SupabaseLedgerStore()
    dashboard = get_platform_dashboard(store)

    print("=" * 50)
    print("LEDGER STATUS")
    print("=" * 50)
    print(f"Users:                     {dashboard.total_users}")
    print(f"Completed sessions:        {dashboard.total_sessions}")
    print(f"Recorded hours:            {dashboard.total_hours}")
    print(f"Recorded data (GB):        {dashboard.total_data_gb}")
    print("-" * 50)
    for status, count in dashboard.sessions_by_sale_status.items():
        print(f"{status:<27}{count}")
    print("-" * 50)
    print(f"Estimated earnings:        ${dashboard.total_estimated}")
    print(f"Actual sales:              ${dashboard.total_actual_sales}")
    print(f"Owed to users:             ${dashboard.total_user_payouts}")
    print(f"Platform revenue:          ${dashboard.total_platform_revenue}")
    print(f"Paid out:                  ${dashboard.completed_payout_amount}")
    print(f"Pending payouts:           ${dashboard.pending_payout_amount}")
    print("=" * 50)

    pending = list_payouts(store, PayoutStatus.PENDING)
    stuck = list_payouts(store, PayoutStatus.PROCESSING)

    print(f"\nPending payouts: {len(pending)}")
    print("-" * 50)
    for payout in pending:
        print(f"{payout.payout_id}  user {payout.user_id}  ${payout.amount}  requested {payout.created_at.isoformat()}")

    if stuck:
        # Processing payouts need a manual check against the processor.
        print(f"\nPayouts still processing: {len(stuck)}")
        print("-" * 50)
        for payout in stuck:
            print(f"{payout.payout_id}  user {payout.user_id}  ${payout.amount}")


if __name__ == "__main__":
    check_ledger_status()
