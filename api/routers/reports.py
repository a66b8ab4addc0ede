"""
Reporting API Endpoints.

User earnings, the admin dashboard and the CSV session manifest.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_store
from api.errors import to_http_exception
from api.models import DashboardResponse, EarningsSummaryResponse
from repositories.store import LedgerStore
from services.csv_export_service import export_manifest
from services.earnings_service import (
    get_available_for_payout,
    get_platform_dashboard,
    get_user_earnings,
)

router = APIRouter()


@router.get(
    "/users/{user_id}/earnings",
    response_model=EarningsSummaryResponse,
    summary="Get User Earnings",
    description="Estimated, earned, paid out and pending amounts for one user."
)
def get_earnings(user_id: UUID, store: LedgerStore = Depends(get_store)):
    try:
        summary = get_user_earnings(store, user_id)
        available = get_available_for_payout(store, user_id)
        return EarningsSummaryResponse(
            user_id=summary.user_id,
            session_count=summary.session_count,
            total_estimated=summary.total_estimated,
            total_actual_earned=summary.total_actual_earned,
            total_user_payouts=summary.total_user_payouts,
            total_platform_revenue=summary.total_platform_revenue,
            paid_out=summary.paid_out,
            pending_payout=summary.pending_payout,
            available_for_payout=available,
            total_data_gb=summary.total_data_gb,
            total_hours=summary.total_hours,
        )
    except Exception as e:
        raise to_http_exception(e, "get earnings")


@router.get(
    "/admin/dashboard",
    response_model=DashboardResponse,
    summary="Platform Dashboard"
)
def get_dashboard(store: LedgerStore = Depends(get_store)):
    try:
        dashboard = get_platform_dashboard(store)
        return DashboardResponse(
            total_users=dashboard.total_users,
            total_sessions=dashboard.total_sessions,
            sessions_by_sale_status=dashboard.sessions_by_sale_status,
            total_data_mb=dashboard.total_data_mb,
            total_data_gb=dashboard.total_data_gb,
            total_hours=dashboard.total_hours,
            total_estimated=dashboard.total_estimated,
            total_actual_sales=dashboard.total_actual_sales,
            total_user_payouts=dashboard.total_user_payouts,
            total_platform_revenue=dashboard.total_platform_revenue,
            total_payouts=dashboard.total_payouts,
            completed_payout_amount=dashboard.completed_payout_amount,
            pending_payout_amount=dashboard.pending_payout_amount,
        )
    except Exception as e:
        raise to_http_exception(e, "build dashboard")


@router.get(
    "/admin/sessions/export",
    summary="Download Session Manifest CSV",
    description="CSV manifest of completed sessions, optionally restricted to given ids.",
    response_class=Response
)
def download_session_manifest(
    session_id: Optional[List[UUID]] = Query(None, description="Repeat to select sessions"),
    store: LedgerStore = Depends(get_store),
):
    """
    Download the session manifest.

    **Example usage:**
    ```
    GET /api/v1/admin/sessions/export?session_id=<uuid1>&session_id=<uuid2>
    ```

    **Security:**
    Free-text fields are stripped of leading formula characters.
    """
    try:
        csv_content = export_manifest(store, session_id)
        return Response(
            content=csv_content,
            media_type="text/csv",
            headers={
                "Content-Disposition": "attachment; filename=session_manifest.csv"
            }
        )
    except Exception as e:
        raise to_http_exception(e, "generate CSV")
