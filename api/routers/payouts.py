"""
Payout API Endpoints.

User endpoints for payout destinations and payout requests, and admin
endpoints for listing, processing and rejecting payouts.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_processor, get_store
from api.errors import to_http_exception
from api.models import (
    PayeeResponse,
    PayoutDestinationRequest,
    PayoutListResponse,
    PayoutRequest,
    PayoutResponse,
    RejectPayoutRequest,
    SettlementResponse,
)
from domain.payout import Payout, PayoutStatus
from repositories.store import LedgerStore
from services.payment_processor import PaymentProcessor
from services.payout_service import (
    connect_payout_destination,
    list_payouts,
    list_user_payouts,
    process_payout,
    reject_payout,
    request_payout,
)

router = APIRouter()


def _payout_response(payout: Payout) -> PayoutResponse:
    return PayoutResponse(
        payout_id=payout.payout_id,
        user_id=payout.user_id,
        amount=payout.amount,
        method=payout.method.value,
        status=payout.status.value,
        idempotency_key=payout.idempotency_key,
        transfer_ref=payout.transfer_ref,
        rejection_reason=payout.rejection_reason,
        funded_session_ids=sorted(payout.funded_session_ids, key=str),
        created_at=payout.created_at,
        completed_at=payout.completed_at,
    )


@router.post(
    "/users/{user_id}/payout-destination",
    response_model=PayeeResponse,
    summary="Connect Payout Destination",
    description="Create (or reuse) the user's payout destination at the payment processor."
)
def connect_destination(
    user_id: UUID,
    request: PayoutDestinationRequest,
    store: LedgerStore = Depends(get_store),
    processor: PaymentProcessor = Depends(get_processor),
):
    try:
        payee = connect_payout_destination(store, processor, user_id, request.method)
        return PayeeResponse(
            user_id=payee.user_id,
            payout_method=payee.payout_method.value,
            destination_ref=payee.destination_ref,
            updated_at=payee.updated_at,
        )
    except Exception as e:
        raise to_http_exception(e, "connect payout destination")


@router.post(
    "/users/{user_id}/payouts",
    response_model=PayoutResponse,
    status_code=201,
    summary="Request Payout",
    description="Request a payout of part of the user's pending balance."
)
def create_payout_request(
    user_id: UUID,
    request: PayoutRequest,
    store: LedgerStore = Depends(get_store),
):
    """
    Request a payout.

    **Errors:**
    - 400: amount is not positive or exceeds the available balance
    - 412: no payout method configured

    **Example request:**
    ```json
    {"amount": "25.00", "idempotency_key": "withdraw-2025-01-01"}
    ```
    """
    try:
        payout = request_payout(store, user_id, request.amount, request.idempotency_key)
        return _payout_response(payout)
    except Exception as e:
        raise to_http_exception(e, "request payout")


@router.get(
    "/users/{user_id}/payouts",
    response_model=PayoutListResponse,
    summary="List User Payouts"
)
def get_user_payouts(user_id: UUID, store: LedgerStore = Depends(get_store)):
    try:
        payouts = list_user_payouts(store, user_id)
        return PayoutListResponse(
            items=[_payout_response(p) for p in payouts],
            total_count=len(payouts),
        )
    except Exception as e:
        raise to_http_exception(e, "list payouts")


@router.get(
    "/admin/payouts",
    response_model=PayoutListResponse,
    summary="List All Payouts"
)
def get_all_payouts(
    status: Optional[str] = Query(None, description="Filter by status (e.g. 'pending')"),
    store: LedgerStore = Depends(get_store),
):
    try:
        status_filter = None
        if status:
            try:
                status_filter = PayoutStatus(status)
            except ValueError:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid status. Got '{status}'"
                )

        payouts = list_payouts(store, status_filter)
        return PayoutListResponse(
            items=[_payout_response(p) for p in payouts],
            total_count=len(payouts),
        )
    except Exception as e:
        raise to_http_exception(e, "list payouts")


@router.post(
    "/payouts/{payout_id}/process",
    response_model=SettlementResponse,
    summary="Process Payout",
    description="Transfer funds for a pending payout and mark the sessions it funds as paid out."
)
def process_pending_payout(
    payout_id: UUID,
    store: LedgerStore = Depends(get_store),
    processor: PaymentProcessor = Depends(get_processor),
):
    """
    Settle a pending payout.

    **Errors:**
    - 409: payout is not pending (already processed, rejected or in flight)
    - 412: user has no payout destination
    - 502: payment processor failed; the payout stays pending and can be retried
    """
    try:
        result = process_payout(store, processor, payout_id)
        return SettlementResponse(
            payout=_payout_response(result.payout),
            transfer_ref=result.transfer_ref,
            funded_session_ids=sorted(result.funded_session_ids, key=str),
        )
    except Exception as e:
        raise to_http_exception(e, "process payout")


@router.post(
    "/payouts/{payout_id}/reject",
    response_model=PayoutResponse,
    summary="Reject Payout"
)
def reject_pending_payout(
    payout_id: UUID,
    request: RejectPayoutRequest,
    store: LedgerStore = Depends(get_store),
):
    try:
        return _payout_response(reject_payout(store, payout_id, request.reason))
    except Exception as e:
        raise to_http_exception(e, "reject payout")
