"""
Session API Endpoints.

Endpoints used by the recording client (start, duration updates, end) and by
the upload subsystem (upload confirmation).
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from api.errors import to_http_exception
from api.models import (
    MarkUploadedRequest,
    SessionListResponse,
    SessionResponse,
    StartSessionRequest,
    UpdateDurationRequest,
)
from domain.session import RecordingSession
from repositories.store import LedgerStore
from services.session_service import (
    build_storage_key,
    end_session,
    get_session,
    list_user_sessions,
    mark_uploaded,
    start_session,
    update_duration,
)

router = APIRouter()


def _session_response(session: RecordingSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        user_id=session.user_id,
        mode=session.mode.value,
        label=session.label,
        status=session.status.value,
        data_sale_status=session.data_sale_status.value if session.data_sale_status else None,
        duration_minutes=session.duration_minutes,
        data_size_mb=session.data_size_mb,
        estimated_earnings=session.estimated_earnings,
        actual_earnings=session.actual_earnings,
        user_payout=session.user_payout,
        platform_revenue=session.platform_revenue,
        storage_key=session.storage_key,
        started_at=session.started_at,
        ended_at=session.ended_at,
        sold_at=session.sold_at,
        sale_rate_version=session.sale_rate_version,
        payout_id=session.payout_id,
    )


@router.post(
    "/users/{user_id}/sessions",
    response_model=SessionResponse,
    status_code=201,
    summary="Start Recording Session",
    description="Create a session in `recording` state for the given user."
)
def start_recording_session(
    user_id: UUID,
    request: StartSessionRequest,
    store: LedgerStore = Depends(get_store),
):
    """
    Start a new recording session.

    **Example request:**
    ```json
    {"mode": "narrated", "label": "Kitchen walkthrough"}
    ```
    """
    try:
        session = start_session(store, user_id, request.mode, request.label)
        return _session_response(session)
    except Exception as e:
        raise to_http_exception(e, "start session")


@router.put(
    "/sessions/{session_id}/duration",
    response_model=SessionResponse,
    summary="Update Session Duration",
    description="Report elapsed minutes for a recording session; size and estimate are recomputed."
)
def update_session_duration(
    session_id: UUID,
    request: UpdateDurationRequest,
    store: LedgerStore = Depends(get_store),
):
    """
    Update the elapsed duration of a session that is still recording.

    Durations never decrease. A completed session returns 409.
    """
    try:
        session = update_duration(store, session_id, request.elapsed_minutes)
        return _session_response(session)
    except Exception as e:
        raise to_http_exception(e, "update duration")


@router.post(
    "/sessions/{session_id}/end",
    response_model=SessionResponse,
    summary="End Recording Session",
    description="Complete a recording session and queue it for upload."
)
def end_recording_session(session_id: UUID, store: LedgerStore = Depends(get_store)):
    try:
        session = end_session(store, session_id)
        return _session_response(session)
    except Exception as e:
        raise to_http_exception(e, "end session")


@router.post(
    "/sessions/{session_id}/uploaded",
    response_model=SessionResponse,
    summary="Confirm Upload",
    description="Mark a completed session's recording as uploaded to storage."
)
def confirm_session_upload(
    session_id: UUID,
    request: MarkUploadedRequest,
    store: LedgerStore = Depends(get_store),
):
    """
    Upload callback from the storage subsystem.

    When `storage_key` is omitted the conventional key
    `recordings/<date>/<session_id>/<label>.mp4` is recorded.
    """
    try:
        storage_key = request.storage_key
        if storage_key is None:
            storage_key = build_storage_key(get_session(store, session_id))
        session = mark_uploaded(store, session_id, storage_key)
        return _session_response(session)
    except Exception as e:
        raise to_http_exception(e, "mark session uploaded")


@router.get(
    "/users/{user_id}/sessions",
    response_model=SessionListResponse,
    summary="List User Sessions",
    description="All sessions of a user, newest first."
)
def get_user_sessions(user_id: UUID, store: LedgerStore = Depends(get_store)):
    try:
        sessions = list_user_sessions(store, user_id)
        return SessionListResponse(
            items=[_session_response(s) for s in sessions],
            total_count=len(sessions),
        )
    except Exception as e:
        raise to_http_exception(e, "list sessions")
