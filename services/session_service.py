"""
Session service: recording-session lifecycle.

Handles:
- Starting a session for a recording client
- Duration updates while recording (size and estimate recomputed)
- Ending a session and queueing it for upload
- Upload confirmation from the storage subsystem

State rules live on RecordingSession (domain/session.py); this module loads,
delegates and persists.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from domain.errors import NotFoundError
from domain.rate_config import RateConfig, RecordingMode
from domain.session import DataSaleStatus, RecordingSession
from domain.time import utc_now
from repositories.store import LedgerStore
from services.rate_config_service import get_rates

logger = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"\s+")


def get_session(store: LedgerStore, session_id: UUID) -> RecordingSession:
    """Load a session or raise NotFoundError."""

    session = store.get_session(session_id)
    if session is None:
        raise NotFoundError(f"session {session_id} not found")
    return session


def start_session(
    store: LedgerStore,
    user_id: UUID,
    mode: RecordingMode,
    label: Optional[str] = None,
) -> RecordingSession:
    """Create a session in `recording` state with every numeric field at zero."""

    session = RecordingSession.start(user_id=user_id, mode=mode, started_at=utc_now(), label=label)
    store.insert_session(session)
    logger.info("Session %s started for user %s (%s)", session.session_id, user_id, mode.value)
    return session


def update_duration(
    store: LedgerStore,
    session_id: UUID,
    elapsed_minutes: Decimal,
    rates: Optional[RateConfig] = None,
) -> RecordingSession:
    """
    Record the elapsed duration of a recording session.

    Args:
        rates: Rate config for this request; fetched from the store when omitted.

    Raises:
        NotFoundError: unknown session.
        InvalidStateError: the session is no longer recording.
        InvalidArgumentError: negative or decreasing duration.
    """

    session = get_session(store, session_id)
    updated = session.with_duration(elapsed_minutes, rates or get_rates(store))
    return store.save_session(updated, expected=session)


def end_session(
    store: LedgerStore,
    session_id: UUID,
    ended_at: Optional[datetime] = None,
) -> RecordingSession:
    """
    End a recording: recording -> completed, data_sale_status = pending_upload.

    Re-ending an already completed session raises InvalidStateError.
    """

    session = get_session(store, session_id)
    ended = store.save_session(session.ended(ended_at or utc_now()), expected=session)
    logger.info(
        "Session %s ended after %s minutes; queued for upload",
        session_id,
        ended.duration_minutes,
    )
    return ended


def build_storage_key(session: RecordingSession, on_date: Optional[date] = None) -> str:
    """
    Storage key the upload subsystem should use for a session's recording.

    Format: recordings/<YYYY-MM-DD>/<session_id>/<label-slug>.mp4
    """

    day = (on_date or utc_now().date()).isoformat()
    slug = _SLUG_PATTERN.sub("-", session.label.strip().lower()) or "recording"
    return f"recordings/{day}/{session.session_id}/{slug}.mp4"


def mark_uploaded(store: LedgerStore, session_id: UUID, storage_key: str) -> RecordingSession:
    """
    Upload callback: pending_upload|uploaded -> uploaded, recording the key.

    Raises:
        NotFoundError: unknown session.
        InvalidArgumentError: empty storage key.
        InvalidStateError: session still recording, or already sold/paid out.
    """

    session = get_session(store, session_id)
    uploaded = store.save_session(session.uploaded(storage_key), expected=session)
    logger.info("Session %s uploaded to %s", session_id, uploaded.storage_key)
    return uploaded


def list_user_sessions(store: LedgerStore, user_id: UUID) -> List[RecordingSession]:
    """All sessions of a user, newest first."""

    return store.list_sessions(user_id=user_id)


def list_sessions(
    store: LedgerStore,
    *,
    user_id: Optional[UUID] = None,
    data_sale_status: Optional[DataSaleStatus] = None,
) -> List[RecordingSession]:
    return store.list_sessions(user_id=user_id, data_sale_status=data_sale_status)


__all__ = [
    "get_session",
    "start_session",
    "update_duration",
    "end_session",
    "build_storage_key",
    "mark_uploaded",
    "list_user_sessions",
    "list_sessions",
]
