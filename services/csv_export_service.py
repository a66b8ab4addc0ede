"""
CSV export service for recorded session manifests.

Generates a CSV manifest of completed sessions for data buyers and operators:
identity, label, timing, size, storage location, sale status and split amounts.

Security:
- CSV Injection Prevention: Sanitizes free-text fields to prevent formula execution
- Security Logging: Logs when dangerous characters are stripped
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime
from io import StringIO
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from domain.errors import NotFoundError
from domain.session import RecordingSession, SessionStatus
from repositories.store import LedgerStore

logger = logging.getLogger(__name__)

MANIFEST_HEADER = [
    "Session ID",
    "User ID",
    "Label",
    "Mode",
    "Started At",
    "Ended At",
    "Duration (min)",
    "Size (MB)",
    "Storage Key",
    "Sale Status",
    "Sold At",
    "Sale Amount",
    "User Payout",
    "Platform Revenue",
    "Rate Version",
]


def sanitize_csv_field(value: str | None, field_name: str = "unknown") -> str:
    """
    Sanitize field to prevent CSV injection attacks with security logging.

    Strips leading characters that can trigger formula execution in Excel/Sheets:
    =, +, -, @, tab, carriage return

    Args:
        value: Field value to sanitize
        field_name: Name of the field being sanitized (for logging)

    Returns:
        Sanitized string safe for CSV export

    Example:
        sanitize_csv_field("=HYPERLINK(...)", "label")
        # Returns "HYPERLINK(...)" and logs a warning about the stripped "="

        sanitize_csv_field("Kitchen walkthrough", "label")
        # Returns "Kitchen walkthrough" (unchanged, no logging)
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    original_text = text
    dangerous_chars = {'=', '+', '-', '@', '\t', '\r'}

    stripped_chars = []
    while text and text[0] in dangerous_chars:
        stripped_chars.append(text[0])
        text = text[1:]

    if stripped_chars:
        logger.warning(
            f"CSV injection character(s) stripped from field '{field_name}'",
            extra={
                "field_name": field_name,
                "stripped_characters": "".join(stripped_chars),
                "original_value": original_text[:100],
                "sanitized_value": text[:100],
                "modification_type": "csv_injection_prevention"
            }
        )

    return text


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else ""


def _manifest_row(session: RecordingSession) -> List[str]:
    sold = session.is_sold_or_paid
    return [
        str(session.session_id),
        str(session.user_id),
        sanitize_csv_field(session.label, "label"),
        session.mode.value,
        _iso(session.started_at),
        _iso(session.ended_at),
        str(session.duration_minutes),
        str(session.data_size_mb),
        sanitize_csv_field(session.storage_key, "storage_key"),
        session.data_sale_status.value if session.data_sale_status else "",
        _iso(session.sold_at),
        str(session.actual_earnings) if sold else "",
        str(session.user_payout) if sold else "",
        str(session.platform_revenue) if sold else "",
        str(session.sale_rate_version) if session.sale_rate_version is not None else "",
    ]


def generate_session_manifest_csv(sessions: Iterable[RecordingSession]) -> str:
    """
    Render sessions as CSV content (header row included).

    Returns:
        CSV content as a string

    Example:
        csv_content = generate_session_manifest_csv(sessions)
        return Response(content=csv_content, media_type="text/csv")
    """
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(MANIFEST_HEADER)
    for session in sessions:
        writer.writerow(_manifest_row(session))
    return output.getvalue()


def export_manifest(store: LedgerStore, session_ids: Optional[Sequence[UUID]] = None) -> str:
    """
    Export completed sessions as a CSV manifest.

    Args:
        session_ids: Restrict the export to these sessions; all completed
            sessions when omitted.

    Raises:
        NotFoundError: an explicitly requested session does not exist.
    """
    if session_ids:
        sessions = store.list_sessions(session_ids=session_ids)
        found = {s.session_id for s in sessions}
        missing = [str(sid) for sid in session_ids if sid not in found]
        if missing:
            raise NotFoundError(f"sessions not found: {', '.join(missing)}")
    else:
        sessions = store.list_sessions()

    completed = [s for s in sessions if s.status is SessionStatus.COMPLETED]
    completed.sort(key=lambda s: (s.started_at, str(s.session_id)))
    logger.info("Exporting manifest for %d sessions", len(completed))
    return generate_session_manifest_csv(completed)


__all__ = [
    "MANIFEST_HEADER",
    "sanitize_csv_field",
    "generate_session_manifest_csv",
    "export_manifest",
]
