"""
Tests for `services/csv_export_service.py`.

Covers:
- Formula characters are stripped from free-text fields and logged.
- The manifest lists completed sessions with their sale amounts.
"""

from __future__ import annotations

import csv
import logging
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from domain.errors import NotFoundError
from domain.rate_config import RecordingMode
from services.allocation_service import sell_sessions
from services.csv_export_service import MANIFEST_HEADER, export_manifest, sanitize_csv_field
from services.session_service import end_session, start_session


def _rows(content: str):
    return list(csv.reader(StringIO(content)))


def test_sanitize_strips_formula_characters(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.csv_export_service"):
        assert sanitize_csv_field("=HYPERLINK(\"x\")", "label") == "HYPERLINK(\"x\")"
        assert sanitize_csv_field("@+-SUM(1)", "label") == "SUM(1)"

    assert len(caplog.records) == 2
    assert "label" in caplog.records[0].getMessage()


def test_sanitize_leaves_normal_text_alone(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.csv_export_service"):
        assert sanitize_csv_field("Kitchen walkthrough", "label") == "Kitchen walkthrough"
        assert sanitize_csv_field(None, "storage_key") == ""

    assert caplog.records == []


def test_manifest_lists_completed_sessions(store, record_session, user_id: UUID) -> None:
    sold = record_session(user_id, "10")
    pending = record_session(user_id, "5", RecordingMode.SILENT, upload=False)
    start_session(store, user_id, RecordingMode.NARRATED)
    sell_sessions(store, [sold.session_id], Decimal("3.00"))

    rows = _rows(export_manifest(store))

    assert rows[0] == MANIFEST_HEADER
    by_id = {row[0]: dict(zip(MANIFEST_HEADER, row)) for row in rows[1:]}
    assert set(by_id) == {str(sold.session_id), str(pending.session_id)}

    sold_row = by_id[str(sold.session_id)]
    assert sold_row["Sale Status"] == "sold"
    assert sold_row["Sale Amount"] == "3.00"
    assert sold_row["User Payout"] == "1.80"
    assert sold_row["Platform Revenue"] == "1.20"
    assert sold_row["Size (MB)"] == "450.0"

    pending_row = by_id[str(pending.session_id)]
    assert pending_row["Sale Status"] == "pending_upload"
    assert pending_row["Sale Amount"] == ""
    assert pending_row["Storage Key"] == ""


def test_manifest_sanitizes_labels(store, user_id: UUID) -> None:
    session = start_session(store, user_id, RecordingMode.NARRATED, label="=cmd|'/c calc'!A0")
    end_session(store, session.session_id)

    rows = _rows(export_manifest(store, [session.session_id]))

    assert rows[1][2] == "cmd|'/c calc'!A0"


def test_manifest_for_unknown_session_is_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        export_manifest(store, [uuid4()])
