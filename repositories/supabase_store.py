"""
Supabase ledger store (persistence).

This module provides *only* persistence operations for the ledger entities.
Plain reads and single-record writes go through the PostgREST table API.
Every guarded or multi-record write is delegated to a PostgreSQL function
(see sql/ledger_functions.sql) that locks the affected rows
(FOR UPDATE), re-checks their state and applies all changes in one
transaction. Those functions return JSON of the form

    {"success": true}
    {"success": false, "error": "INVALID_STATE", "message": "..."}

(successful results may carry extra keys, e.g. the funded session ids of a
settlement) and this module turns failures back into the typed ledger errors.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError

from domain.errors import InvalidStateError, NotFoundError, error_for_code
from domain.package import DataPackage, PackageStatus
from domain.payout import Payee, Payout, PayoutMethod, PayoutStatus
from domain.rate_config import RateConfig, RecordingMode
from domain.session import DataSaleStatus, RecordingSession, SessionStatus
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import get_supabase

# Supabase table names.
# Keep these aligned with sql/schema.sql.
_SESSIONS_TABLE: str = "sessions"
_PACKAGES_TABLE: str = "data_packages"
_PAYOUTS_TABLE: str = "payouts"
_PAYEES_TABLE: str = "payees"
_RATE_CONFIG_TABLE: str = "rate_config"
_RATE_CONFIG_ID: str = "global"


def _opt_ts(row: Mapping[str, Any], key: str):
    value = row.get(key)
    return parse_utc_datetime(value) if value is not None else None


def _opt_iso(value, *, name: str) -> Optional[str]:
    return to_iso_utc(value, name=name) if value is not None else None


def _opt_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value is not None else None


# ----------------------------------------------------------------------
# Row mapping
# ----------------------------------------------------------------------


def _row_to_rate_config(row: Mapping[str, Any]) -> RateConfig:
    return RateConfig(
        version=int(row["version"]),
        narrated_rate=Decimal(str(row["narrated_rate"])),
        narrated_user_split=Decimal(str(row["narrated_user_split"])),
        narrated_platform_split=Decimal(str(row["narrated_platform_split"])),
        silent_rate=Decimal(str(row["silent_rate"])),
        silent_user_split=Decimal(str(row["silent_user_split"])),
        silent_platform_split=Decimal(str(row["silent_platform_split"])),
        updated_at=_opt_ts(row, "updated_at_utc"),
    )


def _rate_config_to_row(config: RateConfig) -> Dict[str, Any]:
    return {
        "id": _RATE_CONFIG_ID,
        "version": config.version,
        "narrated_rate": str(config.narrated_rate),
        "narrated_user_split": str(config.narrated_user_split),
        "narrated_platform_split": str(config.narrated_platform_split),
        "silent_rate": str(config.silent_rate),
        "silent_user_split": str(config.silent_user_split),
        "silent_platform_split": str(config.silent_platform_split),
        "updated_at_utc": _opt_iso(config.updated_at, name="updated_at"),
    }


def _row_to_session(row: Mapping[str, Any]) -> RecordingSession:
    """Convert a Supabase row into a RecordingSession."""

    sale_status = row.get("data_sale_status")
    rate_version = row.get("sale_rate_version")
    return RecordingSession(
        session_id=UUID(str(row["session_id"])),
        user_id=UUID(str(row["user_id"])),
        mode=RecordingMode(str(row["mode"])),
        label=str(row["label"]),
        status=SessionStatus(str(row["status"])),
        data_sale_status=DataSaleStatus(str(sale_status)) if sale_status else None,
        duration_minutes=Decimal(str(row["duration_minutes"])),
        data_size_mb=Decimal(str(row["data_size_mb"])),
        estimated_earnings=Decimal(str(row["estimated_earnings"])),
        actual_earnings=Decimal(str(row["actual_earnings"])),
        user_payout=Decimal(str(row["user_payout"])),
        platform_revenue=Decimal(str(row["platform_revenue"])),
        storage_key=row.get("storage_key"),
        started_at=parse_utc_datetime(row["started_at_utc"]),
        ended_at=_opt_ts(row, "ended_at_utc"),
        sold_at=_opt_ts(row, "sold_at_utc"),
        sale_rate_version=int(rate_version) if rate_version is not None else None,
        payout_id=_opt_uuid(row.get("payout_id")),
    )


def _session_to_row(session: RecordingSession) -> Dict[str, Any]:
    return {
        "session_id": str(session.session_id),
        "user_id": str(session.user_id),
        "mode": session.mode.value,
        "label": session.label,
        "status": session.status.value,
        "data_sale_status": session.data_sale_status.value if session.data_sale_status else None,
        "duration_minutes": str(session.duration_minutes),
        "data_size_mb": str(session.data_size_mb),
        "estimated_earnings": str(session.estimated_earnings),
        "actual_earnings": str(session.actual_earnings),
        "user_payout": str(session.user_payout),
        "platform_revenue": str(session.platform_revenue),
        "storage_key": session.storage_key,
        "started_at_utc": to_iso_utc(session.started_at, name="started_at"),
        "ended_at_utc": _opt_iso(session.ended_at, name="ended_at"),
        "sold_at_utc": _opt_iso(session.sold_at, name="sold_at"),
        "sale_rate_version": session.sale_rate_version,
        "payout_id": str(session.payout_id) if session.payout_id else None,
    }


def _row_to_package(row: Mapping[str, Any]) -> DataPackage:
    sale_price = row.get("sale_price")
    return DataPackage(
        package_id=UUID(str(row["package_id"])),
        name=str(row["name"]),
        category=str(row["category"]),
        session_ids=frozenset(UUID(str(v)) for v in row.get("session_ids") or []),
        total_size_mb=Decimal(str(row["total_size_mb"])),
        total_duration_minutes=Decimal(str(row["total_duration_minutes"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        status=PackageStatus(str(row["status"])),
        sale_price=Decimal(str(sale_price)) if sale_price is not None else None,
        buyer_ref=row.get("buyer_ref"),
        sold_at=_opt_ts(row, "sold_at_utc"),
    )


def _package_to_row(package: DataPackage) -> Dict[str, Any]:
    return {
        "package_id": str(package.package_id),
        "name": package.name,
        "category": package.category,
        "session_ids": sorted(str(v) for v in package.session_ids),
        "total_size_mb": str(package.total_size_mb),
        "total_duration_minutes": str(package.total_duration_minutes),
        "created_at_utc": to_iso_utc(package.created_at, name="created_at"),
        "status": package.status.value,
        "sale_price": str(package.sale_price) if package.sale_price is not None else None,
        "buyer_ref": package.buyer_ref,
        "sold_at_utc": _opt_iso(package.sold_at, name="sold_at"),
    }


def _row_to_payee(row: Mapping[str, Any]) -> Payee:
    return Payee(
        user_id=UUID(str(row["user_id"])),
        payout_method=PayoutMethod(str(row.get("payout_method") or "none")),
        destination_ref=row.get("destination_ref"),
        updated_at=_opt_ts(row, "updated_at_utc"),
    )


def _row_to_payout(row: Mapping[str, Any]) -> Payout:
    return Payout(
        payout_id=UUID(str(row["payout_id"])),
        user_id=UUID(str(row["user_id"])),
        amount=Decimal(str(row["amount"])),
        method=PayoutMethod(str(row["method"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        status=PayoutStatus(str(row["status"])),
        idempotency_key=row.get("idempotency_key"),
        completed_at=_opt_ts(row, "completed_at_utc"),
        transfer_ref=row.get("transfer_ref"),
        rejection_reason=row.get("rejection_reason"),
        funded_session_ids=frozenset(UUID(str(v)) for v in row.get("funded_session_ids") or []),
    )


def _payout_to_row(payout: Payout) -> Dict[str, Any]:
    return {
        "payout_id": str(payout.payout_id),
        "user_id": str(payout.user_id),
        "amount": str(payout.amount),
        "method": payout.method.value,
        "status": payout.status.value,
        "idempotency_key": payout.idempotency_key,
        "created_at_utc": to_iso_utc(payout.created_at, name="created_at"),
        "completed_at_utc": _opt_iso(payout.completed_at, name="completed_at"),
        "transfer_ref": payout.transfer_ref,
        "rejection_reason": payout.rejection_reason,
        "funded_session_ids": sorted(str(v) for v in payout.funded_session_ids),
    }


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------


class SupabaseLedgerStore:
    """LedgerStore backed by Supabase tables and PostgreSQL functions."""

    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _rows(self, response, action: str) -> List[Mapping[str, Any]]:
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to {action}: {error}")
        return getattr(response, "data", None) or []

    def _call_atomic(self, function: str, params: Dict[str, Any]) -> Mapping[str, Any]:
        """
        Execute a guarded write via a PostgreSQL function and return its
        JSON result.

        Supabase-py raises APIError when a function returns JSON, for success
        and error payloads alike, so both paths are inspected.
        """

        try:
            response = self.client.rpc(function, params).execute()
            error = getattr(response, "error", None)
            if error:
                raise RuntimeError(f"Failed to execute {function}: {error}")
            result = getattr(response, "data", None) or {}
        except APIError as e:
            try:
                result = e.json() if callable(getattr(e, "json", None)) else {}
            except ValueError:
                result = {}
            if not result:
                raise RuntimeError(f"Failed to execute {function}: {e}") from e

        if isinstance(result, list):
            result = result[0] if result else {}
        if result.get("success") is True:
            return result
        raise error_for_code(
            str(result.get("error", "LEDGER_ERROR")),
            str(result.get("message", f"{function} failed")),
        )

    # Rate config ------------------------------------------------------

    def get_rate_config(self) -> Optional[RateConfig]:
        response = (
            self.client.table(_RATE_CONFIG_TABLE)
            .select("*")
            .eq("id", _RATE_CONFIG_ID)
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "fetch rate config")
        return _row_to_rate_config(rows[0]) if rows else None

    def save_rate_config(self, config: RateConfig, *, expected_version: Optional[int]) -> RateConfig:
        self._call_atomic(
            "save_rate_config",
            {"p_config": _rate_config_to_row(config), "p_expected_version": expected_version},
        )
        return config

    # Sessions ---------------------------------------------------------

    def insert_session(self, session: RecordingSession) -> RecordingSession:
        response = self.client.table(_SESSIONS_TABLE).insert(_session_to_row(session)).execute()
        self._rows(response, "insert session")
        return session

    def get_session(self, session_id: UUID) -> Optional[RecordingSession]:
        response = (
            self.client.table(_SESSIONS_TABLE)
            .select("*")
            .eq("session_id", str(session_id))
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "get session")
        return _row_to_session(rows[0]) if rows else None

    def save_session(self, session: RecordingSession, *, expected: RecordingSession) -> RecordingSession:
        query = (
            self.client.table(_SESSIONS_TABLE)
            .update(_session_to_row(session))
            .eq("session_id", str(session.session_id))
            .eq("status", expected.status.value)
            .eq("duration_minutes", str(expected.duration_minutes))
        )
        if expected.data_sale_status is None:
            query = query.is_("data_sale_status", "null")
        else:
            query = query.eq("data_sale_status", expected.data_sale_status.value)

        if not self._rows(query.execute(), "update session"):
            if self.get_session(session.session_id) is None:
                raise NotFoundError(f"session {session.session_id} not found")
            raise InvalidStateError(f"session {session.session_id} was modified concurrently")
        return session

    def list_sessions(
        self,
        *,
        user_id: Optional[UUID] = None,
        data_sale_status: Optional[DataSaleStatus] = None,
        session_ids: Optional[Sequence[UUID]] = None,
    ) -> List[RecordingSession]:
        query = self.client.table(_SESSIONS_TABLE).select("*")
        if user_id is not None:
            query = query.eq("user_id", str(user_id))
        if data_sale_status is not None:
            query = query.eq("data_sale_status", data_sale_status.value)
        if session_ids is not None:
            query = query.in_("session_id", [str(v) for v in session_ids])
        response = query.order("started_at_utc", desc=True).execute()
        return [_row_to_session(row) for row in self._rows(response, "list sessions")]

    # Packages ---------------------------------------------------------

    def insert_package(self, package: DataPackage) -> DataPackage:
        response = self.client.table(_PACKAGES_TABLE).insert(_package_to_row(package)).execute()
        self._rows(response, "insert package")
        return package

    def get_package(self, package_id: UUID) -> Optional[DataPackage]:
        response = (
            self.client.table(_PACKAGES_TABLE)
            .select("*")
            .eq("package_id", str(package_id))
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "get package")
        return _row_to_package(rows[0]) if rows else None

    def list_packages(self) -> List[DataPackage]:
        response = (
            self.client.table(_PACKAGES_TABLE)
            .select("*")
            .order("created_at_utc", desc=True)
            .execute()
        )
        return [_row_to_package(row) for row in self._rows(response, "list packages")]

    def commit_sale(
        self,
        sessions: Sequence[RecordingSession],
        package: Optional[DataPackage] = None,
    ) -> None:
        self._call_atomic(
            "commit_session_sale",
            {
                "p_sessions": [_session_to_row(s) for s in sessions],
                "p_package": _package_to_row(package) if package is not None else None,
            },
        )

    # Payees and payouts -----------------------------------------------

    def get_payee(self, user_id: UUID) -> Optional[Payee]:
        response = (
            self.client.table(_PAYEES_TABLE)
            .select("*")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "get payee")
        return _row_to_payee(rows[0]) if rows else None

    def save_payee(self, payee: Payee) -> Payee:
        payload = {
            "user_id": str(payee.user_id),
            "payout_method": payee.payout_method.value,
            "destination_ref": payee.destination_ref,
            "updated_at_utc": _opt_iso(payee.updated_at, name="updated_at"),
        }
        response = self.client.table(_PAYEES_TABLE).upsert(payload).execute()
        self._rows(response, "save payee")
        return payee

    def reserve_payout(self, payout: Payout) -> Payout:
        result = self._call_atomic("reserve_payout", {"p_payout": _payout_to_row(payout)})
        stored_id = result.get("payout_id")
        if stored_id and UUID(str(stored_id)) != payout.payout_id:
            existing = self.get_payout(UUID(str(stored_id)))
            if existing is None:
                raise RuntimeError(f"Failed to reserve payout: {stored_id} vanished")
            return existing
        return payout

    def get_payout(self, payout_id: UUID) -> Optional[Payout]:
        response = (
            self.client.table(_PAYOUTS_TABLE)
            .select("*")
            .eq("payout_id", str(payout_id))
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "get payout")
        return _row_to_payout(rows[0]) if rows else None

    def find_payout_by_idempotency_key(self, user_id: UUID, idempotency_key: str) -> Optional[Payout]:
        response = (
            self.client.table(_PAYOUTS_TABLE)
            .select("*")
            .eq("user_id", str(user_id))
            .eq("idempotency_key", idempotency_key)
            .limit(1)
            .execute()
        )
        rows = self._rows(response, "find payout")
        return _row_to_payout(rows[0]) if rows else None

    def list_payouts(
        self,
        *,
        user_id: Optional[UUID] = None,
        status: Optional[PayoutStatus] = None,
    ) -> List[Payout]:
        query = self.client.table(_PAYOUTS_TABLE).select("*")
        if user_id is not None:
            query = query.eq("user_id", str(user_id))
        if status is not None:
            query = query.eq("status", status.value)
        response = query.order("created_at_utc", desc=True).execute()
        return [_row_to_payout(row) for row in self._rows(response, "list payouts")]

    def transition_payout(self, payout: Payout, *, expected: PayoutStatus) -> Payout:
        self._call_atomic(
            "transition_payout",
            {"p_payout": _payout_to_row(payout), "p_expected_status": expected.value},
        )
        return payout

    def commit_settlement(self, payout: Payout) -> Payout:
        result = self._call_atomic("commit_payout_settlement", {"p_payout": _payout_to_row(payout)})
        funded = frozenset(UUID(str(v)) for v in result.get("funded_session_ids") or [])
        return replace(payout, funded_session_ids=funded)


__all__ = ["SupabaseLedgerStore"]
