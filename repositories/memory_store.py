"""
In-memory ledger store.

Backs the test suite and local runs without a database. Entities are frozen
dataclasses, so storing the instance itself is safe: no caller can mutate a
stored record behind the store's back.

Atomicity: every write takes one process-wide re-entrant lock, and guarded
writes re-read the stored state under that lock before changing anything.
A guarded write either applies all of its records or raises and applies none.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from domain.earnings import available_for_payout, summarize_user_earnings
from domain.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from domain.package import DataPackage, PackageStatus
from domain.payout import Payee, Payout, PayoutStatus, plan_funded_sessions
from domain.rate_config import RateConfig
from domain.session import DataSaleStatus, RecordingSession


def _session_state(session: RecordingSession):
    return session.status, session.data_sale_status, session.duration_minutes


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rate_config: Optional[RateConfig] = None
        self._sessions: Dict[UUID, RecordingSession] = {}
        self._packages: Dict[UUID, DataPackage] = {}
        self._payees: Dict[UUID, Payee] = {}
        self._payouts: Dict[UUID, Payout] = {}

    # ------------------------------------------------------------------
    # Rate config
    # ------------------------------------------------------------------

    def get_rate_config(self) -> Optional[RateConfig]:
        with self._lock:
            return self._rate_config

    def save_rate_config(self, config: RateConfig, *, expected_version: Optional[int]) -> RateConfig:
        with self._lock:
            current = self._rate_config.version if self._rate_config else None
            if current != expected_version:
                raise InvalidStateError(
                    f"rate config is at version {current}, expected {expected_version}"
                )
            self._rate_config = config
            return config

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def insert_session(self, session: RecordingSession) -> RecordingSession:
        with self._lock:
            if session.session_id in self._sessions:
                raise RuntimeError(f"Failed to insert session: duplicate id {session.session_id}")
            self._sessions[session.session_id] = session
            return session

    def get_session(self, session_id: UUID) -> Optional[RecordingSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def save_session(self, session: RecordingSession, *, expected: RecordingSession) -> RecordingSession:
        with self._lock:
            stored = self._sessions.get(session.session_id)
            if stored is None:
                raise NotFoundError(f"session {session.session_id} not found")
            if _session_state(stored) != _session_state(expected):
                raise InvalidStateError(f"session {session.session_id} was modified concurrently")
            self._sessions[session.session_id] = session
            return session

    def list_sessions(
        self,
        *,
        user_id: Optional[UUID] = None,
        data_sale_status: Optional[DataSaleStatus] = None,
        session_ids: Optional[Sequence[UUID]] = None,
    ) -> List[RecordingSession]:
        with self._lock:
            rows = list(self._sessions.values())
        if user_id is not None:
            rows = [s for s in rows if s.user_id == user_id]
        if data_sale_status is not None:
            rows = [s for s in rows if s.data_sale_status is data_sale_status]
        if session_ids is not None:
            wanted = set(session_ids)
            rows = [s for s in rows if s.session_id in wanted]
        return sorted(rows, key=lambda s: s.started_at, reverse=True)

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    def insert_package(self, package: DataPackage) -> DataPackage:
        with self._lock:
            self._packages[package.package_id] = package
            return package

    def get_package(self, package_id: UUID) -> Optional[DataPackage]:
        with self._lock:
            return self._packages.get(package_id)

    def list_packages(self) -> List[DataPackage]:
        with self._lock:
            rows = list(self._packages.values())
        return sorted(rows, key=lambda p: p.created_at, reverse=True)

    def commit_sale(
        self,
        sessions: Sequence[RecordingSession],
        package: Optional[DataPackage] = None,
    ) -> None:
        with self._lock:
            for session in sessions:
                stored = self._sessions.get(session.session_id)
                if stored is None:
                    raise NotFoundError(f"session {session.session_id} not found")
                if stored.data_sale_status is not DataSaleStatus.UPLOADED:
                    state = stored.data_sale_status.value if stored.data_sale_status else stored.status.value
                    raise InvalidStateError(f"session {session.session_id} is {state}, not uploaded")
            if package is not None:
                stored_package = self._packages.get(package.package_id)
                if stored_package is None:
                    raise NotFoundError(f"package {package.package_id} not found")
                if stored_package.status is not PackageStatus.OPEN:
                    raise InvalidStateError(
                        f"package {package.package_id} is {stored_package.status.value}, not open"
                    )

            # Sessions bundled in an open package are sold through that package.
            if package is None:
                selling = {s.session_id for s in sessions}
                for open_package in self._packages.values():
                    if open_package.status is not PackageStatus.OPEN:
                        continue
                    bundled = sorted(str(sid) for sid in open_package.session_ids & selling)
                    if bundled:
                        raise InvalidStateError(
                            f"sessions in open package {open_package.package_id}: {', '.join(bundled)}"
                        )

            for session in sessions:
                self._sessions[session.session_id] = session
            if package is not None:
                self._packages[package.package_id] = package

    # ------------------------------------------------------------------
    # Payees and payouts
    # ------------------------------------------------------------------

    def get_payee(self, user_id: UUID) -> Optional[Payee]:
        with self._lock:
            return self._payees.get(user_id)

    def save_payee(self, payee: Payee) -> Payee:
        with self._lock:
            self._payees[payee.user_id] = payee
            return payee

    def _user_records(self, user_id: UUID):
        sessions = [s for s in self._sessions.values() if s.user_id == user_id]
        payouts = [p for p in self._payouts.values() if p.user_id == user_id]
        return sessions, payouts

    def reserve_payout(self, payout: Payout) -> Payout:
        with self._lock:
            if payout.idempotency_key is not None:
                existing = self.find_payout_by_idempotency_key(payout.user_id, payout.idempotency_key)
                if existing is not None:
                    return existing

            sessions, payouts = self._user_records(payout.user_id)
            available = available_for_payout(
                summarize_user_earnings(payout.user_id, sessions, payouts), payouts
            )
            if payout.amount > available:
                raise InvalidArgumentError(
                    f"payout amount {payout.amount} exceeds available balance {available}"
                )

            self._payouts[payout.payout_id] = payout
            return payout

    def get_payout(self, payout_id: UUID) -> Optional[Payout]:
        with self._lock:
            return self._payouts.get(payout_id)

    def find_payout_by_idempotency_key(self, user_id: UUID, idempotency_key: str) -> Optional[Payout]:
        with self._lock:
            for payout in self._payouts.values():
                if payout.user_id == user_id and payout.idempotency_key == idempotency_key:
                    return payout
        return None

    def list_payouts(
        self,
        *,
        user_id: Optional[UUID] = None,
        status: Optional[PayoutStatus] = None,
    ) -> List[Payout]:
        with self._lock:
            rows = list(self._payouts.values())
        if user_id is not None:
            rows = [p for p in rows if p.user_id == user_id]
        if status is not None:
            rows = [p for p in rows if p.status is status]
        return sorted(rows, key=lambda p: p.created_at, reverse=True)

    def transition_payout(self, payout: Payout, *, expected: PayoutStatus) -> Payout:
        with self._lock:
            stored = self._payouts.get(payout.payout_id)
            if stored is None:
                raise NotFoundError(f"payout {payout.payout_id} not found")
            if stored.status is not expected:
                raise InvalidStateError(f"payout is {stored.status.value}, not {expected.value}")
            self._payouts[payout.payout_id] = payout
            return payout

    def commit_settlement(self, payout: Payout) -> Payout:
        with self._lock:
            stored = self._payouts.get(payout.payout_id)
            if stored is None:
                raise NotFoundError(f"payout {payout.payout_id} not found")
            if stored.status is not PayoutStatus.PROCESSING:
                raise InvalidStateError(f"payout is {stored.status.value}, not processing")

            sessions, payouts = self._user_records(payout.user_id)
            funded = plan_funded_sessions(sessions, payouts, payout)
            settled = replace(payout, funded_session_ids=frozenset(s.session_id for s in funded))

            self._payouts[payout.payout_id] = settled
            for session in funded:
                self._sessions[session.session_id] = session.paid_out(payout.payout_id)
            return settled


__all__ = ["InMemoryLedgerStore"]
