"""
Ledger store interface (persistence boundary).

Services depend on this protocol only. Two implementations exist:
- repositories.memory_store.InMemoryLedgerStore (tests, local runs)
- repositories.supabase_store.SupabaseLedgerStore (production, PostgreSQL)

Plain reads and single-record writes carry no business rules. The guarded
methods (`commit_sale`, `reserve_payout`, `transition_payout`,
`commit_settlement`, `save_rate_config`, `save_session`) are the only
multi-record or compare-and-set writes; each
must run as one atomic unit that re-reads the guarded state inside the same
transaction and raises InvalidStateError if it no longer matches, leaving
nothing written.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable
from uuid import UUID

from domain.package import DataPackage
from domain.payout import Payee, Payout, PayoutStatus
from domain.rate_config import RateConfig
from domain.session import DataSaleStatus, RecordingSession


@runtime_checkable
class LedgerStore(Protocol):
    # Rate config
    def get_rate_config(self) -> Optional[RateConfig]: ...

    def save_rate_config(self, config: RateConfig, *, expected_version: Optional[int]) -> RateConfig:
        """
        Write `config` if the stored version equals `expected_version`
        (None means no record may exist yet). Raises InvalidStateError otherwise.
        """
        ...

    # Sessions
    def insert_session(self, session: RecordingSession) -> RecordingSession: ...

    def get_session(self, session_id: UUID) -> Optional[RecordingSession]: ...

    def save_session(self, session: RecordingSession, *, expected: RecordingSession) -> RecordingSession:
        """
        Write `session` if the stored record still has the lifecycle state and
        duration of `expected` (the version the caller loaded). Raises
        InvalidStateError otherwise.
        """
        ...

    def list_sessions(
        self,
        *,
        user_id: Optional[UUID] = None,
        data_sale_status: Optional[DataSaleStatus] = None,
        session_ids: Optional[Sequence[UUID]] = None,
    ) -> List[RecordingSession]: ...

    # Packages
    def insert_package(self, package: DataPackage) -> DataPackage: ...

    def get_package(self, package_id: UUID) -> Optional[DataPackage]: ...

    def list_packages(self) -> List[DataPackage]: ...

    def commit_sale(
        self,
        sessions: Sequence[RecordingSession],
        package: Optional[DataPackage] = None,
    ) -> None:
        """
        Atomically write sold sessions (and the sold package, if any).

        Guard: every stored session is still `uploaded` and the stored package
        (if any) is still `open`. An ad-hoc sale (no package) must not include
        a session bundled in an open package.
        """
        ...

    # Payees and payouts
    def get_payee(self, user_id: UUID) -> Optional[Payee]: ...

    def save_payee(self, payee: Payee) -> Payee: ...

    def reserve_payout(self, payout: Payout) -> Payout:
        """
        Insert a pending payout request against the user's balance.

        Guard: the amount does not exceed the user's available balance
        (pending payout minus open requests), read in the same transaction
        as the insert. Raises InvalidArgumentError otherwise. A payout with
        an idempotency key the user already used returns the stored payout.
        """
        ...

    def get_payout(self, payout_id: UUID) -> Optional[Payout]: ...

    def find_payout_by_idempotency_key(self, user_id: UUID, idempotency_key: str) -> Optional[Payout]: ...

    def list_payouts(
        self,
        *,
        user_id: Optional[UUID] = None,
        status: Optional[PayoutStatus] = None,
    ) -> List[Payout]: ...

    def transition_payout(self, payout: Payout, *, expected: PayoutStatus) -> Payout:
        """Write `payout` only if the stored status equals `expected`."""
        ...

    def commit_settlement(self, payout: Payout) -> Payout:
        """
        Atomically write a completed payout and mark the sessions it funds.

        Guard: the stored payout is `processing`. The funded sessions are
        chosen (domain.payout.plan_funded_sessions) from the user's sessions
        and payouts as read inside the same transaction, so concurrent
        settlements for one user never claim the same session. Returns the
        payout with its funded_session_ids.
        """
        ...


__all__ = ["LedgerStore"]
