"""
Package service for bundling sessions into sellable data packages.

A package references existing sessions by id. A session may belong to at most
one open package at a time; creating a second open package that includes it
is rejected. Selling a package lives in services/allocation_service.py.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import UUID, uuid4

from domain.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from domain.money import ZERO, round_currency, round_tenth
from domain.package import DataPackage
from domain.session import DataSaleStatus
from domain.time import utc_now
from repositories.store import LedgerStore

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "general"


def get_package(store: LedgerStore, package_id: UUID) -> DataPackage:
    package = store.get_package(package_id)
    if package is None:
        raise NotFoundError(f"package {package_id} not found")
    return package


def list_packages(store: LedgerStore) -> List[DataPackage]:
    """All packages, newest first."""

    return store.list_packages()


def create_package(
    store: LedgerStore,
    session_ids: Sequence[UUID],
    name: Optional[str] = None,
    category: Optional[str] = None,
) -> DataPackage:
    """
    Bundle existing completed sessions into an open package.

    Raises:
        InvalidArgumentError: empty or duplicated session id list.
        NotFoundError: any session id does not exist.
        InvalidStateError: a session is still recording, already sold or paid
            out, or already belongs to another open package.
    """

    if not session_ids:
        raise InvalidArgumentError("session_ids must contain at least one session")
    if len(set(session_ids)) != len(session_ids):
        raise InvalidArgumentError("session_ids contains duplicates")

    sessions = store.list_sessions(session_ids=session_ids)
    found = {s.session_id for s in sessions}
    missing = [str(sid) for sid in session_ids if sid not in found]
    if missing:
        raise NotFoundError(f"sessions not found: {', '.join(missing)}")

    for session in sessions:
        if session.data_sale_status not in (DataSaleStatus.PENDING_UPLOAD, DataSaleStatus.UPLOADED):
            state = session.data_sale_status.value if session.data_sale_status else session.status.value
            raise InvalidStateError(f"session {session.session_id} is {state}; it cannot be packaged")

    wanted = set(session_ids)
    for existing in store.list_packages():
        overlap = existing.session_ids & wanted if existing.is_open else frozenset()
        if overlap:
            raise InvalidStateError(
                f"sessions already in open package {existing.package_id}: "
                f"{', '.join(sorted(str(s) for s in overlap))}"
            )

    now = utc_now()
    package = DataPackage(
        package_id=uuid4(),
        name=(name or "").strip() or f"Package {now.date().isoformat()}",
        category=(category or "").strip() or DEFAULT_CATEGORY,
        session_ids=frozenset(session_ids),
        total_size_mb=round_tenth(sum((s.data_size_mb for s in sessions), ZERO)),
        total_duration_minutes=round_currency(sum((s.duration_minutes for s in sessions), ZERO)),
        created_at=now,
    )
    store.insert_package(package)
    logger.info("Package %s created with %d sessions", package.package_id, len(sessions))
    return package


__all__ = ["DEFAULT_CATEGORY", "get_package", "list_packages", "create_package"]
