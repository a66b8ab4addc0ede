"""
Domain: Data packages.

A package is a named bundle of recording sessions sold to one buyer as a
single commercial unit. It holds session id references only; session data
lives with the sessions themselves.

Rules:
- A package is created `open` with the aggregate size and duration of its
  members computed at creation time.
- A package is sold at most once.
- Membership in more than one open package is rejected by the package
  service at write time (see services/package_service.py).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional
from uuid import UUID

from .errors import InvalidArgumentError, InvalidStateError
from .time import require_utc_timestamp


class PackageStatus(str, Enum):
    OPEN = "open"
    SOLD = "sold"


@dataclass(frozen=True, slots=True)
class DataPackage:
    package_id: UUID
    name: str
    category: str
    session_ids: FrozenSet[UUID]
    total_size_mb: Decimal
    total_duration_minutes: Decimal
    created_at: datetime
    status: PackageStatus = PackageStatus.OPEN
    sale_price: Optional[Decimal] = None
    buyer_ref: Optional[str] = None
    sold_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.sold_at is not None:
            require_utc_timestamp("sold_at", self.sold_at)
        if not self.session_ids:
            raise InvalidArgumentError("a package must contain at least one session")

    @property
    def is_open(self) -> bool:
        return self.status is PackageStatus.OPEN

    def sold(self, *, sale_price: Decimal, buyer_ref: Optional[str], sold_at: datetime) -> "DataPackage":
        require_utc_timestamp("sold_at", sold_at)
        if not self.is_open:
            raise InvalidStateError(f"package {self.package_id} is {self.status.value}, not open")
        return replace(
            self,
            status=PackageStatus.SOLD,
            sale_price=sale_price,
            buyer_ref=buyer_ref,
            sold_at=sold_at,
        )


__all__ = ["PackageStatus", "DataPackage"]
