"""
Domain: Recording sessions and their sale lifecycle.

Lifecycle:
    recording -> completed
                 data_sale_status: pending_upload -> uploaded -> sold -> paid_out

Rules implemented here:
- Duration only grows while the session is recording; data size and estimated
  earnings are recomputed from it on every update.
- Ending is legal only from `recording`; ending twice is rejected.
- Upload confirmation is legal from `pending_upload` or `uploaded`.
- Only `uploaded` sessions can be sold; selling snapshots the split amounts and
  the rate version so later rate changes never alter them.
- Once sold, actual_earnings == user_payout + platform_revenue.
- A paid_out session never changes again.

Every transition returns a new instance; the original is left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .errors import InvalidArgumentError, InvalidStateError
from .money import ZERO, round_currency, round_tenth, to_decimal
from .rate_config import RateConfig, RecordingMode, estimate_earnings
from .time import require_utc_timestamp

# Fixed storage footprint of one recorded minute.
MB_PER_MINUTE = Decimal("45")

DEFAULT_LABEL = "Field Recording"


class SessionStatus(str, Enum):
    RECORDING = "recording"
    COMPLETED = "completed"


class DataSaleStatus(str, Enum):
    PENDING_UPLOAD = "pending_upload"
    UPLOADED = "uploaded"
    SOLD = "sold"
    PAID_OUT = "paid_out"


@dataclass(frozen=True, slots=True)
class RecordingSession:
    """
    One recorded unit with a billable duration.

    `data_sale_status` is None while the session is still recording.
    """

    session_id: UUID
    user_id: UUID
    mode: RecordingMode
    started_at: datetime
    label: str = DEFAULT_LABEL
    status: SessionStatus = SessionStatus.RECORDING
    data_sale_status: Optional[DataSaleStatus] = None
    duration_minutes: Decimal = ZERO
    data_size_mb: Decimal = Decimal("0.0")
    estimated_earnings: Decimal = ZERO
    actual_earnings: Decimal = ZERO
    user_payout: Decimal = ZERO
    platform_revenue: Decimal = ZERO
    storage_key: Optional[str] = None
    ended_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    sale_rate_version: Optional[int] = None
    payout_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("started_at", self.started_at)
        if self.ended_at is not None:
            require_utc_timestamp("ended_at", self.ended_at)
        if self.sold_at is not None:
            require_utc_timestamp("sold_at", self.sold_at)
        if self.status is SessionStatus.RECORDING and self.data_sale_status is not None:
            raise ValueError("a recording session has no data_sale_status yet")
        if self.is_sold_or_paid and self.actual_earnings != self.user_payout + self.platform_revenue:
            raise ValueError("actual_earnings must equal user_payout + platform_revenue once sold")

    @staticmethod
    def start(
        *,
        user_id: UUID,
        mode: RecordingMode,
        started_at: datetime,
        label: Optional[str] = None,
        session_id: Optional[UUID] = None,
    ) -> "RecordingSession":
        return RecordingSession(
            session_id=session_id or uuid4(),
            user_id=user_id,
            mode=mode,
            started_at=started_at,
            label=(label or "").strip() or DEFAULT_LABEL,
        )

    @property
    def is_recording(self) -> bool:
        return self.status is SessionStatus.RECORDING

    @property
    def is_sellable(self) -> bool:
        return self.data_sale_status is DataSaleStatus.UPLOADED

    @property
    def is_sold_or_paid(self) -> bool:
        return self.data_sale_status in (DataSaleStatus.SOLD, DataSaleStatus.PAID_OUT)

    def _describe_state(self) -> str:
        if self.data_sale_status is None:
            return self.status.value
        return f"{self.status.value}/{self.data_sale_status.value}"

    def with_duration(self, elapsed_minutes: Decimal, config: RateConfig) -> "RecordingSession":
        """Record a new elapsed duration and recompute derived size and estimate."""

        if not self.is_recording:
            raise InvalidStateError(
                f"session {self.session_id} is {self._describe_state()}, not recording"
            )
        minutes = round_currency(to_decimal(elapsed_minutes))
        if minutes < 0:
            raise InvalidArgumentError(f"elapsed minutes must be >= 0, got {minutes}")
        if minutes < self.duration_minutes:
            raise InvalidArgumentError(
                f"duration cannot decrease (current {self.duration_minutes}, got {minutes})"
            )
        return replace(
            self,
            duration_minutes=minutes,
            data_size_mb=round_tenth(minutes * MB_PER_MINUTE),
            estimated_earnings=estimate_earnings(minutes, self.mode, config),
        )

    def ended(self, ended_at: datetime) -> "RecordingSession":
        require_utc_timestamp("ended_at", ended_at)
        if not self.is_recording:
            raise InvalidStateError(
                f"session {self.session_id} is {self._describe_state()}, not recording"
            )
        return replace(
            self,
            status=SessionStatus.COMPLETED,
            data_sale_status=DataSaleStatus.PENDING_UPLOAD,
            ended_at=ended_at,
        )

    def uploaded(self, storage_key: str) -> "RecordingSession":
        key = (storage_key or "").strip()
        if not key:
            raise InvalidArgumentError("storage_key must be a non-empty string")
        if self.data_sale_status not in (DataSaleStatus.PENDING_UPLOAD, DataSaleStatus.UPLOADED):
            raise InvalidStateError(
                f"session {self.session_id} is {self._describe_state()}, "
                "not pending_upload or uploaded"
            )
        return replace(self, data_sale_status=DataSaleStatus.UPLOADED, storage_key=key)

    def sold(
        self,
        *,
        share: Decimal,
        user_payout: Decimal,
        platform_revenue: Decimal,
        sold_at: datetime,
        rate_version: int,
    ) -> "RecordingSession":
        require_utc_timestamp("sold_at", sold_at)
        if not self.is_sellable:
            raise InvalidStateError(
                f"session {self.session_id} is {self._describe_state()}, not uploaded"
            )
        return replace(
            self,
            data_sale_status=DataSaleStatus.SOLD,
            actual_earnings=share,
            user_payout=user_payout,
            platform_revenue=platform_revenue,
            sold_at=sold_at,
            sale_rate_version=rate_version,
        )

    def paid_out(self, payout_id: UUID) -> "RecordingSession":
        if self.data_sale_status is not DataSaleStatus.SOLD:
            raise InvalidStateError(
                f"session {self.session_id} is {self._describe_state()}, not sold"
            )
        return replace(self, data_sale_status=DataSaleStatus.PAID_OUT, payout_id=payout_id)


__all__ = [
    "MB_PER_MINUTE",
    "DEFAULT_LABEL",
    "SessionStatus",
    "DataSaleStatus",
    "RecordingSession",
]
