"""
Domain: Platform rate configuration.

One versioned record holds the per-minute rate and the user/platform split
fractions for each recording mode. Every earnings calculation (estimate or
actual sale) receives the record explicitly as a parameter; nothing in the
domain reads it from ambient state.

Invariants implemented here:
- user_split + platform_split == 1 for each mode (checked on construction, so
  no invalid record can exist in memory).
- Splits lie in [0, 1]; per-minute rates are >= 0.
- Updates are applied as a whole: the resulting record is validated before it
  replaces the old one, and its version is incremented.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import InvalidArgumentError
from .money import round_currency
from .time import require_utc_timestamp

SPLIT_EPSILON = Decimal("1e-9")


class RecordingMode(str, Enum):
    NARRATED = "narrated"
    SILENT = "silent"


@dataclass(frozen=True, slots=True)
class ModeRates:
    """Rate and split pair for a single recording mode."""

    rate_per_minute: Decimal
    user_split: Decimal
    platform_split: Decimal


def _validate_pair(mode: str, rate: Decimal, user_split: Decimal, platform_split: Decimal) -> None:
    if rate < 0:
        raise InvalidArgumentError(f"{mode} rate must be >= 0, got {rate}")
    for name, value in (("user", user_split), ("platform", platform_split)):
        if value < 0 or value > 1:
            raise InvalidArgumentError(f"{mode} {name} split must be within [0, 1], got {value}")
    if abs(user_split + platform_split - Decimal(1)) > SPLIT_EPSILON:
        raise InvalidArgumentError(
            f"{mode} splits must sum to 1.0, got {user_split} + {platform_split}"
        )


@dataclass(frozen=True, slots=True)
class RateConfig:
    """
    Versioned platform rate record.

    The version starts at 1 for the defaults and increases by one on every
    accepted update. Sold sessions record the version their split came from.
    """

    version: int
    narrated_rate: Decimal
    narrated_user_split: Decimal
    narrated_platform_split: Decimal
    silent_rate: Decimal
    silent_user_split: Decimal
    silent_platform_split: Decimal
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError("version must be >= 1")
        _validate_pair(
            RecordingMode.NARRATED.value,
            self.narrated_rate,
            self.narrated_user_split,
            self.narrated_platform_split,
        )
        _validate_pair(
            RecordingMode.SILENT.value,
            self.silent_rate,
            self.silent_user_split,
            self.silent_platform_split,
        )
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @staticmethod
    def defaults() -> "RateConfig":
        """Platform defaults used when no record exists yet."""

        return RateConfig(
            version=1,
            narrated_rate=Decimal("0.28"),
            narrated_user_split=Decimal("0.50"),
            narrated_platform_split=Decimal("0.50"),
            silent_rate=Decimal("0.12"),
            silent_user_split=Decimal("0.30"),
            silent_platform_split=Decimal("0.70"),
        )

    def rates_for(self, mode: RecordingMode) -> ModeRates:
        if mode is RecordingMode.NARRATED:
            return ModeRates(self.narrated_rate, self.narrated_user_split, self.narrated_platform_split)
        return ModeRates(self.silent_rate, self.silent_user_split, self.silent_platform_split)


@dataclass(frozen=True, slots=True)
class RateUpdate:
    """
    Partial admin update to the rate record.

    Only fields that are not None are applied. When just one side of a split
    pair is provided the other side is derived as its complement; when both are
    provided they must sum to 1.
    """

    narrated_rate: Optional[Decimal] = None
    narrated_user_split: Optional[Decimal] = None
    narrated_platform_split: Optional[Decimal] = None
    silent_rate: Optional[Decimal] = None
    silent_user_split: Optional[Decimal] = None
    silent_platform_split: Optional[Decimal] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.narrated_rate,
                self.narrated_user_split,
                self.narrated_platform_split,
                self.silent_rate,
                self.silent_user_split,
                self.silent_platform_split,
            )
        )


def _resolve_split(
    current_user: Decimal,
    current_platform: Decimal,
    new_user: Optional[Decimal],
    new_platform: Optional[Decimal],
) -> tuple[Decimal, Decimal]:
    if new_user is not None and new_platform is not None:
        return new_user, new_platform
    if new_user is not None:
        return new_user, Decimal(1) - new_user
    if new_platform is not None:
        return Decimal(1) - new_platform, new_platform
    return current_user, current_platform


def apply_rate_update(config: RateConfig, update: RateUpdate, updated_at: datetime) -> RateConfig:
    """
    Return the record that results from applying `update` to `config`.

    Raises:
        InvalidArgumentError: if the update is empty or the resulting record
            violates any rate/split invariant.
    """

    if update.is_empty():
        raise InvalidArgumentError("rate update must change at least one field")

    narrated_user, narrated_platform = _resolve_split(
        config.narrated_user_split,
        config.narrated_platform_split,
        update.narrated_user_split,
        update.narrated_platform_split,
    )
    silent_user, silent_platform = _resolve_split(
        config.silent_user_split,
        config.silent_platform_split,
        update.silent_user_split,
        update.silent_platform_split,
    )

    return RateConfig(
        version=config.version + 1,
        narrated_rate=update.narrated_rate if update.narrated_rate is not None else config.narrated_rate,
        narrated_user_split=narrated_user,
        narrated_platform_split=narrated_platform,
        silent_rate=update.silent_rate if update.silent_rate is not None else config.silent_rate,
        silent_user_split=silent_user,
        silent_platform_split=silent_platform,
        updated_at=updated_at,
    )


def estimate_earnings(duration_minutes: Decimal, mode: RecordingMode, config: RateConfig) -> Decimal:
    """Estimated earnings for a recording: duration x per-minute rate of its mode."""

    return round_currency(duration_minutes * config.rates_for(mode).rate_per_minute)


__all__ = [
    "SPLIT_EPSILON",
    "RecordingMode",
    "ModeRates",
    "RateConfig",
    "RateUpdate",
    "apply_rate_update",
    "estimate_earnings",
]
