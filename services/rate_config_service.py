"""
Rate config service.

Reads and updates the platform's per-minute rates and revenue splits.

Callers fetch the record once per request with `get_rates()` and pass it on to
the earnings and allocation calculations; the record is never cached here.
"""

from __future__ import annotations

import logging

from domain.errors import InvalidStateError
from domain.rate_config import RateConfig, RateUpdate, apply_rate_update
from domain.time import utc_now
from repositories.store import LedgerStore

logger = logging.getLogger(__name__)


def get_rates(store: LedgerStore) -> RateConfig:
    """
    Return the current rate config, creating the platform defaults if absent.

    Never fails on a missing record. If another request creates the defaults
    concurrently, that record is returned instead.
    """

    config = store.get_rate_config()
    if config is not None:
        return config

    defaults = RateConfig.defaults()
    try:
        store.save_rate_config(defaults, expected_version=None)
        logger.info("Created default rate config (version %s)", defaults.version)
        return defaults
    except InvalidStateError:
        existing = store.get_rate_config()
        if existing is None:
            raise
        return existing


def update_rates(store: LedgerStore, update: RateUpdate) -> RateConfig:
    """
    Apply a partial update and persist the resulting record.

    The whole record is validated before the write; the write is
    compare-and-set on version.

    Raises:
        InvalidArgumentError: empty update or invalid rate/split values.
        InvalidStateError: the record changed concurrently.
    """

    current = get_rates(store)
    updated = apply_rate_update(current, update, utc_now())
    store.save_rate_config(updated, expected_version=current.version)
    logger.info("Rate config updated to version %s", updated.version)
    return updated


__all__ = ["get_rates", "update_rates"]
