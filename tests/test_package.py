"""
Tests for `domain/package.py`, `services/package_service.py` and package sales.

Covers contract rules:
- Packages reference sessions by id and aggregate size/duration at creation.
- A session belongs to at most one open package.
- Selling a package sells its sessions and the package together.
- Sessions in an open package cannot be sold outside it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from domain.package import DataPackage, PackageStatus
from domain.rate_config import RecordingMode
from domain.session import DataSaleStatus
from services.allocation_service import sell_package, sell_sessions
from services.package_service import DEFAULT_CATEGORY, create_package, get_package, list_packages
from services.session_service import get_session, start_session


def test_package_requires_sessions() -> None:
    with pytest.raises(InvalidArgumentError):
        DataPackage(
            package_id=uuid4(),
            name="Empty",
            category=DEFAULT_CATEGORY,
            session_ids=frozenset(),
            total_size_mb=Decimal("0"),
            total_duration_minutes=Decimal("0"),
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )


def test_create_package_aggregates_sessions(store, record_session, user_id: UUID) -> None:
    first = record_session(user_id, "10")
    second = record_session(user_id, "2.5", RecordingMode.SILENT, upload=False)

    package = create_package(store, [first.session_id, second.session_id], name="Interiors")

    assert package.status is PackageStatus.OPEN
    assert package.name == "Interiors"
    assert package.category == DEFAULT_CATEGORY
    assert package.session_ids == frozenset({first.session_id, second.session_id})
    assert package.total_duration_minutes == Decimal("12.50")
    assert package.total_size_mb == Decimal("562.5")
    assert get_package(store, package.package_id) == package
    assert list_packages(store) == [package]


def test_session_cannot_join_two_open_packages(store, record_session, user_id: UUID) -> None:
    shared = record_session(user_id, "10")
    other = record_session(user_id, "5")
    create_package(store, [shared.session_id])

    with pytest.raises(InvalidStateError):
        create_package(store, [other.session_id, shared.session_id])

    assert len(list_packages(store)) == 1


def test_recording_session_cannot_be_packaged(store, user_id: UUID) -> None:
    session = start_session(store, user_id, RecordingMode.NARRATED)

    with pytest.raises(InvalidStateError):
        create_package(store, [session.session_id])


def test_sold_session_cannot_be_packaged(store, record_session, user_id: UUID) -> None:
    session = record_session(user_id, "10")
    sell_sessions(store, [session.session_id], Decimal("3.00"))

    with pytest.raises(InvalidStateError):
        create_package(store, [session.session_id])


def test_create_package_with_unknown_session_is_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        create_package(store, [uuid4()])


def test_sell_package_sells_sessions_and_package(store, record_session, user_id: UUID) -> None:
    short = record_session(user_id, "10")
    long = record_session(user_id, "30")
    package = create_package(store, [short.session_id, long.session_id])

    result = sell_package(store, package.package_id, Decimal("100.00"), buyer_ref="buyer-7")

    sold_package = get_package(store, package.package_id)
    assert sold_package.status is PackageStatus.SOLD
    assert sold_package.sale_price == Decimal("100.00")
    assert sold_package.buyer_ref == "buyer-7"
    assert result.package_id == package.package_id
    assert get_session(store, short.session_id).actual_earnings == Decimal("25.00")
    assert get_session(store, long.session_id).actual_earnings == Decimal("75.00")


def test_sold_package_cannot_be_sold_again(store, record_session, user_id: UUID) -> None:
    session = record_session(user_id, "10")
    package = create_package(store, [session.session_id])
    sell_package(store, package.package_id, Decimal("3.00"))

    with pytest.raises(InvalidStateError):
        sell_package(store, package.package_id, Decimal("3.00"))


def test_package_with_unuploaded_session_cannot_be_sold(store, record_session, user_id: UUID) -> None:
    uploaded = record_session(user_id, "10")
    pending = record_session(user_id, "10", upload=False)
    package = create_package(store, [uploaded.session_id, pending.session_id])

    with pytest.raises(InvalidStateError):
        sell_package(store, package.package_id, Decimal("10.00"))

    assert get_package(store, package.package_id).status is PackageStatus.OPEN
    assert get_session(store, uploaded.session_id).data_sale_status is DataSaleStatus.UPLOADED


def test_packaged_session_cannot_be_sold_separately(store, record_session, user_id: UUID) -> None:
    """A session in an open package is only sold through that package."""

    first = record_session(user_id, "10")
    second = record_session(user_id, "10")
    loose = record_session(user_id, "10")
    package = create_package(store, [first.session_id, second.session_id])

    with pytest.raises(InvalidStateError, match=str(package.package_id)):
        sell_sessions(store, [loose.session_id, first.session_id], Decimal("3.00"))

    for session in (first, second, loose):
        assert get_session(store, session.session_id).data_sale_status is DataSaleStatus.UPLOADED

    result = sell_package(store, package.package_id, Decimal("10.00"))
    assert result.session_count == 2
    assert get_package(store, package.package_id).status is PackageStatus.SOLD


def test_unpackaged_sessions_sell_alongside_open_packages(store, record_session, user_id: UUID) -> None:
    packaged = record_session(user_id, "10")
    loose = record_session(user_id, "10")
    create_package(store, [packaged.session_id])

    result = sell_sessions(store, [loose.session_id], Decimal("3.00"))

    assert result.session_count == 1
    assert get_session(store, loose.session_id).data_sale_status is DataSaleStatus.SOLD


def test_unknown_package_is_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        sell_package(store, uuid4(), Decimal("10.00"))
