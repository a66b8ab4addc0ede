"""
Sales API Endpoints.

Admin endpoints for selling sessions and managing data packages. Every sale
distributes the price across sessions proportionally to duration and commits
all session updates atomically.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from api.errors import to_http_exception
from api.models import (
    AllocationResponse,
    CreatePackageRequest,
    PackageListResponse,
    PackageResponse,
    SellPackageRequest,
    SellSessionsRequest,
    SessionAllocationResponse,
)
from domain.allocation import AllocationResult
from domain.package import DataPackage
from repositories.store import LedgerStore
from services.allocation_service import sell_package, sell_sessions
from services.package_service import create_package, get_package, list_packages

router = APIRouter()


def _allocation_response(result: AllocationResult) -> AllocationResponse:
    return AllocationResponse(
        sold_at=result.sold_at,
        total_sale_price=result.total_sale_price,
        total_minutes=result.total_minutes,
        rate_version=result.rate_version,
        buyer_ref=result.buyer_ref,
        package_id=result.package_id,
        session_count=result.session_count,
        total_allocated=result.total_allocated,
        total_user_payout=result.total_user_payout,
        total_platform_revenue=result.total_platform_revenue,
        rounding_difference=result.rounding_difference,
        allocations=[
            SessionAllocationResponse(
                session_id=a.session_id,
                user_id=a.user_id,
                mode=a.mode.value,
                duration_minutes=a.duration_minutes,
                share=a.share,
                user_payout=a.user_payout,
                platform_revenue=a.platform_revenue,
            )
            for a in result.allocations
        ],
    )


def _package_response(package: DataPackage) -> PackageResponse:
    return PackageResponse(
        package_id=package.package_id,
        name=package.name,
        category=package.category,
        session_ids=sorted(package.session_ids, key=str),
        total_size_mb=package.total_size_mb,
        total_duration_minutes=package.total_duration_minutes,
        status=package.status.value,
        sale_price=package.sale_price,
        buyer_ref=package.buyer_ref,
        created_at=package.created_at,
        sold_at=package.sold_at,
    )


@router.post(
    "/sales/sessions",
    response_model=AllocationResponse,
    summary="Sell Sessions",
    description="Sell uploaded sessions together for one total price."
)
def sell_selected_sessions(request: SellSessionsRequest, store: LedgerStore = Depends(get_store)):
    """
    Sell a set of uploaded sessions.

    **Allocation:**
    Each session receives `round(price * duration / total_duration)`, split
    between user and platform by the current rates for its mode.

    **All-or-Nothing:**
    If any session is not `uploaded` (for example sold concurrently), the whole
    sale is rejected with 409 and nothing is written.

    **Example request:**
    ```json
    {
      "session_ids": ["uuid1", "uuid2"],
      "total_sale_price": "100.00"
    }
    ```
    """
    try:
        result = sell_sessions(store, request.session_ids, request.total_sale_price, request.buyer_ref)
        return _allocation_response(result)
    except Exception as e:
        raise to_http_exception(e, "sell sessions")


@router.post(
    "/packages",
    response_model=PackageResponse,
    status_code=201,
    summary="Create Data Package",
    description="Bundle completed sessions into a sellable package."
)
def create_data_package(request: CreatePackageRequest, store: LedgerStore = Depends(get_store)):
    try:
        package = create_package(store, request.session_ids, request.name, request.category)
        return _package_response(package)
    except Exception as e:
        raise to_http_exception(e, "create package")


@router.get(
    "/packages",
    response_model=PackageListResponse,
    summary="List Data Packages"
)
def get_data_packages(store: LedgerStore = Depends(get_store)):
    try:
        packages = list_packages(store)
        return PackageListResponse(
            items=[_package_response(p) for p in packages],
            total_count=len(packages),
        )
    except Exception as e:
        raise to_http_exception(e, "list packages")


@router.get(
    "/packages/{package_id}",
    response_model=PackageResponse,
    summary="Get Data Package"
)
def get_data_package(package_id: UUID, store: LedgerStore = Depends(get_store)):
    try:
        return _package_response(get_package(store, package_id))
    except Exception as e:
        raise to_http_exception(e, "get package")


@router.post(
    "/packages/{package_id}/sell",
    response_model=AllocationResponse,
    summary="Sell Data Package",
    description="Sell an open package; its sessions and the package are updated atomically."
)
def sell_data_package(
    package_id: UUID,
    request: SellPackageRequest,
    store: LedgerStore = Depends(get_store),
):
    try:
        result = sell_package(store, package_id, request.sale_price, request.buyer_ref)
        return _allocation_response(result)
    except Exception as e:
        raise to_http_exception(e, "sell package")
