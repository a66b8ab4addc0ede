"""
Rate API Endpoints.

Read and update per-minute rates and user/platform revenue splits.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from api.errors import to_http_exception
from api.models import RateConfigResponse, RateUpdateRequest
from domain.rate_config import RateConfig, RateUpdate
from repositories.store import LedgerStore
from services.rate_config_service import get_rates, update_rates

router = APIRouter()


def _rates_response(config: RateConfig) -> RateConfigResponse:
    return RateConfigResponse(
        version=config.version,
        narrated_rate=config.narrated_rate,
        narrated_user_split=config.narrated_user_split,
        narrated_platform_split=config.narrated_platform_split,
        silent_rate=config.silent_rate,
        silent_user_split=config.silent_user_split,
        silent_platform_split=config.silent_platform_split,
        updated_at=config.updated_at,
    )


@router.get(
    "/rates",
    response_model=RateConfigResponse,
    summary="Get Rates",
    description="Current rates; platform defaults are created on first read."
)
def get_current_rates(store: LedgerStore = Depends(get_store)):
    try:
        return _rates_response(get_rates(store))
    except Exception as e:
        raise to_http_exception(e, "get rates")


@router.put(
    "/rates",
    response_model=RateConfigResponse,
    summary="Update Rates",
    description="Partially update rates and splits. Already sold sessions are not affected."
)
def update_current_rates(request: RateUpdateRequest, store: LedgerStore = Depends(get_store)):
    """
    Update rates.

    **Split rules:**
    - Only one side of a split given: the other side becomes `1 - value`
    - Both sides given: they must sum to 1, otherwise 400
    - Splits must lie in [0, 1]; rates must be >= 0
    """
    try:
        update = RateUpdate(
            narrated_rate=request.narrated_rate,
            narrated_user_split=request.narrated_user_split,
            narrated_platform_split=request.narrated_platform_split,
            silent_rate=request.silent_rate,
            silent_user_split=request.silent_user_split,
            silent_platform_split=request.silent_platform_split,
        )
        return _rates_response(update_rates(store, update))
    except Exception as e:
        raise to_http_exception(e, "update rates")
