"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Money and duration fields are Decimals and serialize as strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.payout import PayoutMethod
from domain.rate_config import RecordingMode


# ============================================================================
# Session Models
# ============================================================================

class StartSessionRequest(BaseModel):
    """Request to start a recording session."""
    mode: RecordingMode = Field(..., description="'narrated' or 'silent'")
    label: Optional[str] = Field(None, description="Recording type, defaults to 'Field Recording'")

    class Config:
        json_schema_extra = {
            "example": {
                "mode": "narrated",
                "label": "Kitchen walkthrough"
            }
        }


class UpdateDurationRequest(BaseModel):
    """Elapsed recording time reported by the recording client."""
    elapsed_minutes: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "elapsed_minutes": "12.50"
            }
        }


class MarkUploadedRequest(BaseModel):
    """Upload confirmation; the storage key is generated when omitted."""
    storage_key: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "storage_key": "recordings/2025-01-01/123e4567-e89b-12d3-a456-426614174000/field-recording.mp4"
            }
        }


class SessionResponse(BaseModel):
    """Single recording session."""
    session_id: UUID
    user_id: UUID
    mode: str
    label: str
    status: str
    data_sale_status: Optional[str] = None
    duration_minutes: Decimal
    data_size_mb: Decimal
    estimated_earnings: Decimal
    actual_earnings: Decimal
    user_payout: Decimal
    platform_revenue: Decimal
    storage_key: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    sale_rate_version: Optional[int] = None
    payout_id: Optional[UUID] = None

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "123e4567-e89b-12d3-a456-426614174000",
                "user_id": "123e4567-e89b-12d3-a456-426614174001",
                "mode": "narrated",
                "label": "Field Recording",
                "status": "completed",
                "data_sale_status": "uploaded",
                "duration_minutes": "10.00",
                "data_size_mb": "450.0",
                "estimated_earnings": "2.80",
                "actual_earnings": "0.00",
                "user_payout": "0.00",
                "platform_revenue": "0.00",
                "storage_key": "recordings/2025-01-01/123e4567-e89b-12d3-a456-426614174000/field-recording.mp4",
                "started_at": "2025-01-01T12:00:00Z",
                "ended_at": "2025-01-01T12:10:00Z",
                "sold_at": None,
                "sale_rate_version": None,
                "payout_id": None
            }
        }


class SessionListResponse(BaseModel):
    items: List[SessionResponse]
    total_count: int


# ============================================================================
# Sale Models
# ============================================================================

class SellSessionsRequest(BaseModel):
    """Request to sell a set of sessions for one total price."""
    session_ids: List[UUID] = Field(..., description="Sessions to sell together")
    total_sale_price: Decimal = Field(..., description="Price paid by the buyer for the whole set")
    buyer_ref: Optional[str] = Field(None, description="External buyer reference")

    class Config:
        json_schema_extra = {
            "example": {
                "session_ids": [
                    "123e4567-e89b-12d3-a456-426614174000",
                    "123e4567-e89b-12d3-a456-426614174001"
                ],
                "total_sale_price": "100.00",
                "buyer_ref": "buyer-42"
            }
        }


class SessionAllocationResponse(BaseModel):
    """One session's share of a sale."""
    session_id: UUID
    user_id: UUID
    mode: str
    duration_minutes: Decimal
    share: Decimal
    user_payout: Decimal
    platform_revenue: Decimal


class AllocationResponse(BaseModel):
    """Result of a committed sale."""
    sold_at: datetime
    total_sale_price: Decimal
    total_minutes: Decimal
    rate_version: int
    buyer_ref: Optional[str] = None
    package_id: Optional[UUID] = None
    session_count: int
    total_allocated: Decimal
    total_user_payout: Decimal
    total_platform_revenue: Decimal
    rounding_difference: Decimal
    allocations: List[SessionAllocationResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "sold_at": "2025-01-01T12:00:00Z",
                "total_sale_price": "100.00",
                "total_minutes": "40.00",
                "rate_version": 1,
                "buyer_ref": "buyer-42",
                "package_id": None,
                "session_count": 2,
                "total_allocated": "100.00",
                "total_user_payout": "55.00",
                "total_platform_revenue": "45.00",
                "rounding_difference": "0.00",
                "allocations": []
            }
        }


# ============================================================================
# Package Models
# ============================================================================

class CreatePackageRequest(BaseModel):
    """Request to bundle sessions into a data package."""
    session_ids: List[UUID]
    name: Optional[str] = None
    category: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "session_ids": ["123e4567-e89b-12d3-a456-426614174000"],
                "name": "Residential interiors, January",
                "category": "interiors"
            }
        }


class SellPackageRequest(BaseModel):
    sale_price: Decimal
    buyer_ref: Optional[str] = None


class PackageResponse(BaseModel):
    package_id: UUID
    name: str
    category: str
    session_ids: List[UUID]
    total_size_mb: Decimal
    total_duration_minutes: Decimal
    status: str
    sale_price: Optional[Decimal] = None
    buyer_ref: Optional[str] = None
    created_at: datetime
    sold_at: Optional[datetime] = None


class PackageListResponse(BaseModel):
    items: List[PackageResponse]
    total_count: int


# ============================================================================
# Rate Models
# ============================================================================

class RateConfigResponse(BaseModel):
    """Current per-minute rates and revenue splits."""
    version: int
    narrated_rate: Decimal
    narrated_user_split: Decimal
    narrated_platform_split: Decimal
    silent_rate: Decimal
    silent_user_split: Decimal
    silent_platform_split: Decimal
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "version": 1,
                "narrated_rate": "0.28",
                "narrated_user_split": "0.50",
                "narrated_platform_split": "0.50",
                "silent_rate": "0.12",
                "silent_user_split": "0.30",
                "silent_platform_split": "0.70",
                "updated_at": None
            }
        }


class RateUpdateRequest(BaseModel):
    """Partial rate update; a lone split side derives its counterpart."""
    narrated_rate: Optional[Decimal] = None
    narrated_user_split: Optional[Decimal] = None
    narrated_platform_split: Optional[Decimal] = None
    silent_rate: Optional[Decimal] = None
    silent_user_split: Optional[Decimal] = None
    silent_platform_split: Optional[Decimal] = None

    class Config:
        json_schema_extra = {
            "example": {
                "narrated_rate": "0.30",
                "narrated_user_split": "0.60"
            }
        }


# ============================================================================
# Earnings Models
# ============================================================================

class EarningsSummaryResponse(BaseModel):
    user_id: UUID
    session_count: int
    total_estimated: Decimal
    total_actual_earned: Decimal
    total_user_payouts: Decimal
    total_platform_revenue: Decimal
    paid_out: Decimal
    pending_payout: Decimal
    available_for_payout: Decimal
    total_data_gb: Decimal
    total_hours: Decimal


class DashboardResponse(BaseModel):
    total_users: int
    total_sessions: int
    sessions_by_sale_status: Dict[str, int]
    total_data_mb: Decimal
    total_data_gb: Decimal
    total_hours: Decimal
    total_estimated: Decimal
    total_actual_sales: Decimal
    total_user_payouts: Decimal
    total_platform_revenue: Decimal
    total_payouts: int
    completed_payout_amount: Decimal
    pending_payout_amount: Decimal


# ============================================================================
# Payout Models
# ============================================================================

class PayoutRequest(BaseModel):
    """Request to withdraw part of the pending payout balance."""
    amount: Decimal
    idempotency_key: Optional[str] = Field(
        None,
        description="Repeat the same key to retry safely; the original payout is returned"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "amount": "25.00",
                "idempotency_key": "withdraw-2025-01-01"
            }
        }


class RejectPayoutRequest(BaseModel):
    reason: Optional[str] = None


class PayoutDestinationRequest(BaseModel):
    method: PayoutMethod = PayoutMethod.STRIPE


class PayeeResponse(BaseModel):
    user_id: UUID
    payout_method: str
    destination_ref: Optional[str] = None
    updated_at: Optional[datetime] = None


class PayoutResponse(BaseModel):
    payout_id: UUID
    user_id: UUID
    amount: Decimal
    method: str
    status: str
    idempotency_key: Optional[str] = None
    transfer_ref: Optional[str] = None
    rejection_reason: Optional[str] = None
    funded_session_ids: List[UUID] = []
    created_at: datetime
    completed_at: Optional[datetime] = None


class PayoutListResponse(BaseModel):
    items: List[PayoutResponse]
    total_count: int


class SettlementResponse(BaseModel):
    """Result of processing a payout."""
    payout: PayoutResponse
    transfer_ref: str
    funded_session_ids: List[UUID]
