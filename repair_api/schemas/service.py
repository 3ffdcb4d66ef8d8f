from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from repair_api.models.service import ServiceStatus


# ── Faults ────────────────────────────────────────────────


class FaultBase(BaseModel):
    """Base fault schema."""
    name: str = Field(..., min_length=1, max_length=150)
    code: str = Field(..., min_length=1, max_length=30)
    default_price: float = Field(0.0, ge=0)
    technician_points: int = Field(100, ge=0)
    is_active: bool = True


class FaultCreate(FaultBase):
    """Schema for creating a fault."""
    pass


class FaultResponse(FaultBase):
    """Schema for fault response."""
    id: int
    company_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FaultListResponse(BaseModel):
    items: list[FaultResponse]
    total: int


# ── Estimation and repeat detection ───────────────────────


class EstimateRequest(BaseModel):
    """Fault selection to price."""
    fault_ids: list[int] = Field(default_factory=list)


class EstimateResponse(BaseModel):
    fault_ids: list[int]
    estimated_cost: float


class CheckPreviousRequest(BaseModel):
    """Prospective intake to check against the device history."""
    customer_device_id: int
    fault_ids: list[int] = Field(default_factory=list)


class LastServiceSummary(BaseModel):
    id: int
    ticket_number: Optional[str] = None
    status: Optional[str] = None
    fault_ids: list[int]
    created_at: datetime
    completed_at: Optional[datetime] = None


class PreviousServiceResponse(BaseModel):
    """Repeat-service information for a device."""
    is_repeated: bool
    has_fault_match: bool
    days_since_last_service: Optional[int] = None
    matching_fault_ids: list[int]
    last_service: Optional[LastServiceSummary] = None

    @classmethod
    def from_info(cls, info) -> "PreviousServiceResponse":
        last = info.last_service
        return cls(
            is_repeated=info.is_repeated,
            has_fault_match=info.has_fault_match,
            days_since_last_service=info.days_since_last_service,
            matching_fault_ids=list(info.matching_fault_ids),
            last_service=LastServiceSummary(
                id=last.id,
                ticket_number=last.ticket_number,
                status=last.status,
                fault_ids=list(last.fault_ids),
                created_at=last.created_at,
                completed_at=last.completed_at,
            ) if last else None,
        )


# ── Service tickets ───────────────────────────────────────


class ServiceCreate(BaseModel):
    """Device intake."""
    customer_id: int
    customer_device_id: int
    fault_ids: list[int]
    intake_notes: Optional[str] = None
    # Staff-supplied estimate; computed from the fault catalog when omitted
    estimated_cost: Optional[float] = Field(None, ge=0)
    # Flag a repeat visit as warranty work when the faults differ
    warranty_override: bool = False


class ServiceResponse(BaseModel):
    """Schema for service response."""
    id: int
    company_id: int
    ticket_number: str
    customer_id: int
    customer_device_id: int
    status: ServiceStatus
    intake_notes: Optional[str] = None
    estimated_cost: float
    actual_cost: Optional[float] = None
    assigned_technician_id: Optional[int] = None
    is_repeated_service: bool
    previous_service_id: Optional[int] = None
    is_warranty_repair: bool
    warranty_reason: Optional[str] = None
    matching_fault_ids: list[int] = Field(default_factory=list)
    fault_ids: list[int] = Field(default_factory=list)
    rating: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceIntakeResponse(BaseModel):
    """Created service together with the repeat-service check that shaped it."""
    service: ServiceResponse
    previous_service: PreviousServiceResponse


class AssignRequest(BaseModel):
    technician_id: int


class CompleteRequest(BaseModel):
    actual_cost: Optional[float] = Field(None, ge=0)


class DeliverRequest(BaseModel):
    # Customer rating, 1-5
    rating: Optional[int] = Field(None, ge=1, le=5)


class ServiceTransitionResponse(BaseModel):
    """Service after completion or delivery, with the points it earned."""
    service: ServiceResponse
    points_awarded: int


# ── Customer devices ──────────────────────────────────────


class CustomerDeviceCreate(BaseModel):
    customer_id: int
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    imei: Optional[str] = Field(None, max_length=30)


class CustomerDeviceResponse(CustomerDeviceCreate):
    id: int
    company_id: int
    display_name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
