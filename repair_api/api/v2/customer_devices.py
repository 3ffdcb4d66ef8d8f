from fastapi import APIRouter, status, Query

from repair_api.api.deps import DbSession, CurrentUser
from repair_api.models.service import CustomerDevice
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.service import (
    CustomerDeviceCreate,
    CustomerDeviceResponse,
    ServiceResponse,
)
from repair_api.services import service_intake

router = APIRouter()


@router.post("", response_model=CustomerDeviceResponse, status_code=status.HTTP_201_CREATED)
async def register_device(data: CustomerDeviceCreate, db: DbSession, current_user: CurrentUser):
    """Register a customer's device for intake."""
    device = CustomerDevice(company_id=current_user.company_id, **data.model_dump())
    db.add(device)
    await db.commit()
    await db.refresh(device)
    return device


@router.get(
    "/{device_id}/services",
    response_model=list[ServiceResponse],
    responses=get_error_responses(404),
)
async def list_device_services(
    device_id: int,
    db: DbSession,
    current_user: CurrentUser,
    window_days: int | None = Query(None, ge=1, le=3650),
):
    """Recent non-cancelled services on a device, newest first."""
    await service_intake.get_device(db, current_user.company_id, device_id)
    return await service_intake.get_device_history(
        db, current_user.company_id, device_id, window_days=window_days
    )
