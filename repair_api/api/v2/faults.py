from fastapi import APIRouter, status
from sqlalchemy import select
import logging

from repair_api.api.deps import DbSession, CurrentUser, AdminUser
from repair_api.exceptions import ConflictError
from repair_api.models.service import Fault
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.service import FaultCreate, FaultResponse, FaultListResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=FaultListResponse)
async def list_faults(db: DbSession, current_user: CurrentUser, include_inactive: bool = False):
    """List the company's fault catalog."""
    query = select(Fault).where(Fault.company_id == current_user.company_id)
    if not include_inactive:
        query = query.where(Fault.is_active.is_(True))

    result = await db.execute(query.order_by(Fault.name))
    faults = result.scalars().all()
    return FaultListResponse(items=faults, total=len(faults))


@router.post(
    "",
    response_model=FaultResponse,
    status_code=status.HTTP_201_CREATED,
    responses=get_error_responses(403, 409),
)
async def create_fault(fault_data: FaultCreate, db: DbSession, admin: AdminUser):
    """Add a fault to the catalog."""
    data = fault_data.model_dump()
    data["code"] = data["code"].strip().upper()

    existing = await db.execute(
        select(Fault.id).where(Fault.company_id == admin.company_id, Fault.code == data["code"])
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f"Fault code {data['code']} already exists")

    fault = Fault(company_id=admin.company_id, **data)
    db.add(fault)
    await db.commit()
    await db.refresh(fault)
    logger.info(f"Fault {fault.code} created for company {admin.company_id}")
    return fault
