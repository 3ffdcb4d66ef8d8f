from fastapi import APIRouter, status

from repair_api.api.deps import DbSession, CurrentUser, AdminUser
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.service import (
    AssignRequest,
    CheckPreviousRequest,
    CompleteRequest,
    DeliverRequest,
    EstimateRequest,
    EstimateResponse,
    PreviousServiceResponse,
    ServiceCreate,
    ServiceIntakeResponse,
    ServiceResponse,
    ServiceTransitionResponse,
)
from repair_api.services import service_intake

router = APIRouter()


@router.post("/estimate", response_model=EstimateResponse)
async def estimate(data: EstimateRequest, db: DbSession, current_user: CurrentUser):
    """Price a fault selection. Duplicates count once; unknown faults add nothing."""
    cost = await service_intake.estimate_faults(db, current_user.company_id, data.fault_ids)
    return EstimateResponse(fault_ids=list(dict.fromkeys(data.fault_ids)), estimated_cost=cost)


@router.post(
    "/check-previous",
    response_model=PreviousServiceResponse,
    responses=get_error_responses(404),
)
async def check_previous(data: CheckPreviousRequest, db: DbSession, current_user: CurrentUser):
    """Check a device's recent history for a repeat or same-fault visit."""
    info = await service_intake.check_previous_services(
        db, current_user.company_id, data.customer_device_id, data.fault_ids
    )
    return PreviousServiceResponse.from_info(info)


@router.post(
    "",
    response_model=ServiceIntakeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=get_error_responses(400, 404, 422),
)
async def create_service(data: ServiceCreate, db: DbSession, current_user: CurrentUser):
    """Check a device in for repair."""
    service, info = await service_intake.create_service(
        db,
        current_user.company_id,
        customer_id=data.customer_id,
        device_id=data.customer_device_id,
        fault_ids=data.fault_ids,
        intake_notes=data.intake_notes,
        estimated_cost=data.estimated_cost,
        warranty_override=data.warranty_override,
        created_by=current_user.id,
    )
    return ServiceIntakeResponse(
        service=ServiceResponse.model_validate(service),
        previous_service=PreviousServiceResponse.from_info(info),
    )


@router.get("/{service_id}", response_model=ServiceResponse, responses=get_error_responses(404))
async def get_service(service_id: int, db: DbSession, current_user: CurrentUser):
    """Get a single service by ID."""
    return await service_intake.get_service(db, current_user.company_id, service_id)


@router.post(
    "/{service_id}/assign",
    response_model=ServiceResponse,
    responses=get_error_responses(400, 403, 404),
)
async def assign_service(service_id: int, data: AssignRequest, db: DbSession, admin: AdminUser):
    """Assign a service to a technician with free capacity."""
    return await service_intake.assign_technician(db, admin.company_id, service_id, data.technician_id)


@router.post(
    "/{service_id}/complete",
    response_model=ServiceTransitionResponse,
    responses=get_error_responses(400, 404, 409),
)
async def complete_service(service_id: int, data: CompleteRequest, db: DbSession, current_user: CurrentUser):
    """Mark a service completed and award the technician's points."""
    service, award = await service_intake.complete_service(
        db, current_user.company_id, service_id, actual_cost=data.actual_cost
    )
    return ServiceTransitionResponse(
        service=ServiceResponse.model_validate(service),
        points_awarded=award.points,
    )


@router.post(
    "/{service_id}/deliver",
    response_model=ServiceTransitionResponse,
    responses=get_error_responses(400, 404, 409),
)
async def deliver_service(service_id: int, data: DeliverRequest, db: DbSession, current_user: CurrentUser):
    """Hand a completed service back to the customer with an optional rating."""
    service, points = await service_intake.deliver_service(
        db, current_user.company_id, service_id, rating=data.rating
    )
    return ServiceTransitionResponse(
        service=ServiceResponse.model_validate(service),
        points_awarded=points,
    )
