"""
Service intake and lifecycle.

Loads the data the estimation rules need, persists new service tickets with
their repeat/warranty flags, and moves tickets through assignment,
completion and delivery, awarding technician points on the way.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from repair_api.config import settings
from repair_api.exceptions import BusinessRuleError, NotFoundError, ValidationError
from repair_api.middleware import bind_ticket
from repair_api.models.service import (
    ACTIVE_SERVICE_STATUSES,
    CustomerDevice,
    Fault,
    Service,
    ServiceStatus,
)
from repair_api.services import notification_service, points_service
from repair_api.services.estimation_rules import (
    PreviousServiceInfo,
    WarrantyReason,
    apply_warranty_policy,
    as_utc,
    compute_estimate,
    compute_warranty_estimate,
    detect_repeat_service,
)

logger = logging.getLogger(__name__)


def generate_ticket_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{settings.TICKET_NUMBER_PREFIX}-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


async def get_device(db: AsyncSession, company_id: int, device_id: int) -> CustomerDevice:
    result = await db.execute(
        select(CustomerDevice).where(
            CustomerDevice.id == device_id,
            CustomerDevice.company_id == company_id,
        )
    )
    device = result.scalar_one_or_none()
    if not device:
        raise NotFoundError("Customer device", device_id)
    return device


async def get_active_faults(db: AsyncSession, company_id: int, fault_ids: list[int]) -> list[Fault]:
    """
    Load the selected faults, rejecting unknown or inactive ones.

    Raises:
        ValidationError: empty selection, or ids that are not active faults of the company
    """
    if not fault_ids:
        raise ValidationError(
            "At least one fault must be selected",
            errors=[{"field": "fault_ids", "message": "must not be empty", "type": "value_error"}],
        )

    unique_ids = list(dict.fromkeys(fault_ids))
    result = await db.execute(
        select(Fault).where(
            Fault.company_id == company_id,
            Fault.id.in_(unique_ids),
            Fault.is_active.is_(True),
        )
    )
    faults = list(result.scalars().all())

    missing = set(unique_ids) - {fault.id for fault in faults}
    if missing:
        raise ValidationError(
            f"Unknown or inactive faults: {', '.join(str(i) for i in sorted(missing))}",
            errors=[{"field": "fault_ids", "message": "unknown or inactive fault", "type": "value_error"}],
        )
    return faults


async def get_device_history(
    db: AsyncSession,
    company_id: int,
    device_id: int,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> list[Service]:
    """Non-cancelled services on a device inside the look-back window, newest first."""
    now = now or datetime.now(timezone.utc)
    if window_days is None:
        window_days = settings.REPEAT_SERVICE_WINDOW_DAYS
    since = now - timedelta(days=window_days)

    result = await db.execute(
        select(Service)
        .where(
            Service.company_id == company_id,
            Service.customer_device_id == device_id,
            Service.status != ServiceStatus.CANCELLED.value,
            Service.created_at >= since,
        )
        .order_by(Service.created_at.desc(), Service.id.desc())
    )
    return list(result.scalars().all())


async def check_previous_services(
    db: AsyncSession,
    company_id: int,
    device_id: int,
    fault_ids: list[int],
    now: Optional[datetime] = None,
) -> PreviousServiceInfo:
    """Repeat-service information for a prospective intake."""
    await get_device(db, company_id, device_id)
    history = await get_device_history(db, company_id, device_id, now=now)
    return detect_repeat_service(device_id, fault_ids, history, now=now)


async def estimate_faults(db: AsyncSession, company_id: int, fault_ids: list[int]) -> float:
    """Estimate for a fault selection against the company's active catalog."""
    if not fault_ids:
        return 0.0
    result = await db.execute(
        select(Fault).where(
            Fault.company_id == company_id,
            Fault.id.in_(set(fault_ids)),
            Fault.is_active.is_(True),
        )
    )
    return compute_estimate(fault_ids, list(result.scalars().all()))


async def get_service(db: AsyncSession, company_id: int, service_id: int) -> Service:
    result = await db.execute(
        select(Service)
        .options(selectinload(Service.faults), selectinload(Service.customer_device))
        .where(Service.id == service_id, Service.company_id == company_id)
    )
    service = result.scalar_one_or_none()
    if not service:
        raise NotFoundError("Service", service_id)
    bind_ticket(service.ticket_number)
    return service


async def create_service(
    db: AsyncSession,
    company_id: int,
    customer_id: int,
    device_id: int,
    fault_ids: list[int],
    intake_notes: Optional[str] = None,
    estimated_cost: Optional[float] = None,
    warranty_override: bool = False,
    created_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[Service, PreviousServiceInfo]:
    """
    Check a device in for repair.

    Runs repeat detection against the device history and applies the
    warranty policy. When no estimate is supplied it is computed from the
    fault catalog, excluding faults covered by a same-fault warranty.

    Raises:
        NotFoundError: device not found in the company
        ValidationError: bad fault selection, or device not owned by the customer
        BusinessRuleError: warranty override without a previous service
    """
    now = now or datetime.now(timezone.utc)
    device = await get_device(db, company_id, device_id)
    if device.customer_id != customer_id:
        raise ValidationError(
            f"Device {device_id} does not belong to customer {customer_id}",
            errors=[{"field": "customer_device_id", "message": "device belongs to another customer", "type": "value_error"}],
        )

    faults = await get_active_faults(db, company_id, fault_ids)
    ordered_ids = list(dict.fromkeys(fault_ids))

    history = await get_device_history(db, company_id, device_id, now=now)
    info = detect_repeat_service(device_id, ordered_ids, history, now=now)

    if warranty_override and not info.is_repeated:
        raise BusinessRuleError(
            f"Warranty override requires a previous service on this device within "
            f"{settings.REPEAT_SERVICE_WINDOW_DAYS} days"
        )
    decision = apply_warranty_policy(info, staff_override=warranty_override)

    if estimated_cost is None:
        if decision.warranty_reason == WarrantyReason.SAME_FAULT:
            estimated_cost = compute_warranty_estimate(ordered_ids, info.matching_fault_ids, faults)
        else:
            estimated_cost = compute_estimate(ordered_ids, faults)

    service = Service(
        company_id=company_id,
        ticket_number=generate_ticket_number(now),
        customer_id=customer_id,
        customer_device_id=device_id,
        status=ServiceStatus.PENDING.value,
        intake_notes=intake_notes,
        estimated_cost=round(float(estimated_cost), 2),
        is_repeated_service=info.is_repeated,
        previous_service_id=info.last_service.id if info.last_service else None,
        is_warranty_repair=decision.is_warranty_repair,
        warranty_reason=decision.warranty_reason.value if decision.warranty_reason else None,
        matching_fault_ids=list(info.matching_fault_ids),
        created_by_id=created_by,
        created_at=now,
    )
    bind_ticket(service.ticket_number)
    fault_by_id = {fault.id: fault for fault in faults}
    service.faults = [fault_by_id[fault_id] for fault_id in ordered_ids]
    db.add(service)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(service)

    logger.info(
        "Service created",
        extra={
            "service_id": service.id,
            "ticket_number": service.ticket_number,
            "is_repeated_service": service.is_repeated_service,
            "is_warranty_repair": service.is_warranty_repair,
            "warranty_reason": service.warranty_reason,
        },
    )
    return service, info


async def count_active_jobs(db: AsyncSession, profile_id: int, exclude_service_id: Optional[int] = None) -> int:
    query = select(func.count()).select_from(Service).where(
        Service.assigned_technician_id == profile_id,
        Service.status.in_(ACTIVE_SERVICE_STATUSES),
    )
    if exclude_service_id is not None:
        query = query.where(Service.id != exclude_service_id)
    return (await db.execute(query)).scalar() or 0


async def assign_technician(
    db: AsyncSession, company_id: int, service_id: int, profile_id: int
) -> Service:
    """
    Assign a service to a technician and start work on it.

    Raises:
        BusinessRuleError: service already finished, technician unavailable or at capacity
    """
    service = await get_service(db, company_id, service_id)
    if service.status not in ACTIVE_SERVICE_STATUSES:
        raise BusinessRuleError(f"Service {service.ticket_number} is {service.status} and cannot be assigned")

    try:
        profile = await points_service.lock_profile(db, profile_id, company_id)
        if not profile.is_available:
            raise BusinessRuleError("Technician is not available for new jobs")

        active = await count_active_jobs(db, profile.id, exclude_service_id=service.id)
        if active >= profile.max_concurrent_jobs:
            raise BusinessRuleError(
                f"Technician already has {active} active jobs (limit {profile.max_concurrent_jobs})"
            )

        service.assigned_technician_id = profile.id
        service.status = ServiceStatus.IN_PROGRESS.value
        notification_service.notify_service_assigned(db, profile, service)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Service {service.ticket_number} assigned to technician profile {profile.id}")
    return service


async def complete_service(
    db: AsyncSession,
    company_id: int,
    service_id: int,
    actual_cost: Optional[float] = None,
    now: Optional[datetime] = None,
) -> tuple[Service, points_service.PointsAwardResult]:
    """Mark an assigned service completed and award the technician's completion points."""
    now = now or datetime.now(timezone.utc)
    service = await get_service(db, company_id, service_id)
    if service.status not in ACTIVE_SERVICE_STATUSES:
        raise BusinessRuleError(f"Service {service.ticket_number} is {service.status} and cannot be completed")
    if not service.assigned_technician_id:
        raise BusinessRuleError("Service has no assigned technician")

    try:
        profile = await points_service.lock_profile(db, service.assigned_technician_id)
        completion_hours = (as_utc(now) - as_utc(service.created_at)).total_seconds() / 3600

        service.status = ServiceStatus.COMPLETED.value
        service.completed_at = now
        if actual_cost is not None:
            service.actual_cost = round(float(actual_cost), 2)

        award = await points_service.award_service_completion(
            db, profile, service, completion_hours=completion_hours
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Service {service.ticket_number} completed; {award.points} points to profile {profile.id}"
    )
    return service, award


async def deliver_service(
    db: AsyncSession,
    company_id: int,
    service_id: int,
    rating: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[Service, int]:
    """Hand a completed service back to the customer, recording an optional rating.

    Returns the service and the points awarded for delivery and rating.
    """
    now = now or datetime.now(timezone.utc)
    service = await get_service(db, company_id, service_id)
    if service.status != ServiceStatus.COMPLETED.value:
        raise BusinessRuleError(f"Service {service.ticket_number} is {service.status} and cannot be delivered")
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    try:
        profile = await points_service.lock_profile(db, service.assigned_technician_id)
        service.status = ServiceStatus.DELIVERED.value
        service.delivered_at = now

        awarded = (await points_service.award_delivery(db, profile, service.id)).points
        if rating is not None:
            service.rating = rating
            rating_award = await points_service.award_rating(db, profile, rating, service.id)
            if rating_award:
                awarded += rating_award.points
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Service {service.ticket_number} delivered; {awarded} points to profile {profile.id}")
    return service, awarded
