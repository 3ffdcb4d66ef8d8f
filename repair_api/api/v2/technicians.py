from fastapi import APIRouter, status, Query
from sqlalchemy import select, func
from typing import Optional
import logging

from repair_api.api.deps import DbSession, CurrentUser, AdminUser
from repair_api.exceptions import NotFoundError
from repair_api.models.technician import TechnicianLevel, TechnicianProfile, TechnicianPromotion
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.technician import (
    LevelSummary,
    PenaltyRequest,
    PointsAdjustmentRequest,
    PointsChangeResponse,
    PointsHistoryListResponse,
    PointsSummaryResponse,
    PromoteRequest,
    PromotionCandidateResponse,
    PromotionEligibilityResponse,
    PromotionRecordResponse,
    PromotionResponse,
    TechnicianCreate,
    TechnicianListResponse,
    TechnicianResponse,
    TechnicianUpdate,
)
from repair_api.services import points_service
from repair_api.services.level_engine import sort_levels
from repair_api.services.technician_setup import create_technician_profile

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_profile(db, company_id: int, technician_id: int) -> TechnicianProfile:
    result = await db.execute(
        select(TechnicianProfile).where(
            TechnicianProfile.id == technician_id,
            TechnicianProfile.company_id == company_id,
        )
    )
    profile = result.scalar_one_or_none()
    if not profile:
        raise NotFoundError("Technician profile", technician_id)
    return profile


async def _level_of(db, profile: TechnicianProfile) -> Optional[TechnicianLevel]:
    if profile.current_level_id is None:
        return None
    return await db.get(TechnicianLevel, profile.current_level_id)


def _summary(level) -> Optional[LevelSummary]:
    return LevelSummary.model_validate(level) if level else None


@router.get("", response_model=TechnicianListResponse)
async def list_technicians(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    is_available: Optional[bool] = None,
    level_id: Optional[int] = None,
):
    """List technicians with pagination and filtering."""
    query = select(TechnicianProfile).where(TechnicianProfile.company_id == current_user.company_id)
    if is_available is not None:
        query = query.where(TechnicianProfile.is_available == is_available)
    if level_id:
        query = query.where(TechnicianProfile.current_level_id == level_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(TechnicianProfile.total_points.desc(), TechnicianProfile.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    levels = {level.id: level for level in await points_service.get_company_levels(db, current_user.company_id)}

    return TechnicianListResponse(
        items=[
            TechnicianResponse.from_profile(profile, levels.get(profile.current_level_id))
            for profile in result.scalars().all()
        ],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "",
    response_model=TechnicianResponse,
    status_code=status.HTTP_201_CREATED,
    responses=get_error_responses(403, 404, 409),
)
async def create_technician(data: TechnicianCreate, db: DbSession, admin: AdminUser):
    """Assign the technician role to a user and create their profile."""
    profile = await create_technician_profile(
        db, admin.company_id, data.user_id, max_concurrent_jobs=data.max_concurrent_jobs
    )
    return TechnicianResponse.from_profile(profile, await _level_of(db, profile))


@router.get("/promotion-candidates", response_model=list[PromotionCandidateResponse])
async def list_promotion_candidates(db: DbSession, admin: AdminUser):
    """Technicians whose points qualify for a higher level, furthest past the threshold first."""
    candidates = await points_service.get_promotion_candidates(db, admin.company_id)
    return [
        PromotionCandidateResponse(
            technician_id=profile.id,
            user_id=profile.user_id,
            name=profile.user.full_name if profile.user else "",
            total_points=candidate.total_points,
            current_level=_summary(candidate.current_level),
            eligible_level=_summary(candidate.eligible_level),
            points_above_threshold=candidate.points_above_threshold,
        )
        for profile, candidate in candidates
    ]


@router.get("/{technician_id}", response_model=TechnicianResponse, responses=get_error_responses(404))
async def get_technician(technician_id: int, db: DbSession, current_user: CurrentUser):
    """Get a single technician by ID."""
    profile = await _get_profile(db, current_user.company_id, technician_id)
    return TechnicianResponse.from_profile(profile, await _level_of(db, profile))


@router.patch("/{technician_id}", response_model=TechnicianResponse, responses=get_error_responses(403, 404))
async def update_technician(
    technician_id: int,
    data: TechnicianUpdate,
    db: DbSession,
    admin: AdminUser,
):
    """Update availability or the concurrent job limit."""
    profile = await _get_profile(db, admin.company_id, technician_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    await db.commit()
    await db.refresh(profile)
    return TechnicianResponse.from_profile(profile, await _level_of(db, profile))


@router.get(
    "/{technician_id}/promotion-eligibility",
    response_model=PromotionEligibilityResponse,
    responses=get_error_responses(404, 409),
)
async def get_promotion_eligibility(technician_id: int, db: DbSession, current_user: CurrentUser):
    """Whether the technician's points qualify for a higher level."""
    profile = await _get_profile(db, current_user.company_id, technician_id)
    candidate = await points_service.get_promotion_eligibility(db, profile)

    if not candidate:
        return PromotionEligibilityResponse(
            technician_id=profile.id,
            eligible=False,
            total_points=profile.total_points,
            current_level=_summary(await _level_of(db, profile)),
        )
    return PromotionEligibilityResponse(
        technician_id=profile.id,
        eligible=True,
        total_points=candidate.total_points,
        current_level=_summary(candidate.current_level),
        eligible_level=_summary(candidate.eligible_level),
        points_above_threshold=candidate.points_above_threshold,
    )


@router.post(
    "/{technician_id}/promote",
    response_model=PromotionResponse,
    responses=get_error_responses(400, 403, 404),
)
async def promote_technician(
    technician_id: int,
    data: PromoteRequest,
    db: DbSession,
    admin: AdminUser,
):
    """Promote a technician to a higher level and grant the level's bonus."""
    result = await points_service.promote(
        db,
        technician_id,
        data.to_level_id,
        promoted_by=admin.id,
        notes=data.notes,
        company_id=admin.company_id,
    )
    return PromotionResponse(
        technician_id=result.profile.id,
        from_level=_summary(result.from_level),
        to_level=_summary(result.to_level),
        bonus_points=result.bonus_points,
        total_points=result.profile.total_points,
        promoted_at=result.profile.level_promoted_at,
    )


@router.get("/{technician_id}/promotions", response_model=list[PromotionRecordResponse])
async def list_promotions(technician_id: int, db: DbSession, current_user: CurrentUser):
    """Promotion history, newest first."""
    profile = await _get_profile(db, current_user.company_id, technician_id)
    result = await db.execute(
        select(TechnicianPromotion)
        .where(TechnicianPromotion.technician_profile_id == profile.id)
        .order_by(TechnicianPromotion.created_at.desc(), TechnicianPromotion.id.desc())
    )
    return result.scalars().all()


@router.post(
    "/{technician_id}/points-adjustment",
    response_model=PointsChangeResponse,
    responses=get_error_responses(403, 404, 409, 422),
)
async def adjust_points(
    technician_id: int,
    data: PointsAdjustmentRequest,
    db: DbSession,
    admin: AdminUser,
):
    """Manually add or deduct points. A reason is required."""
    result = await points_service.adjust_points(
        db,
        technician_id,
        data.points,
        data.reason,
        adjusted_by=admin.id,
        company_id=admin.company_id,
    )
    return PointsChangeResponse(
        technician_id=result.profile.id,
        points=result.points,
        total_points=result.profile.total_points,
        current_level=_summary(result.level),
    )


@router.post(
    "/{technician_id}/penalties",
    response_model=PointsChangeResponse,
    responses=get_error_responses(403, 404, 409, 422),
)
async def apply_penalty(
    technician_id: int,
    data: PenaltyRequest,
    db: DbSession,
    admin: AdminUser,
):
    """Deduct late-completion or rework penalty points."""
    result = await points_service.apply_penalty(
        db,
        technician_id,
        data.type,
        service_id=data.service_id,
        reason=data.reason,
        applied_by=admin.id,
        company_id=admin.company_id,
    )
    return PointsChangeResponse(
        technician_id=result.profile.id,
        points=result.points,
        total_points=result.profile.total_points,
        current_level=_summary(result.level),
    )


@router.get("/{technician_id}/points-history", response_model=PointsHistoryListResponse)
async def get_points_history(
    technician_id: int,
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Ledger entries, newest first."""
    profile = await _get_profile(db, current_user.company_id, technician_id)
    items, total = await points_service.get_points_history(db, profile.id, page, page_size)
    return PointsHistoryListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{technician_id}/points-summary", response_model=PointsSummaryResponse)
async def get_points_summary(technician_id: int, db: DbSession, current_user: CurrentUser):
    """Points earned this month and week, plus distance to the next level."""
    profile = await _get_profile(db, current_user.company_id, technician_id)
    summary = await points_service.get_points_summary(db, profile)

    current = await _level_of(db, profile)
    levels = sort_levels(await points_service.get_company_levels(db, profile.company_id))
    next_level = None
    if current:
        next_level = next((level for level in levels if level.sort_order > current.sort_order), None)

    return PointsSummaryResponse(
        technician_id=profile.id,
        current_level=_summary(current),
        next_level=_summary(next_level),
        points_to_next_level=max(next_level.min_points - profile.total_points, 0) if next_level else None,
        **summary,
    )
