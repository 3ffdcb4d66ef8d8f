"""
Technician level table administration.

Each write validates the company's resulting level table before committing.
Single-level edits only need to avoid overlaps and bad bounds; the
``/validate`` endpoint reports whether the table is a complete partition.
"""

from fastapi import APIRouter, status
from sqlalchemy import select, func, or_
import logging

from repair_api.api.deps import DbSession, CurrentUser, AdminUser
from repair_api.exceptions import ConfigurationError, ConflictError, NotFoundError
from repair_api.models.technician import TechnicianLevel, TechnicianProfile, TechnicianPromotion
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.technician import (
    TechnicianLevelCreate,
    TechnicianLevelUpdate,
    TechnicianLevelResponse,
)
from repair_api.services.level_engine import validate_level_ranges
from repair_api.services.points_service import get_company_levels
from repair_api.services.technician_setup import initialize_default_levels

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_level(db, company_id: int, level_id: int) -> TechnicianLevel:
    result = await db.execute(
        select(TechnicianLevel).where(
            TechnicianLevel.id == level_id,
            TechnicianLevel.company_id == company_id,
        )
    )
    level = result.scalar_one_or_none()
    if not level:
        raise NotFoundError("Technician level", level_id)
    return level


@router.get("", response_model=list[TechnicianLevelResponse])
async def list_levels(db: DbSession, current_user: CurrentUser):
    """List the company's levels, lowest tier first."""
    return await get_company_levels(db, current_user.company_id)


@router.get("/validate")
async def validate_levels(db: DbSession, current_user: CurrentUser):
    """Report whether the level table covers every point total exactly once."""
    levels = await get_company_levels(db, current_user.company_id)
    try:
        validate_level_ranges(levels)
    except ConfigurationError as e:
        return {"valid": False, "detail": e.detail, "level_count": len(levels)}
    return {"valid": True, "detail": None, "level_count": len(levels)}


@router.post(
    "",
    response_model=TechnicianLevelResponse,
    status_code=status.HTTP_201_CREATED,
    responses=get_error_responses(403, 409, 422),
)
async def create_level(level_data: TechnicianLevelCreate, db: DbSession, admin: AdminUser):
    """Add a level to the company's table."""
    levels = await get_company_levels(db, admin.company_id)
    if any(level.code == level_data.code for level in levels):
        raise ConflictError(f"Level code {level_data.code} already exists")

    level = TechnicianLevel(company_id=admin.company_id, **level_data.model_dump())
    validate_level_ranges([*levels, level], require_complete=False)

    db.add(level)
    await db.commit()
    await db.refresh(level)
    logger.info(f"Technician level {level.code} created for company {admin.company_id}")
    return level


@router.post(
    "/initialize",
    response_model=list[TechnicianLevelResponse],
    status_code=status.HTTP_201_CREATED,
    responses=get_error_responses(403, 409),
)
async def initialize_levels(db: DbSession, admin: AdminUser):
    """Seed the default level table (TRAINEE through MASTER)."""
    return await initialize_default_levels(db, admin.company_id)


@router.patch(
    "/{level_id}",
    response_model=TechnicianLevelResponse,
    responses=get_error_responses(403, 404, 409),
)
async def update_level(
    level_id: int,
    level_data: TechnicianLevelUpdate,
    db: DbSession,
    admin: AdminUser,
):
    """Update a level's bounds or attributes."""
    level = await _get_level(db, admin.company_id, level_id)

    update_data = level_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(level, field, value)

    try:
        validate_level_ranges(await get_company_levels(db, admin.company_id), require_complete=False)
    except ConfigurationError:
        await db.rollback()
        raise

    await db.commit()
    await db.refresh(level)
    logger.info(f"Technician level {level.code} updated: {sorted(update_data)}")
    return level


@router.delete(
    "/{level_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=get_error_responses(403, 404, 409),
)
async def delete_level(level_id: int, db: DbSession, admin: AdminUser):
    """Delete a level no technician currently holds."""
    level = await _get_level(db, admin.company_id, level_id)

    holders = await db.execute(
        select(func.count()).select_from(TechnicianProfile).where(
            TechnicianProfile.current_level_id == level.id
        )
    )
    if holders.scalar():
        raise ConflictError(f"Level {level.code} is assigned to technicians and cannot be deleted")

    promotions = await db.execute(
        select(func.count()).select_from(TechnicianPromotion).where(
            or_(
                TechnicianPromotion.from_level_id == level.id,
                TechnicianPromotion.to_level_id == level.id,
            )
        )
    )
    if promotions.scalar():
        raise ConflictError(f"Level {level.code} appears in promotion history and cannot be deleted")

    await db.delete(level)
    await db.commit()
    logger.info(f"Technician level {level.code} deleted")
