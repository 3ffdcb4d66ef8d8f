"""
Technician onboarding: default level table and technician profiles.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repair_api.exceptions import ConflictError, NotFoundError
from repair_api.models.technician import TechnicianLevel, TechnicianProfile
from repair_api.models.user import User
from repair_api.services.level_engine import resolve_level, validate_level_ranges
from repair_api.services.points_service import get_company_levels

logger = logging.getLogger(__name__)

TECHNICIAN_ROLE = "technician"

# Promotion bonus is 5% of the level's minimum points
DEFAULT_LEVELS = [
    {
        "code": "TRAINEE",
        "name": "Trainee",
        "min_points": 0,
        "max_points": 4999,
        "points_multiplier": 0.8,
        "incentive_percent": 0.0,
        "promotion_bonus_points": 0,
        "badge_color": "#9CA3AF",
        "description": "New technician in training",
    },
    {
        "code": "JUNIOR",
        "name": "Junior Technician",
        "min_points": 5000,
        "max_points": 14999,
        "points_multiplier": 1.0,
        "incentive_percent": 2.0,
        "promotion_bonus_points": 250,
        "badge_color": "#60A5FA",
        "description": "Handles routine repairs independently",
    },
    {
        "code": "TECHNICIAN",
        "name": "Technician",
        "min_points": 15000,
        "max_points": 49999,
        "points_multiplier": 1.1,
        "incentive_percent": 3.0,
        "promotion_bonus_points": 750,
        "badge_color": "#34D399",
        "description": "Experienced technician",
    },
    {
        "code": "SENIOR",
        "name": "Senior Technician",
        "min_points": 50000,
        "max_points": 99999,
        "points_multiplier": 1.2,
        "incentive_percent": 5.0,
        "promotion_bonus_points": 2500,
        "badge_color": "#FBBF24",
        "description": "Handles complex repairs and mentors juniors",
    },
    {
        "code": "EXPERT",
        "name": "Expert",
        "min_points": 100000,
        "max_points": 199999,
        "points_multiplier": 1.5,
        "incentive_percent": 8.0,
        "promotion_bonus_points": 5000,
        "badge_color": "#F97316",
        "description": "Board-level and specialist repairs",
    },
    {
        "code": "MASTER",
        "name": "Master Technician",
        "min_points": 200000,
        "max_points": None,
        "points_multiplier": 2.0,
        "incentive_percent": 10.0,
        "promotion_bonus_points": 10000,
        "badge_color": "#A855F7",
        "description": "Top tier",
    },
]


async def initialize_default_levels(db: AsyncSession, company_id: int) -> list[TechnicianLevel]:
    """Seed the default level table for a company that has none."""
    existing = await get_company_levels(db, company_id)
    if existing:
        raise ConflictError("Technician levels are already configured for this company")

    levels = [
        TechnicianLevel(company_id=company_id, sort_order=index + 1, **data)
        for index, data in enumerate(DEFAULT_LEVELS)
    ]
    validate_level_ranges(levels)
    db.add_all(levels)
    await db.commit()

    logger.info(f"Initialized {len(levels)} default technician levels for company {company_id}")
    return await get_company_levels(db, company_id)


async def create_technician_profile(
    db: AsyncSession,
    company_id: int,
    user_id: int,
    max_concurrent_jobs: Optional[int] = None,
) -> TechnicianProfile:
    """
    Assign the technician role to a user and create their profile at the base level.

    Raises:
        NotFoundError: user not in the company
        ConflictError: user already has a technician profile
        ConfigurationError: company has no usable level table
    """
    result = await db.execute(
        select(User).where(User.id == user_id, User.company_id == company_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User", user_id)

    existing = await db.execute(
        select(TechnicianProfile.id).where(TechnicianProfile.user_id == user_id)
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f"User {user_id} already has a technician profile")

    base_level = resolve_level(0, await get_company_levels(db, company_id))

    profile = TechnicianProfile(
        user_id=user.id,
        company_id=company_id,
        current_level_id=base_level.id,
        total_points=0,
    )
    if max_concurrent_jobs is not None:
        profile.max_concurrent_jobs = max_concurrent_jobs
    user.role = TECHNICIAN_ROLE
    db.add(profile)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(profile)

    logger.info(
        "Technician profile created",
        extra={"user_id": user.id, "profile_id": profile.id, "level": base_level.code},
    )
    return profile
