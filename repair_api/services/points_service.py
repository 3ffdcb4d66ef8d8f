"""Technician points and promotion service.

Every change to a technician's points goes through ``_apply_points``, which
writes one ledger row and moves ``total_points`` by the same amount, so the
sum of a technician's ledger always equals their total. The profile row is
read with ``SELECT ... FOR UPDATE`` so that concurrent completions and
ratings for the same technician serialise on it.

Operations that stand alone (manual adjustment, penalties, promotion) commit
their own transaction. Service completion, rating and delivery awards only
flush; the service intake layer commits them together with the status change.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from repair_api.config import settings
from repair_api.exceptions import (
    InvalidPromotionError,
    NotFoundError,
    ValidationError,
)
from repair_api.models.technician import (
    PointsType,
    TechnicianLevel,
    TechnicianPointsHistory,
    TechnicianProfile,
    TechnicianPromotion,
)
from repair_api.services import notification_service
from repair_api.services.level_engine import (
    PromotionCandidate,
    is_above,
    is_promotion_eligible,
    resolve_level,
)

logger = logging.getLogger(__name__)

RATING_BONUS_POINTS = {5: 50, 4: 20}
SPEED_BONUS_POINTS = 25
# Completion must take less than this share of the technician's average
SPEED_BONUS_RATIO = 0.8
DELIVERY_POINTS = 20
PENALTY_POINTS = {
    PointsType.PENALTY_LATE: -20,
    PointsType.PENALTY_REWORK: -50,
}


@dataclass
class PointsBreakdownItem:
    type: PointsType
    points: int
    base_points: int
    description: str


@dataclass
class PointsAwardResult:
    profile: TechnicianProfile
    entries: list
    level: TechnicianLevel

    @property
    def points(self) -> int:
        return sum(entry.points for entry in self.entries)


@dataclass
class PromotionResult:
    profile: TechnicianProfile
    promotion: TechnicianPromotion
    from_level: Optional[TechnicianLevel]
    to_level: TechnicianLevel
    bonus_points: int


# ── Pure point calculations ───────────────────────────────


def scale_points(base_points: int, multiplier: float) -> int:
    """Apply a level multiplier, rounding down."""
    return math.floor(base_points * multiplier)


def calculate_completion_points(
    fault_points: list[int],
    multiplier: float = 1.0,
    completion_hours: Optional[float] = None,
    avg_completion_hours: Optional[float] = None,
    default_points: Optional[int] = None,
) -> list[PointsBreakdownItem]:
    """Points for completing a service: per-fault base points plus a speed bonus."""
    if default_points is None:
        default_points = settings.DEFAULT_FAULT_POINTS
    base = sum(fault_points) if fault_points else default_points

    breakdown = [
        PointsBreakdownItem(
            type=PointsType.SERVICE_COMPLETED,
            points=scale_points(base, multiplier),
            base_points=base,
            description="Service completed",
        )
    ]

    if (
        completion_hours is not None
        and avg_completion_hours
        and completion_hours < avg_completion_hours * SPEED_BONUS_RATIO
    ):
        breakdown.append(
            PointsBreakdownItem(
                type=PointsType.SPEED_BONUS,
                points=scale_points(SPEED_BONUS_POINTS, multiplier),
                base_points=SPEED_BONUS_POINTS,
                description="Fast completion bonus",
            )
        )
    return breakdown


def calculate_rating_bonus(rating: int, multiplier: float = 1.0) -> Optional[PointsBreakdownItem]:
    """Bonus for a 4 or 5 star rating; other ratings earn nothing."""
    base = RATING_BONUS_POINTS.get(rating)
    if base is None:
        return None
    return PointsBreakdownItem(
        type=PointsType.RATING_BONUS,
        points=scale_points(base, multiplier),
        base_points=base,
        description=f"{rating}-star rating bonus",
    )


# ── Loading helpers ───────────────────────────────────────


async def get_company_levels(db: AsyncSession, company_id: int) -> list[TechnicianLevel]:
    result = await db.execute(
        select(TechnicianLevel)
        .where(TechnicianLevel.company_id == company_id)
        .order_by(TechnicianLevel.sort_order, TechnicianLevel.min_points)
    )
    return list(result.scalars().all())


async def lock_profile(db: AsyncSession, profile_id: int, company_id: Optional[int] = None) -> TechnicianProfile:
    """Load a technician profile for update."""
    query = select(TechnicianProfile).where(TechnicianProfile.id == profile_id).with_for_update()
    if company_id is not None:
        query = query.where(TechnicianProfile.company_id == company_id)
    result = await db.execute(query)
    profile = result.scalar_one_or_none()
    if not profile:
        raise NotFoundError("Technician profile", profile_id)
    return profile


def _level_by_id(levels: list[TechnicianLevel], level_id: Optional[int]) -> Optional[TechnicianLevel]:
    return next((level for level in levels if level.id == level_id), None)


def _multiplier(levels: list[TechnicianLevel], profile: TechnicianProfile) -> float:
    current = _level_by_id(levels, profile.current_level_id)
    return current.points_multiplier if current and current.points_multiplier else 1.0


# ── Ledger writes ─────────────────────────────────────────


async def _apply_points(
    db: AsyncSession,
    profile: TechnicianProfile,
    item: PointsBreakdownItem,
    *,
    multiplier: float = 1.0,
    service_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> TechnicianPointsHistory:
    entry = TechnicianPointsHistory(
        technician_profile_id=profile.id,
        points=item.points,
        type=item.type.value,
        description=item.description,
        base_points=item.base_points,
        bonus_multiplier=multiplier,
        service_id=service_id,
        created_by_id=actor_id,
    )
    db.add(entry)
    profile.total_points = (profile.total_points or 0) + item.points
    if item.points > 0:
        notification_service.notify_points_earned(db, profile, entry)

    logger.info(
        "Points recorded",
        extra={
            "profile_id": profile.id,
            "points": item.points,
            "type": item.type.value,
            "total_points": profile.total_points,
        },
    )
    return entry


def _recompute_level(profile: TechnicianProfile, levels: list[TechnicianLevel]) -> TechnicianLevel:
    """
    Settle the profile's level after a points change.

    The level never rises above the one the new total resolves to, so a
    deficit demotes. Gains do not promote: a technician whose total reaches a
    higher tier keeps their level and shows up as a promotion candidate.
    """
    resolved = resolve_level(profile.total_points, levels)
    current = _level_by_id(levels, profile.current_level_id)

    level = resolved if current is None or is_above(current, resolved) else current
    if level is not current:
        logger.info(
            f"Technician profile {profile.id} level set to {level.code} at {profile.total_points} points"
        )
    profile.current_level_id = level.id
    return level


async def record_points(
    db: AsyncSession,
    profile: TechnicianProfile,
    items: list[PointsBreakdownItem],
    *,
    multiplier: float = 1.0,
    service_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> PointsAwardResult:
    """Write ledger entries for an already locked profile and recompute its level."""
    levels = await get_company_levels(db, profile.company_id)
    previous_total = profile.total_points or 0
    entries = [
        await _apply_points(
            db, profile, item, multiplier=multiplier, service_id=service_id, actor_id=actor_id
        )
        for item in items
    ]
    level = _recompute_level(profile, levels)
    candidate = is_promotion_eligible(profile, levels)
    if candidate and previous_total < candidate.eligible_level.min_points:
        notification_service.notify_promotion_available(db, profile, candidate)
    await db.flush()
    return PointsAwardResult(profile=profile, entries=entries, level=level)


async def _commit(db: AsyncSession, result):
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result


# ── Operations ────────────────────────────────────────────


async def adjust_points(
    db: AsyncSession,
    profile_id: int,
    delta: int,
    reason: str,
    adjusted_by: Optional[int] = None,
    company_id: Optional[int] = None,
) -> PointsAwardResult:
    """
    Manual points adjustment by an admin.

    The delta may be negative and the resulting total is not floored at 0,
    so a deficit stays visible. The reason is mandatory.

    Raises:
        ValidationError: reason missing or blank
        NotFoundError: unknown technician profile
        ConfigurationError: level ranges do not cover the new total
    """
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError(
            "A reason is required for manual points adjustments",
            errors=[{"field": "reason", "message": "must not be empty", "type": "value_error"}],
        )

    try:
        profile = await lock_profile(db, profile_id, company_id)
        item = PointsBreakdownItem(
            type=PointsType.MANUAL_ADJUSTMENT,
            points=delta,
            base_points=abs(delta),
            description=f"Manual adjustment: {reason}",
        )
        result = await record_points(db, profile, [item], actor_id=adjusted_by)
    except Exception:
        await db.rollback()
        raise
    return await _commit(db, result)


async def apply_penalty(
    db: AsyncSession,
    profile_id: int,
    penalty_type: PointsType,
    service_id: Optional[int] = None,
    reason: Optional[str] = None,
    applied_by: Optional[int] = None,
    company_id: Optional[int] = None,
) -> PointsAwardResult:
    """Deduct late-completion or rework penalty points."""
    if penalty_type not in PENALTY_POINTS:
        raise ValidationError(f"Unknown penalty type {penalty_type}")

    points = PENALTY_POINTS[penalty_type]
    label = "Late completion penalty" if penalty_type == PointsType.PENALTY_LATE else "Rework penalty"
    description = f"{label}: {reason.strip()}" if reason and reason.strip() else label

    try:
        profile = await lock_profile(db, profile_id, company_id)
        item = PointsBreakdownItem(
            type=penalty_type,
            points=points,
            base_points=abs(points),
            description=description,
        )
        result = await record_points(db, profile, [item], service_id=service_id, actor_id=applied_by)
    except Exception:
        await db.rollback()
        raise
    return await _commit(db, result)


async def promote(
    db: AsyncSession,
    profile_id: int,
    to_level_id: int,
    promoted_by: Optional[int] = None,
    notes: Optional[str] = None,
    company_id: Optional[int] = None,
) -> PromotionResult:
    """
    Promote a technician to a higher level and grant that level's bonus.

    The level is set explicitly rather than recomputed from points.

    Raises:
        NotFoundError: unknown profile or level
        InvalidPromotionError: target not above the current level, or points
            below the target's minimum
    """
    try:
        profile = await lock_profile(db, profile_id, company_id)
        levels = await get_company_levels(db, profile.company_id)

        to_level = _level_by_id(levels, to_level_id)
        if not to_level:
            raise NotFoundError("Technician level", to_level_id)

        from_level = _level_by_id(levels, profile.current_level_id)
        if not is_above(to_level, from_level):
            raise InvalidPromotionError(
                f"Target level {to_level.code} is not above current level {from_level.code}"
            )
        if profile.total_points < to_level.min_points:
            raise InvalidPromotionError(
                f"Technician has {profile.total_points} points but {to_level.min_points} "
                f"are required for {to_level.name}"
            )

        bonus = to_level.promotion_bonus_points or 0
        promotion = TechnicianPromotion(
            technician_profile_id=profile.id,
            from_level_id=from_level.id if from_level else None,
            to_level_id=to_level.id,
            points_at_promotion=profile.total_points,
            bonus_points=bonus,
            promoted_by_id=promoted_by,
            notes=notes,
        )
        db.add(promotion)

        profile.current_level_id = to_level.id
        profile.level_promoted_at = datetime.now(timezone.utc)

        if bonus > 0:
            await _apply_points(
                db,
                profile,
                PointsBreakdownItem(
                    type=PointsType.PROMOTION_BONUS,
                    points=bonus,
                    base_points=bonus,
                    description=f"Promotion to {to_level.name} bonus",
                ),
                actor_id=promoted_by,
            )
        notification_service.notify_promoted(db, profile, from_level, to_level, bonus)
        await db.flush()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Technician promoted",
        extra={
            "profile_id": profile.id,
            "from_level": from_level.code if from_level else None,
            "to_level": to_level.code,
            "bonus_points": bonus,
        },
    )
    return await _commit(
        db,
        PromotionResult(
            profile=profile,
            promotion=promotion,
            from_level=from_level,
            to_level=to_level,
            bonus_points=bonus,
        ),
    )


async def award_service_completion(
    db: AsyncSession,
    profile: TechnicianProfile,
    service,
    completion_hours: Optional[float] = None,
) -> PointsAwardResult:
    """Award completion (and speed) points and update completion metrics. Flushes only."""
    levels = await get_company_levels(db, profile.company_id)
    multiplier = _multiplier(levels, profile)
    items = calculate_completion_points(
        [fault.technician_points for fault in service.faults],
        multiplier,
        completion_hours=completion_hours,
        avg_completion_hours=profile.avg_completion_hours,
    )
    result = await record_points(db, profile, items, multiplier=multiplier, service_id=service.id)

    completed = (profile.total_services_completed or 0) + 1
    if completion_hours is not None:
        if profile.avg_completion_hours:
            profile.avg_completion_hours = (
                profile.avg_completion_hours * (completed - 1) + completion_hours
            ) / completed
        else:
            profile.avg_completion_hours = completion_hours
    profile.total_services_completed = completed
    return result


async def award_rating(
    db: AsyncSession,
    profile: TechnicianProfile,
    rating: int,
    service_id: Optional[int] = None,
) -> Optional[PointsAwardResult]:
    """Fold a customer rating into the average and award any rating bonus. Flushes only."""
    count = (profile.rating_count or 0) + 1
    previous = profile.average_rating or 0.0
    profile.average_rating = round((previous * (count - 1) + rating) / count, 2)
    profile.rating_count = count

    levels = await get_company_levels(db, profile.company_id)
    multiplier = _multiplier(levels, profile)
    bonus = calculate_rating_bonus(rating, multiplier)
    if bonus is None:
        await db.flush()
        return None
    return await record_points(db, profile, [bonus], multiplier=multiplier, service_id=service_id)


async def award_delivery(
    db: AsyncSession,
    profile: TechnicianProfile,
    service_id: Optional[int] = None,
) -> PointsAwardResult:
    """Award delivery points. Flushes only."""
    levels = await get_company_levels(db, profile.company_id)
    multiplier = _multiplier(levels, profile)
    item = PointsBreakdownItem(
        type=PointsType.SERVICE_DELIVERED,
        points=scale_points(DELIVERY_POINTS, multiplier),
        base_points=DELIVERY_POINTS,
        description="Service delivered to customer",
    )
    return await record_points(db, profile, [item], multiplier=multiplier, service_id=service_id)


# ── Queries ───────────────────────────────────────────────


async def get_promotion_eligibility(
    db: AsyncSession, profile: TechnicianProfile
) -> Optional[PromotionCandidate]:
    levels = await get_company_levels(db, profile.company_id)
    return is_promotion_eligible(profile, levels)


async def get_promotion_candidates(db: AsyncSession, company_id: int) -> list[tuple[TechnicianProfile, PromotionCandidate]]:
    """All eligible technicians of a company, furthest past their threshold first."""
    levels = await get_company_levels(db, company_id)
    result = await db.execute(
        select(TechnicianProfile).where(TechnicianProfile.company_id == company_id)
    )
    candidates = []
    for profile in result.scalars().all():
        candidate = is_promotion_eligible(profile, levels)
        if candidate:
            candidates.append((profile, candidate))
    candidates.sort(key=lambda pair: pair[1].points_above_threshold, reverse=True)
    return candidates


async def ledger_balance(db: AsyncSession, profile_id: int) -> int:
    """Sum of all ledger entries for a profile."""
    result = await db.execute(
        select(func.coalesce(func.sum(TechnicianPointsHistory.points), 0))
        .where(TechnicianPointsHistory.technician_profile_id == profile_id)
    )
    return int(result.scalar() or 0)


async def get_points_history(
    db: AsyncSession, profile_id: int, page: int = 1, page_size: int = 20
) -> tuple[list[TechnicianPointsHistory], int]:
    base = select(TechnicianPointsHistory).where(
        TechnicianPointsHistory.technician_profile_id == profile_id
    )
    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(
        base.order_by(TechnicianPointsHistory.created_at.desc(), TechnicianPointsHistory.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_points_summary(db: AsyncSession, profile: TechnicianProfile, now: Optional[datetime] = None) -> dict:
    """Positive points earned this month and this week, and the month's points by type."""
    now = now or datetime.now(timezone.utc)
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    start_of_week = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)

    async def _earned_since(since: datetime) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(TechnicianPointsHistory.points), 0)).where(
                TechnicianPointsHistory.technician_profile_id == profile.id,
                TechnicianPointsHistory.created_at >= since,
                TechnicianPointsHistory.points > 0,
            )
        )
        return int(result.scalar() or 0)

    by_type = await db.execute(
        select(TechnicianPointsHistory.type, func.sum(TechnicianPointsHistory.points))
        .where(
            TechnicianPointsHistory.technician_profile_id == profile.id,
            TechnicianPointsHistory.created_at >= start_of_month,
        )
        .group_by(TechnicianPointsHistory.type)
    )

    return {
        "total_points": profile.total_points,
        "monthly_points": await _earned_since(start_of_month),
        "weekly_points": await _earned_since(start_of_week),
        "points_by_type": [
            {"type": points_type, "points": int(points or 0)}
            for points_type, points in by_type.all()
        ],
    }
