"""
SQLAlchemy models for technician levels, profiles and the points ledger.
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Float, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from repair_api.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PointsType(str, Enum):
    """Reason category of a points ledger entry."""

    SERVICE_COMPLETED = "SERVICE_COMPLETED"
    RATING_BONUS = "RATING_BONUS"
    SPEED_BONUS = "SPEED_BONUS"
    SERVICE_DELIVERED = "SERVICE_DELIVERED"
    PROMOTION_BONUS = "PROMOTION_BONUS"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    PENALTY_LATE = "PENALTY_LATE"
    PENALTY_REWORK = "PENALTY_REWORK"


class TechnicianLevel(Base):
    """Named tier assigned by point-total range.

    ``max_points`` is inclusive: a tier with min 0 and max 999 holds totals
    0 through 999. The highest tier leaves ``max_points`` empty.
    """

    __tablename__ = "technician_levels"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    code = Column(String(30), nullable=False)
    name = Column(String(100), nullable=False)
    min_points = Column(Integer, nullable=False, default=0)
    max_points = Column(Integer, nullable=True)
    points_multiplier = Column(Float, nullable=False, default=1.0)
    incentive_percent = Column(Float, nullable=False, default=0.0)
    promotion_bonus_points = Column(Integer, nullable=False, default=0)
    badge_color = Column(String(20))
    description = Column(Text)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_technician_levels_company_code"),
        Index("idx_technician_levels_company_sort", "company_id", "sort_order"),
    )

    def __repr__(self):
        return f"<TechnicianLevel {self.code} {self.min_points}-{self.max_points}>"


class TechnicianProfile(Base):
    """Technician performance record, one per technician user."""

    __tablename__ = "technician_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_id = Column(Integer, nullable=False, index=True)
    current_level_id = Column(Integer, ForeignKey("technician_levels.id"), nullable=True)

    # Ledger sum; may go negative after a manual adjustment
    total_points = Column(Integer, nullable=False, default=0)

    average_rating = Column(Float, nullable=True)
    rating_count = Column(Integer, nullable=False, default=0)
    total_services_completed = Column(Integer, nullable=False, default=0)
    avg_completion_hours = Column(Float, nullable=True)

    max_concurrent_jobs = Column(Integer, nullable=False, default=5)
    is_available = Column(Boolean, nullable=False, default=True)

    level_promoted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="technician_profile", lazy="selectin")

    def __repr__(self):
        return f"<TechnicianProfile user={self.user_id} points={self.total_points}>"


class TechnicianPointsHistory(Base):
    """One ledger entry per change to ``TechnicianProfile.total_points``."""

    __tablename__ = "technician_points_history"

    id = Column(Integer, primary_key=True, index=True)
    technician_profile_id = Column(
        Integer, ForeignKey("technician_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    points = Column(Integer, nullable=False)
    type = Column(String(30), nullable=False)
    description = Column(Text, nullable=False)
    base_points = Column(Integer, nullable=False, default=0)
    bonus_multiplier = Column(Float, nullable=False, default=1.0)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_points_history_profile_created", "technician_profile_id", "created_at"),
    )


class TechnicianPromotion(Base):
    """Audit record of an admin-triggered level promotion."""

    __tablename__ = "technician_promotions"

    id = Column(Integer, primary_key=True, index=True)
    technician_profile_id = Column(
        Integer, ForeignKey("technician_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_level_id = Column(Integer, ForeignKey("technician_levels.id"), nullable=True)
    to_level_id = Column(Integer, ForeignKey("technician_levels.id"), nullable=False)
    points_at_promotion = Column(Integer, nullable=False)
    bonus_points = Column(Integer, nullable=False, default=0)
    promoted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    from_level = relationship("TechnicianLevel", foreign_keys=[from_level_id], lazy="selectin")
    to_level = relationship("TechnicianLevel", foreign_keys=[to_level_id], lazy="selectin")
