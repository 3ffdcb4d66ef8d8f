from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional

from repair_api.models.technician import PointsType


# ── Levels ────────────────────────────────────────────────


class TechnicianLevelBase(BaseModel):
    """Base technician level schema."""
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=100)
    min_points: int = Field(..., ge=0)
    # Inclusive; leave empty on the highest level
    max_points: Optional[int] = Field(None, ge=0)
    points_multiplier: float = Field(1.0, gt=0)
    incentive_percent: float = Field(0.0, ge=0, le=100)
    promotion_bonus_points: int = Field(0, ge=0)
    badge_color: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    sort_order: int = Field(..., ge=0)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class TechnicianLevelCreate(TechnicianLevelBase):
    """Schema for creating a technician level."""
    pass


class TechnicianLevelUpdate(BaseModel):
    """Schema for updating a technician level (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    min_points: Optional[int] = Field(None, ge=0)
    max_points: Optional[int] = Field(None, ge=0)
    points_multiplier: Optional[float] = Field(None, gt=0)
    incentive_percent: Optional[float] = Field(None, ge=0, le=100)
    promotion_bonus_points: Optional[int] = Field(None, ge=0)
    badge_color: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)

    # max_points, badge_color and description may be cleared with null
    @field_validator(
        "name", "min_points", "points_multiplier", "incentive_percent",
        "promotion_bonus_points", "sort_order",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class TechnicianLevelResponse(TechnicianLevelBase):
    """Schema for technician level response."""
    id: int
    company_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LevelSummary(BaseModel):
    """Compact level reference embedded in other responses."""
    id: int
    code: str
    name: str
    min_points: int
    max_points: Optional[int] = None
    badge_color: Optional[str] = None

    class Config:
        from_attributes = True


# ── Technician profiles ───────────────────────────────────


class TechnicianCreate(BaseModel):
    """Assign the technician role to an existing user."""
    user_id: int
    max_concurrent_jobs: Optional[int] = Field(None, ge=1, le=50)


class TechnicianUpdate(BaseModel):
    """Schema for updating a technician profile (all fields optional)."""
    max_concurrent_jobs: Optional[int] = Field(None, ge=1, le=50)
    is_available: Optional[bool] = None

    @field_validator("max_concurrent_jobs", "is_available")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class TechnicianResponse(BaseModel):
    """Technician profile with its current level."""
    id: int
    user_id: int
    company_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    total_points: int
    current_level: Optional[LevelSummary] = None
    average_rating: Optional[float] = None
    rating_count: int = 0
    total_services_completed: int = 0
    avg_completion_hours: Optional[float] = None
    max_concurrent_jobs: int
    is_available: bool
    level_promoted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile, level=None) -> "TechnicianResponse":
        """Build from a TechnicianProfile and its (separately loaded) level."""
        user = profile.user
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            company_id=profile.company_id,
            first_name=user.first_name if user else None,
            last_name=user.last_name if user else None,
            email=user.email if user else None,
            total_points=profile.total_points,
            current_level=LevelSummary.model_validate(level) if level else None,
            average_rating=profile.average_rating,
            rating_count=profile.rating_count or 0,
            total_services_completed=profile.total_services_completed or 0,
            avg_completion_hours=profile.avg_completion_hours,
            max_concurrent_jobs=profile.max_concurrent_jobs,
            is_available=profile.is_available,
            level_promoted_at=profile.level_promoted_at,
            created_at=profile.created_at,
        )


class TechnicianListResponse(BaseModel):
    """Paginated technician list response."""
    items: list[TechnicianResponse]
    total: int
    page: int
    page_size: int


# ── Promotion ─────────────────────────────────────────────


class PromotionEligibilityResponse(BaseModel):
    """Whether a technician qualifies for a higher level."""
    technician_id: int
    eligible: bool
    total_points: int
    current_level: Optional[LevelSummary] = None
    eligible_level: Optional[LevelSummary] = None
    points_above_threshold: Optional[int] = None


class PromotionCandidateResponse(BaseModel):
    """Eligible technician in the promotion candidate list."""
    technician_id: int
    user_id: int
    name: str
    total_points: int
    current_level: Optional[LevelSummary] = None
    eligible_level: LevelSummary
    points_above_threshold: int


class PromoteRequest(BaseModel):
    """Promote a technician to a higher level."""
    to_level_id: int
    notes: Optional[str] = None


class PromotionResponse(BaseModel):
    """Result of a promotion."""
    technician_id: int
    from_level: Optional[LevelSummary] = None
    to_level: LevelSummary
    bonus_points: int
    total_points: int
    promoted_at: Optional[datetime] = None


class PromotionRecordResponse(BaseModel):
    """Promotion audit record."""
    id: int
    from_level: Optional[LevelSummary] = None
    to_level: LevelSummary
    points_at_promotion: int
    bonus_points: int
    promoted_by_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ── Points ledger ─────────────────────────────────────────


class PointsAdjustmentRequest(BaseModel):
    """Manual points adjustment. Points may be negative."""
    points: int
    # Blank reasons are rejected by the points service
    reason: str


class PenaltyRequest(BaseModel):
    """Deduct penalty points from a technician."""
    type: PointsType
    service_id: Optional[int] = None
    reason: Optional[str] = None

    @field_validator("type")
    @classmethod
    def penalty_types_only(cls, v: PointsType) -> PointsType:
        if v not in (PointsType.PENALTY_LATE, PointsType.PENALTY_REWORK):
            raise ValueError("type must be PENALTY_LATE or PENALTY_REWORK")
        return v


class PointsHistoryResponse(BaseModel):
    """One ledger entry."""
    id: int
    points: int
    type: str
    description: str
    base_points: int
    bonus_multiplier: float
    service_id: Optional[int] = None
    created_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PointsHistoryListResponse(BaseModel):
    """Paginated ledger listing, newest first."""
    items: list[PointsHistoryResponse]
    total: int
    page: int
    page_size: int


class PointsChangeResponse(BaseModel):
    """Technician state after a points mutation."""
    technician_id: int
    points: int
    total_points: int
    current_level: LevelSummary


class PointsByType(BaseModel):
    type: str
    points: int


class PointsSummaryResponse(BaseModel):
    """Points earned this month and week."""
    technician_id: int
    total_points: int
    monthly_points: int
    weekly_points: int
    points_by_type: list[PointsByType]
    current_level: Optional[LevelSummary] = None
    next_level: Optional[LevelSummary] = None
    points_to_next_level: Optional[int] = None
