# Services module
from repair_api.services.level_engine import (
    LevelRange,
    PromotionCandidate,
    resolve_level,
    validate_level_ranges,
    find_promotion_candidate,
    is_promotion_eligible,
)
from repair_api.services.estimation_rules import (
    WarrantyReason,
    PreviousServiceInfo,
    compute_estimate,
    compute_warranty_estimate,
    detect_repeat_service,
    apply_warranty_policy,
)

__all__ = [
    # Level engine
    "LevelRange",
    "PromotionCandidate",
    "resolve_level",
    "validate_level_ranges",
    "find_promotion_candidate",
    "is_promotion_eligible",
    # Estimation rules
    "WarrantyReason",
    "PreviousServiceInfo",
    "compute_estimate",
    "compute_warranty_estimate",
    "detect_repeat_service",
    "apply_warranty_policy",
]
