from repair_api.schemas.auth import (
    LoginRequest,
    Token,
    TokenData,
    UserResponse,
    AuthMeResponse,
)
from repair_api.schemas.technician import (
    TechnicianLevelCreate,
    TechnicianLevelUpdate,
    TechnicianLevelResponse,
    TechnicianCreate,
    TechnicianUpdate,
    TechnicianResponse,
    TechnicianListResponse,
    PromoteRequest,
    PromotionResponse,
    PointsAdjustmentRequest,
    PointsChangeResponse,
)
from repair_api.schemas.service import (
    FaultCreate,
    FaultResponse,
    ServiceCreate,
    ServiceResponse,
    EstimateRequest,
    EstimateResponse,
    PreviousServiceResponse,
)
from repair_api.schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
)

__all__ = [
    "LoginRequest",
    "Token",
    "TokenData",
    "UserResponse",
    "AuthMeResponse",
    "TechnicianLevelCreate",
    "TechnicianLevelUpdate",
    "TechnicianLevelResponse",
    "TechnicianCreate",
    "TechnicianUpdate",
    "TechnicianResponse",
    "TechnicianListResponse",
    "PromoteRequest",
    "PromotionResponse",
    "PointsAdjustmentRequest",
    "PointsChangeResponse",
    "FaultCreate",
    "FaultResponse",
    "ServiceCreate",
    "ServiceResponse",
    "EstimateRequest",
    "EstimateResponse",
    "PreviousServiceResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
]
