from repair_api.models.user import User
from repair_api.models.technician import (
    PointsType,
    TechnicianLevel,
    TechnicianProfile,
    TechnicianPointsHistory,
    TechnicianPromotion,
)
from repair_api.models.notification import NotificationType, TechnicianNotification
from repair_api.models.service import (
    ServiceStatus,
    Fault,
    CustomerDevice,
    Service,
    service_faults,
)

__all__ = [
    "User",
    "PointsType",
    "TechnicianLevel",
    "TechnicianProfile",
    "TechnicianPointsHistory",
    "TechnicianPromotion",
    "NotificationType",
    "TechnicianNotification",
    "ServiceStatus",
    "Fault",
    "CustomerDevice",
    "Service",
    "service_faults",
]
