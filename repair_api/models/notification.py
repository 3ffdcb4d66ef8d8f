"""In-app notifications for technicians."""

from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, Integer, Boolean, ForeignKey, JSON, Index
from sqlalchemy.sql import func

from repair_api.database import Base


class NotificationType(str, Enum):
    LEVEL_PROMOTION = "LEVEL_PROMOTION"
    POINTS_EARNED = "POINTS_EARNED"
    SERVICE_ASSIGNED = "SERVICE_ASSIGNED"


class TechnicianNotification(Base):
    """Message shown to one user until they mark it read."""

    __tablename__ = "technician_notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # Context for the client, e.g. level codes or the service id
    data = Column(JSON, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_technician_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self):
        return f"<TechnicianNotification {self.type}: {self.title[:30]}>"
