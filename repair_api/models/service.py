"""
SQLAlchemy models for faults, customer devices and service tickets.
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Float, ForeignKey, JSON,
    Table, Index, UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from repair_api.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Statuses that count against a technician's concurrent job limit
ACTIVE_SERVICE_STATUSES = (ServiceStatus.PENDING.value, ServiceStatus.IN_PROGRESS.value)


service_faults = Table(
    "service_faults",
    Base.metadata,
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
    Column("fault_id", Integer, ForeignKey("faults.id"), primary_key=True),
)


class Fault(Base):
    """Catalog entry for a repair fault with its default price."""

    __tablename__ = "faults"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String(150), nullable=False)
    code = Column(String(30), nullable=False)
    default_price = Column(Float, nullable=False, default=0.0)
    # Base completion points awarded to the technician
    technician_points = Column(Integer, nullable=False, default=100)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_faults_company_code"),
    )

    def __repr__(self):
        return f"<Fault {self.code} {self.default_price}>"


class CustomerDevice(Base):
    """A customer's device brought in for repair."""

    __tablename__ = "customer_devices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    imei = Column(String(30))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model}"


class Service(Base):
    """Service ticket for one device intake."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    ticket_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    customer_device_id = Column(Integer, ForeignKey("customer_devices.id"), nullable=False)
    status = Column(String(20), nullable=False, default=ServiceStatus.PENDING.value, index=True)

    intake_notes = Column(Text)
    estimated_cost = Column(Float, nullable=False, default=0.0)
    actual_cost = Column(Float, nullable=True)

    assigned_technician_id = Column(Integer, ForeignKey("technician_profiles.id"), nullable=True, index=True)

    # Repeat / warranty detection
    is_repeated_service = Column(Boolean, nullable=False, default=False)
    previous_service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    is_warranty_repair = Column(Boolean, nullable=False, default=False)
    # SAME_FAULT or STAFF_OVERRIDE
    warranty_reason = Column(String(30), nullable=True)
    matching_fault_ids = Column(JSON, nullable=False, default=list)

    rating = Column(Integer, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    faults = relationship("Fault", secondary=service_faults, lazy="selectin")
    customer_device = relationship("CustomerDevice", lazy="selectin")

    __table_args__ = (
        Index("idx_services_device_created", "customer_device_id", "created_at"),
        Index("idx_services_technician_status", "assigned_technician_id", "status"),
    )

    @property
    def fault_ids(self) -> list[int]:
        return [fault.id for fault in self.faults]

    def __repr__(self):
        return f"<Service {self.ticket_number} {self.status}>"
