"""
Service estimation and repeat-service rules.

Pure functions used by service intake:
- compute_estimate / compute_warranty_estimate: price a set of selected faults
- detect_repeat_service: compare a new intake with the device's last service
- apply_warranty_policy: decide the warranty flag from the repeat information

Only a fault match against the most recent prior service auto-flags a
warranty repair. A repeat visit without a fault match is left to staff, who
may flag it with the STAFF_OVERRIDE reason.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Sequence


class WarrantyReason(str, Enum):
    SAME_FAULT = "SAME_FAULT"
    STAFF_OVERRIDE = "STAFF_OVERRIDE"


@dataclass
class PriorService:
    """Snapshot of an earlier service on the same device."""

    id: Any
    customer_device_id: Any
    created_at: datetime
    fault_ids: list = field(default_factory=list)
    ticket_number: Optional[str] = None
    status: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_service(cls, service: Any) -> "PriorService":
        return cls(
            id=service.id,
            customer_device_id=service.customer_device_id,
            created_at=service.created_at,
            fault_ids=list(service.fault_ids),
            ticket_number=service.ticket_number,
            status=service.status,
            completed_at=service.completed_at,
        )


@dataclass
class PreviousServiceInfo:
    """Result of repeat-service detection for a new intake."""

    is_repeated: bool
    last_service: Optional[PriorService] = None
    days_since_last_service: Optional[int] = None
    matching_fault_ids: list = field(default_factory=list)

    @property
    def has_fault_match(self) -> bool:
        return len(self.matching_fault_ids) > 0


@dataclass
class WarrantyDecision:
    is_warranty_repair: bool
    warranty_reason: Optional[WarrantyReason] = None


def _unique(ids: Iterable[Any]) -> list:
    seen = set()
    ordered = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_estimate(selected_fault_ids: Iterable[Any], fault_catalog: Sequence[Any]) -> float:
    """
    Sum of default prices of the selected faults.

    Duplicate ids are counted once; ids missing from the catalog add nothing.
    An empty selection costs 0.
    """
    prices = {fault.id: fault.default_price or 0 for fault in fault_catalog}
    total = sum(prices.get(fault_id, 0) for fault_id in _unique(selected_fault_ids))
    return round(float(total), 2)


def compute_warranty_estimate(
    selected_fault_ids: Iterable[Any],
    matching_fault_ids: Iterable[Any],
    fault_catalog: Sequence[Any],
) -> float:
    """Estimate that charges only for faults not covered by the warranty match."""
    covered = set(matching_fault_ids)
    chargeable = [fault_id for fault_id in selected_fault_ids if fault_id not in covered]
    return compute_estimate(chargeable, fault_catalog)


def detect_repeat_service(
    device_id: Any,
    new_fault_ids: Iterable[Any],
    service_history: Sequence[Any],
    now: Optional[datetime] = None,
) -> PreviousServiceInfo:
    """
    Compare a new intake with the most recent prior service on the device.

    Args:
        device_id: The device being checked in
        new_fault_ids: Fault ids selected on the new intake
        service_history: Prior services (PriorService or Service rows), most recent first
        now: Reference time for the day count, defaults to the current UTC time

    Returns:
        PreviousServiceInfo; matching_fault_ids keeps the order of new_fault_ids
    """
    history = [
        item if isinstance(item, PriorService) else PriorService.from_service(item)
        for item in service_history
    ]
    history = [item for item in history if item.customer_device_id == device_id]

    if not history:
        return PreviousServiceInfo(is_repeated=False)

    last = max(history, key=lambda item: as_utc(item.created_at))
    reference = as_utc(now) if now else datetime.now(timezone.utc)
    days_since = (reference - as_utc(last.created_at)).days

    previous_faults = set(last.fault_ids)
    matching = [fault_id for fault_id in _unique(new_fault_ids) if fault_id in previous_faults]

    return PreviousServiceInfo(
        is_repeated=True,
        last_service=last,
        days_since_last_service=days_since,
        matching_fault_ids=matching,
    )


def apply_warranty_policy(
    info: PreviousServiceInfo,
    staff_override: bool = False,
) -> WarrantyDecision:
    """
    Decide the warranty flag for a new intake.

    A same-fault repeat is always flagged SAME_FAULT. Otherwise the service is
    a warranty repair only when staff explicitly override it.
    """
    if info.has_fault_match:
        return WarrantyDecision(True, WarrantyReason.SAME_FAULT)
    if staff_override:
        return WarrantyDecision(True, WarrantyReason.STAFF_OVERRIDE)
    return WarrantyDecision(False, None)
