"""Tests for service intake persistence, device history and completion awards."""
import re
from datetime import datetime, timedelta, timezone

import pytest

from repair_api.exceptions import BusinessRuleError
from repair_api.middleware import get_ticket_number
from repair_api.models.service import ServiceStatus
from repair_api.services import points_service, service_intake

COMPANY_ID = 1
CUSTOMER_ID = 42


async def _create(db, device, fault_ids, now=None, **kwargs):
    service, info = await service_intake.create_service(
        db, COMPANY_ID, CUSTOMER_ID, device.id, fault_ids, now=now, **kwargs
    )
    return service, info


def test_ticket_number_format():
    number = service_intake.generate_ticket_number(datetime(2026, 3, 15, tzinfo=timezone.utc))
    assert re.fullmatch(r"SRV-20260315-[0-9A-F]{8}", number)


class TestDeviceHistory:
    """Repeat detection only looks at recent, non-cancelled visits."""

    @pytest.mark.asyncio
    async def test_visit_inside_window_is_repeat(self, test_db, faults, device):
        now = datetime.now(timezone.utc)
        screen = faults["SCREEN"].id
        first, _ = await _create(test_db, device, [screen], now=now - timedelta(days=10))

        second, info = await _create(test_db, device, [screen], now=now)
        assert info.is_repeated is True
        assert info.days_since_last_service == 10
        assert second.previous_service_id == first.id
        assert second.warranty_reason == "SAME_FAULT"
        assert second.estimated_cost == 0

    @pytest.mark.asyncio
    async def test_visit_outside_window_is_ignored(self, test_db, faults, device):
        now = datetime.now(timezone.utc)
        screen = faults["SCREEN"].id
        await _create(test_db, device, [screen], now=now - timedelta(days=40))

        service, info = await _create(test_db, device, [screen], now=now)
        assert info.is_repeated is False
        assert service.previous_service_id is None
        assert service.estimated_cost == 2500.0

    @pytest.mark.asyncio
    async def test_cancelled_visit_is_ignored(self, test_db, faults, device):
        screen = faults["SCREEN"].id
        cancelled, _ = await _create(test_db, device, [screen])
        cancelled.status = ServiceStatus.CANCELLED.value
        await test_db.commit()

        _, info = await _create(test_db, device, [screen])
        assert info.is_repeated is False

    @pytest.mark.asyncio
    async def test_history_newest_first(self, test_db, faults, device):
        now = datetime.now(timezone.utc)
        older, _ = await _create(test_db, device, [faults["PORT"].id], now=now - timedelta(days=3))
        newer, _ = await _create(test_db, device, [faults["BATTERY"].id], now=now - timedelta(days=1))

        history = await service_intake.get_device_history(test_db, COMPANY_ID, device.id, now=now)
        assert [s.id for s in history] == [newer.id, older.id]

        short = await service_intake.get_device_history(test_db, COMPANY_ID, device.id, now=now, window_days=2)
        assert [s.id for s in short] == [newer.id]

    @pytest.mark.asyncio
    async def test_fault_order_kept_on_ticket(self, test_db, faults, device):
        port, screen = faults["PORT"].id, faults["SCREEN"].id
        service, _ = await _create(test_db, device, [port, screen, port])
        assert sorted(service.fault_ids) == sorted([port, screen])
        assert service.estimated_cost == 2950.5

    @pytest.mark.asyncio
    async def test_override_without_history_rejected(self, test_db, faults, device):
        with pytest.raises(BusinessRuleError):
            await _create(test_db, device, [faults["SCREEN"].id], warranty_override=True)


class TestCompletionAwards:
    """Completion points scale with the technician's level."""

    @pytest.mark.asyncio
    async def test_speed_bonus_for_fast_completion(self, test_db, faults, device, technician):
        now = datetime.now(timezone.utc)
        technician.avg_completion_hours = 10.0
        technician.total_services_completed = 4
        await test_db.commit()

        service, _ = await _create(test_db, device, [faults["SCREEN"].id], now=now - timedelta(hours=2))
        await service_intake.assign_technician(test_db, COMPANY_ID, service.id, technician.id)
        _, award = await service_intake.complete_service(test_db, COMPANY_ID, service.id, now=now)

        assert [entry.type for entry in award.entries] == ["SERVICE_COMPLETED", "SPEED_BONUS"]
        assert award.points == 150 + 25
        assert technician.total_services_completed == 5
        assert technician.avg_completion_hours == pytest.approx(8.4, abs=0.01)

    @pytest.mark.asyncio
    async def test_level_multiplier_applies(self, test_db, faults, device, technician, levels):
        await points_service.adjust_points(test_db, technician.id, 1000, "transfer")
        await points_service.promote(test_db, technician.id, levels["SILVER"].id)

        service, _ = await _create(test_db, device, [faults["BATTERY"].id])
        await service_intake.assign_technician(test_db, COMPANY_ID, service.id, technician.id)
        _, award = await service_intake.complete_service(test_db, COMPANY_ID, service.id)

        assert award.points == 120
        assert award.entries[0].bonus_multiplier == 1.2
        assert award.entries[0].base_points == 100
        assert technician.total_points == 1000 + 100 + 120
        assert await points_service.ledger_balance(test_db, technician.id) == technician.total_points

    @pytest.mark.asyncio
    async def test_completed_service_cannot_be_reassigned(self, test_db, faults, device, technician):
        service, _ = await _create(test_db, device, [faults["PORT"].id])
        service_id, profile_id = service.id, technician.id
        await service_intake.assign_technician(test_db, COMPANY_ID, service_id, profile_id)
        await service_intake.complete_service(test_db, COMPANY_ID, service_id)

        with pytest.raises(BusinessRuleError):
            await service_intake.assign_technician(test_db, COMPANY_ID, service_id, profile_id)

    @pytest.mark.asyncio
    async def test_ticket_number_bound_for_logging(self, test_db, faults, device):
        first, _ = await _create(test_db, device, [faults["PORT"].id])
        assert get_ticket_number() == first.ticket_number

        second, _ = await _create(test_db, device, [faults["BATTERY"].id])
        await service_intake.get_service(test_db, COMPANY_ID, first.id)
        assert get_ticket_number() == first.ticket_number != second.ticket_number
