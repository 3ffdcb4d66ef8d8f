"""Tests for notifications raised by points, promotions and assignments."""
import pytest

from repair_api.exceptions import NotFoundError
from repair_api.models.notification import NotificationType
from repair_api.models.technician import PointsType
from repair_api.services import notification_service, points_service, service_intake

COMPANY_ID = 1


async def _by_type(db, user_id, type):
    items, _ = await notification_service.list_notifications(db, user_id, page_size=100)
    return [n for n in items if n.type == type.value]


class TestPointsNotifications:

    @pytest.mark.asyncio
    async def test_award_notifies_points_earned(self, test_db, technician, tech_user):
        await points_service.adjust_points(test_db, technician.id, 40, "weekend cover")

        earned = await _by_type(test_db, tech_user.id, NotificationType.POINTS_EARNED)
        assert len(earned) == 1
        assert earned[0].title == "Points Earned!"
        assert earned[0].message == "You earned 40 points for Manual adjustment: weekend cover"
        assert earned[0].data["points"] == 40
        assert earned[0].is_read is False

    @pytest.mark.asyncio
    async def test_deductions_do_not_notify(self, test_db, technician, tech_user):
        await points_service.apply_penalty(test_db, technician.id, PointsType.PENALTY_LATE)
        await points_service.adjust_points(test_db, technician.id, -10, "clawback")

        items, total = await notification_service.list_notifications(test_db, tech_user.id)
        assert total == 0

    @pytest.mark.asyncio
    async def test_promotion_available_once_per_tier(self, test_db, technician, tech_user, levels):
        await points_service.adjust_points(test_db, technician.id, 1200, "migration")
        await points_service.adjust_points(test_db, technician.id, 100, "cover")

        available = await _by_type(test_db, tech_user.id, NotificationType.LEVEL_PROMOTION)
        assert len(available) == 1
        assert available[0].title == "Level Promotion Available!"
        assert "eligible for promotion to Silver" in available[0].message
        assert available[0].data == {"current_level": "BRONZE", "eligible_level": "SILVER", "total_points": 1200}

        await points_service.adjust_points(test_db, technician.id, 4000, "transfer")
        available = await _by_type(test_db, tech_user.id, NotificationType.LEVEL_PROMOTION)
        assert sorted(n.data["eligible_level"] for n in available) == ["GOLD", "SILVER"]

    @pytest.mark.asyncio
    async def test_promote_notifies_technician(self, test_db, technician, tech_user, levels):
        await points_service.adjust_points(test_db, technician.id, 1200, "migration")
        await points_service.promote(test_db, technician.id, levels["SILVER"].id)

        promoted = [
            n for n in await _by_type(test_db, tech_user.id, NotificationType.LEVEL_PROMOTION)
            if n.title == "Promoted to Silver"
        ]
        assert len(promoted) == 1
        assert promoted[0].data == {"from_level": "BRONZE", "to_level": "SILVER", "bonus_points": 100}
        assert "100 bonus points" in promoted[0].message

        earned = await _by_type(test_db, tech_user.id, NotificationType.POINTS_EARNED)
        assert sorted(n.data["points"] for n in earned) == [100, 1200]

    @pytest.mark.asyncio
    async def test_assignment_notifies_technician(self, test_db, technician, tech_user, faults, device):
        service, _ = await service_intake.create_service(
            test_db, COMPANY_ID, device.customer_id, device.id, [faults["PORT"].id]
        )
        await service_intake.assign_technician(test_db, COMPANY_ID, service.id, technician.id)

        assigned = await _by_type(test_db, tech_user.id, NotificationType.SERVICE_ASSIGNED)
        assert len(assigned) == 1
        assert assigned[0].data == {"service_id": service.id, "ticket_number": service.ticket_number}


class TestReadState:

    @pytest.mark.asyncio
    async def test_mark_read_and_unread_count(self, test_db, technician, tech_user):
        await points_service.adjust_points(test_db, technician.id, 10, "one")
        await points_service.adjust_points(test_db, technician.id, 20, "two")
        assert await notification_service.unread_count(test_db, tech_user.id) == 2

        items, _ = await notification_service.list_notifications(test_db, tech_user.id)
        read = await notification_service.mark_read(test_db, items[0].id, tech_user.id)
        assert read.is_read is True
        assert read.read_at is not None
        assert await notification_service.unread_count(test_db, tech_user.id) == 1

        unread, total = await notification_service.list_notifications(test_db, tech_user.id, unread_only=True)
        assert total == 1
        assert unread[0].id == items[1].id

    @pytest.mark.asyncio
    async def test_other_users_notification_not_found(self, test_db, technician, tech_user, admin_user):
        await points_service.adjust_points(test_db, technician.id, 10, "one")
        items, _ = await notification_service.list_notifications(test_db, tech_user.id)

        with pytest.raises(NotFoundError):
            await notification_service.mark_read(test_db, items[0].id, admin_user.id)

    @pytest.mark.asyncio
    async def test_mark_all_read(self, test_db, technician, tech_user):
        await points_service.adjust_points(test_db, technician.id, 10, "one")
        await points_service.adjust_points(test_db, technician.id, 20, "two")

        assert await notification_service.mark_all_read(test_db, tech_user.id) == 2
        assert await notification_service.unread_count(test_db, tech_user.id) == 0
        assert await notification_service.mark_all_read(test_db, tech_user.id) == 0
