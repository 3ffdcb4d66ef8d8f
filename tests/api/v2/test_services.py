"""
Tests for service intake and lifecycle (/api/v2/services), the fault
catalog and customer devices.
"""
import pytest
from httpx import AsyncClient

SERVICES_PREFIX = "/api/v2/services"


async def _intake(client: AsyncClient, device_id: int, fault_ids: list[int], **extra):
    payload = {"customer_id": 42, "customer_device_id": device_id, "fault_ids": fault_ids}
    payload.update(extra)
    return await client.post(SERVICES_PREFIX, json=payload)


class TestEstimate:
    """POST /services/estimate"""

    @pytest.mark.asyncio
    async def test_duplicates_counted_once(self, authenticated_client: AsyncClient, faults):
        screen, battery = faults["SCREEN"].id, faults["BATTERY"].id
        response = await authenticated_client.post(
            f"{SERVICES_PREFIX}/estimate", json={"fault_ids": [screen, screen, battery]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["estimated_cost"] == 3700.0
        assert data["fault_ids"] == [screen, battery]

    @pytest.mark.asyncio
    async def test_empty_selection_is_zero(self, authenticated_client: AsyncClient, faults):
        response = await authenticated_client.post(f"{SERVICES_PREFIX}/estimate", json={"fault_ids": []})
        assert response.json()["estimated_cost"] == 0

    @pytest.mark.asyncio
    async def test_unknown_faults_add_nothing(self, authenticated_client: AsyncClient, faults):
        response = await authenticated_client.post(
            f"{SERVICES_PREFIX}/estimate", json={"fault_ids": [faults["PORT"].id, 9999]}
        )
        assert response.json()["estimated_cost"] == 450.5


class TestIntake:
    """POST /services and POST /services/check-previous"""

    @pytest.mark.asyncio
    async def test_first_visit_is_not_repeat(self, authenticated_client: AsyncClient, faults, device):
        response = await _intake(authenticated_client, device.id, [faults["SCREEN"].id], intake_notes="Cracked")
        assert response.status_code == 201
        data = response.json()
        service = data["service"]
        assert service["status"] == "PENDING"
        assert service["ticket_number"].startswith("SRV-")
        assert service["estimated_cost"] == 2500.0
        assert service["is_repeated_service"] is False
        assert service["is_warranty_repair"] is False
        assert service["fault_ids"] == [faults["SCREEN"].id]
        assert data["previous_service"]["last_service"] is None

    @pytest.mark.asyncio
    async def test_same_fault_repeat_is_warranty(self, authenticated_client: AsyncClient, faults, device):
        screen, port, device_id = faults["SCREEN"].id, faults["PORT"].id, device.id
        first = await _intake(authenticated_client, device_id, [screen])
        first_id = first.json()["service"]["id"]

        check = await authenticated_client.post(
            f"{SERVICES_PREFIX}/check-previous",
            json={"customer_device_id": device_id, "fault_ids": [screen, port]},
        )
        assert check.status_code == 200
        assert check.json()["is_repeated"] is True
        assert check.json()["has_fault_match"] is True
        assert check.json()["days_since_last_service"] == 0
        assert check.json()["last_service"]["id"] == first_id

        response = await _intake(authenticated_client, device_id, [screen, port])
        assert response.status_code == 201
        service = response.json()["service"]
        assert service["is_repeated_service"] is True
        assert service["previous_service_id"] == first_id
        assert service["is_warranty_repair"] is True
        assert service["warranty_reason"] == "SAME_FAULT"
        assert service["matching_fault_ids"] == [screen]
        # The repeated screen repair is not charged again
        assert service["estimated_cost"] == 450.5

    @pytest.mark.asyncio
    async def test_repeat_without_match_is_not_warranty(self, authenticated_client: AsyncClient, faults, device):
        screen, battery, device_id = faults["SCREEN"].id, faults["BATTERY"].id, device.id
        await _intake(authenticated_client, device_id, [screen])

        response = await _intake(authenticated_client, device_id, [battery])
        service = response.json()["service"]
        assert service["is_repeated_service"] is True
        assert service["is_warranty_repair"] is False
        assert service["warranty_reason"] is None
        assert service["estimated_cost"] == 1200.0

    @pytest.mark.asyncio
    async def test_staff_override_on_repeat(self, authenticated_client: AsyncClient, faults, device):
        screen, battery, device_id = faults["SCREEN"].id, faults["BATTERY"].id, device.id
        await _intake(authenticated_client, device_id, [screen])

        response = await _intake(authenticated_client, device_id, [battery], warranty_override=True)
        assert response.status_code == 201
        service = response.json()["service"]
        assert service["is_warranty_repair"] is True
        assert service["warranty_reason"] == "STAFF_OVERRIDE"
        assert service["estimated_cost"] == 1200.0

    @pytest.mark.asyncio
    async def test_staff_override_requires_previous_service(self, authenticated_client: AsyncClient, faults, device):
        response = await _intake(authenticated_client, device.id, [faults["SCREEN"].id], warranty_override=True)
        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_001"

    @pytest.mark.asyncio
    async def test_supplied_estimate_is_kept(self, authenticated_client: AsyncClient, faults, device):
        response = await _intake(authenticated_client, device.id, [faults["SCREEN"].id], estimated_cost=1999.99)
        assert response.json()["service"]["estimated_cost"] == 1999.99

    @pytest.mark.asyncio
    async def test_unknown_fault_rejected(self, authenticated_client: AsyncClient, faults, device):
        response = await _intake(authenticated_client, device.id, [faults["SCREEN"].id, 9999])
        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_empty_fault_selection_rejected(self, authenticated_client: AsyncClient, faults, device):
        response = await _intake(authenticated_client, device.id, [])
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_device_of_other_customer_rejected(self, authenticated_client: AsyncClient, faults, device):
        response = await authenticated_client.post(
            SERVICES_PREFIX,
            json={"customer_id": 7, "customer_device_id": device.id, "fault_ids": [faults["SCREEN"].id]},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_device_not_found(self, authenticated_client: AsyncClient, faults):
        response = await _intake(authenticated_client, 9999, [faults["SCREEN"].id])
        assert response.status_code == 404
        assert response.json()["code"] == "RES_001"


class TestLifecycle:
    """Assignment, completion and delivery with points awards."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_awards_points(self, authenticated_client: AsyncClient, faults, device, technician):
        technician_id = technician.id
        created = await _intake(authenticated_client, device.id, [faults["SCREEN"].id, faults["PORT"].id])
        service_id = created.json()["service"]["id"]

        assigned = await authenticated_client.post(
            f"{SERVICES_PREFIX}/{service_id}/assign", json={"technician_id": technician_id}
        )
        assert assigned.status_code == 200
        assert assigned.json()["status"] == "IN_PROGRESS"
        assert assigned.json()["assigned_technician_id"] == technician_id

        completed = await authenticated_client.post(
            f"{SERVICES_PREFIX}/{service_id}/complete", json={"actual_cost": 2800}
        )
        assert completed.status_code == 200
        assert completed.json()["service"]["status"] == "COMPLETED"
        assert completed.json()["service"]["actual_cost"] == 2800.0
        # 150 + 50 fault points at BRONZE (x1.0), no speed bonus without history
        assert completed.json()["points_awarded"] == 200

        delivered = await authenticated_client.post(
            f"{SERVICES_PREFIX}/{service_id}/deliver", json={"rating": 5}
        )
        assert delivered.status_code == 200
        assert delivered.json()["service"]["status"] == "DELIVERED"
        assert delivered.json()["service"]["rating"] == 5
        assert delivered.json()["points_awarded"] == 20 + 50

        profile = (await authenticated_client.get(f"/api/v2/technicians/{technician_id}")).json()
        assert profile["total_points"] == 270
        assert profile["total_services_completed"] == 1
        assert profile["average_rating"] == 5.0
        assert profile["rating_count"] == 1

        history = (await authenticated_client.get(f"/api/v2/technicians/{technician_id}/points-history")).json()
        assert sum(item["points"] for item in history["items"]) == 270
        assert {item["service_id"] for item in history["items"]} == {service_id}

    @pytest.mark.asyncio
    async def test_low_rating_earns_delivery_points_only(
        self, authenticated_client: AsyncClient, faults, device, technician
    ):
        technician_id = technician.id
        created = await _intake(authenticated_client, device.id, [faults["BATTERY"].id])
        service_id = created.json()["service"]["id"]
        await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/assign", json={"technician_id": technician_id})
        await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/complete", json={})

        delivered = await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/deliver", json={"rating": 2})
        assert delivered.json()["points_awarded"] == 20

    @pytest.mark.asyncio
    async def test_complete_requires_assignment(self, authenticated_client: AsyncClient, faults, device):
        created = await _intake(authenticated_client, device.id, [faults["SCREEN"].id])
        service_id = created.json()["service"]["id"]

        response = await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/complete", json={})
        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_001"

    @pytest.mark.asyncio
    async def test_deliver_requires_completion(self, authenticated_client: AsyncClient, faults, device):
        created = await _intake(authenticated_client, device.id, [faults["SCREEN"].id])
        service_id = created.json()["service"]["id"]

        response = await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/deliver", json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rating_out_of_range_rejected(self, authenticated_client: AsyncClient, faults, device):
        created = await _intake(authenticated_client, device.id, [faults["SCREEN"].id])
        service_id = created.json()["service"]["id"]

        response = await authenticated_client.post(f"{SERVICES_PREFIX}/{service_id}/deliver", json={"rating": 6})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_assignment_respects_capacity(self, authenticated_client: AsyncClient, faults, device, technician):
        technician_id = technician.id
        await authenticated_client.patch(
            f"/api/v2/technicians/{technician_id}", json={"max_concurrent_jobs": 1}
        )
        first = (await _intake(authenticated_client, device.id, [faults["SCREEN"].id])).json()["service"]["id"]
        second = (await _intake(authenticated_client, device.id, [faults["BATTERY"].id])).json()["service"]["id"]

        ok = await authenticated_client.post(f"{SERVICES_PREFIX}/{first}/assign", json={"technician_id": technician_id})
        assert ok.status_code == 200

        full = await authenticated_client.post(
            f"{SERVICES_PREFIX}/{second}/assign", json={"technician_id": technician_id}
        )
        assert full.status_code == 400
        assert "limit 1" in full.json()["detail"]

    @pytest.mark.asyncio
    async def test_unavailable_technician_not_assignable(
        self, authenticated_client: AsyncClient, faults, device, technician
    ):
        technician_id = technician.id
        await authenticated_client.patch(f"/api/v2/technicians/{technician_id}", json={"is_available": False})
        service_id = (await _intake(authenticated_client, device.id, [faults["SCREEN"].id])).json()["service"]["id"]

        response = await authenticated_client.post(
            f"{SERVICES_PREFIX}/{service_id}/assign", json={"technician_id": technician_id}
        )
        assert response.status_code == 400


class TestCatalogAndDevices:
    """Fault catalog and customer device endpoints."""

    @pytest.mark.asyncio
    async def test_create_fault_uppercases_code(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(
            "/api/v2/faults",
            json={"name": "Camera module replacement", "code": " camera ", "default_price": 1800, "technician_points": 120},
        )
        assert response.status_code == 201
        assert response.json()["code"] == "CAMERA"

        duplicate = await authenticated_client.post(
            "/api/v2/faults", json={"name": "Camera again", "code": "CAMERA"}
        )
        assert duplicate.status_code == 409

    @pytest.mark.asyncio
    async def test_list_faults(self, authenticated_client: AsyncClient, faults):
        response = await authenticated_client.get("/api/v2/faults")
        assert response.status_code == 200
        assert response.json()["total"] == 3

    @pytest.mark.asyncio
    async def test_register_device_and_list_history(self, authenticated_client: AsyncClient, faults):
        created = await authenticated_client.post(
            "/api/v2/customer-devices",
            json={"customer_id": 42, "brand": "Apple", "model": "iPhone 12", "imei": "356789104512345"},
        )
        assert created.status_code == 201
        device = created.json()
        assert device["display_name"] == "Apple iPhone 12"

        await _intake(authenticated_client, device["id"], [faults["SCREEN"].id])
        await _intake(authenticated_client, device["id"], [faults["PORT"].id])

        history = await authenticated_client.get(f"/api/v2/customer-devices/{device['id']}/services")
        assert history.status_code == 200
        assert [s["fault_ids"] for s in history.json()] == [[faults["PORT"].id], [faults["SCREEN"].id]]
