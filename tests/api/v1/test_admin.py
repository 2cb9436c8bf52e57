"""
Tests for admin API endpoints.

These tests cover /api/admin:
- User lookup, block/unblock and delete
- Device lookup, block/unblock and delete
- Role gate and self-protection rules
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nac_api.core.security import hash_token
from nac_api.models.device import Devices
from nac_api.models.user import Users
from nac_api.utils import utcnow


@pytest.mark.api
class TestAdminUsers:
    """Tests for /api/admin/users endpoints."""

    async def test_get_user_with_devices(
        self, client: AsyncClient, student, make_device, admin_headers
    ):
        first = await make_device(
            student, "AA:BB:CC:DD:EE:01", bound_at=utcnow() - timedelta(days=2)
        )
        second = await make_device(
            student, "AA:BB:CC:DD:EE:02", bound_at=utcnow() - timedelta(days=1)
        )

        response = await client.get(f"/api/admin/users/{student.user_id}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == student.user_id
        assert data["studentId"] == "S1001"
        assert [d["id"] for d in data["devices"]] == [first.device_id, second.device_id]

    async def test_get_missing_user(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/admin/users/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    async def test_block_user(
        self, client: AsyncClient, db_session: AsyncSession, student, admin_headers
    ):
        student.refresh_token_hash = hash_token("issued-earlier")
        db_session.add(student)
        await db_session.commit()

        response = await client.put(
            f"/api/admin/users/{student.user_id}/status",
            json={"status": "blocked"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User blocked successfully"
        assert body["data"]["status"] == "blocked"
        user = await db_session.get(Users, student.user_id, populate_existing=True)
        assert user.status == "blocked"
        assert user.refresh_token_hash is None

    async def test_blocked_user_cannot_login(self, client: AsyncClient, student, admin_headers):
        await client.put(
            f"/api/admin/users/{student.user_id}/status",
            json={"status": "blocked"},
            headers=admin_headers,
        )

        response = await client.post(
            "/api/users/login", json={"studentId": "S1001", "password": "Password123"}
        )
        assert response.status_code == 403

    async def test_unblock_user(self, client: AsyncClient, make_user, admin_headers):
        blocked = await make_user("S1002", status="blocked")

        response = await client.put(
            f"/api/admin/users/{blocked.user_id}/status",
            json={"status": "active"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "User unblocked successfully"

    async def test_invalid_status_value(self, client: AsyncClient, student, admin_headers):
        response = await client.put(
            f"/api/admin/users/{student.user_id}/status",
            json={"status": "suspended"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_admin_cannot_block_self(
        self, client: AsyncClient, admin_user, admin_headers
    ):
        response = await client.put(
            f"/api/admin/users/{admin_user.user_id}/status",
            json={"status": "blocked"},
            headers=admin_headers,
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "You cannot block yourself"

    async def test_delete_user_cascades(
        self, client: AsyncClient, db_session: AsyncSession, student, make_device, admin_headers
    ):
        await make_device(student, "AA:BB:CC:DD:EE:01")
        await make_device(student, "AA:BB:CC:DD:EE:02")
        user_id = student.user_id

        response = await client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"deletedUserId": user_id, "deletedDevicesCount": 2}
        remaining = await db_session.scalar(
            select(func.count()).select_from(Devices).where(Devices.user_id == user_id)
        )
        assert remaining == 0
        assert await db_session.get(Users, user_id) is None

    async def test_admin_cannot_delete_self(
        self, client: AsyncClient, admin_user, admin_headers
    ):
        response = await client.delete(
            f"/api/admin/users/{admin_user.user_id}", headers=admin_headers
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "You cannot delete yourself"

    async def test_delete_missing_user(self, client: AsyncClient, admin_headers):
        response = await client.delete("/api/admin/users/999", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.api
class TestAdminUserList:
    """Tests for GET /api/admin/users."""

    async def test_lists_users_with_devices(
        self, client: AsyncClient, student, admin_user, make_device, admin_headers
    ):
        first = await make_device(
            student, "AA:BB:CC:DD:EE:01", bound_at=utcnow() - timedelta(days=2)
        )
        second = await make_device(
            student, "AA:BB:CC:DD:EE:02", bound_at=utcnow() - timedelta(days=1)
        )

        response = await client.get("/api/admin/users", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Users fetched successfully"
        by_student = {u["studentId"]: u for u in body["data"]}
        assert set(by_student) == {"S1001", "A0001"}
        assert [d["id"] for d in by_student["S1001"]["devices"]] == [
            first.device_id,
            second.device_id,
        ]
        assert by_student["A0001"]["devices"] == []
        assert "passwordHash" not in by_student["S1001"]
        assert "refreshTokenHash" not in by_student["S1001"]

    async def test_filters(self, client: AsyncClient, student, make_user, admin_headers):
        await make_user("S1002", status="blocked")

        blocked = await client.get("/api/admin/users?status=blocked", headers=admin_headers)
        students = await client.get("/api/admin/users?role=student", headers=admin_headers)
        admins = await client.get(
            "/api/admin/users?role=admin&status=active", headers=admin_headers
        )

        assert [u["studentId"] for u in blocked.json()["data"]] == ["S1002"]
        assert {u["studentId"] for u in students.json()["data"]} == {"S1001", "S1002"}
        assert [u["studentId"] for u in admins.json()["data"]] == ["A0001"]

    async def test_invalid_filter(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/admin/users?status=suspended", headers=admin_headers)
        assert response.status_code == 400


@pytest.mark.api
class TestAdminDeviceList:
    """Tests for GET /api/admin/devices."""

    async def test_lists_devices_with_owners(
        self, client: AsyncClient, student, make_user, make_device, admin_headers
    ):
        other = await make_user("S2002")
        await make_device(student, "AA:BB:CC:DD:EE:01")
        await make_device(other, "AA:BB:CC:DD:EE:02", status="blocked")

        response = await client.get("/api/admin/devices", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Devices fetched successfully"
        owners = {d["macAddress"]: d["owner"]["studentId"] for d in response.json()["data"]}
        assert owners == {"AA:BB:CC:DD:EE:01": "S1001", "AA:BB:CC:DD:EE:02": "S2002"}

    async def test_status_filter(
        self, client: AsyncClient, student, make_device, admin_headers
    ):
        await make_device(student, "AA:BB:CC:DD:EE:01")
        await make_device(student, "AA:BB:CC:DD:EE:02", status="blocked")

        response = await client.get("/api/admin/devices?status=blocked", headers=admin_headers)

        assert [d["macAddress"] for d in response.json()["data"]] == ["AA:BB:CC:DD:EE:02"]


@pytest.mark.api
class TestAdminDevices:
    """Tests for /api/admin/devices endpoints."""

    async def test_get_device_with_owner(
        self, client: AsyncClient, student, make_device, admin_headers
    ):
        device = await make_device(student, "AA:BB:CC:DD:EE:01")

        response = await client.get(
            f"/api/admin/devices/{device.device_id}", headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["macAddress"] == "AA:BB:CC:DD:EE:01"
        assert data["owner"]["studentId"] == "S1001"

    async def test_block_device_then_login_fails(
        self, client: AsyncClient, student, make_device, admin_headers
    ):
        device = await make_device(student, "AA:BB:CC:DD:EE:01")

        response = await client.put(
            f"/api/admin/devices/{device.device_id}/status",
            json={"status": "blocked"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Device blocked successfully"
        assert response.json()["data"]["status"] == "blocked"

        login = await client.post(
            "/api/users/login",
            json={
                "studentId": "S1001",
                "password": "Password123",
                "macAddress": "AA:BB:CC:DD:EE:01",
            },
        )
        assert login.status_code == 403
        assert login.json()["code"] == "device_blocked"

    async def test_unblock_device(self, client: AsyncClient, student, make_device, admin_headers):
        device = await make_device(student, "AA:BB:CC:DD:EE:01", status="blocked")

        response = await client.put(
            f"/api/admin/devices/{device.device_id}/status",
            json={"status": "active"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Device unblocked successfully"

    async def test_delete_device(
        self, client: AsyncClient, db_session: AsyncSession, student, make_device, admin_headers
    ):
        device = await make_device(student, "AA:BB:CC:DD:EE:01")
        device_id = device.device_id

        response = await client.delete(f"/api/admin/devices/{device_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {
            "deletedDeviceId": device_id,
            "macAddress": "AA:BB:CC:DD:EE:01",
        }
        assert await db_session.get(Devices, device_id) is None

    async def test_missing_device(self, client: AsyncClient, admin_headers):
        fetched = await client.get("/api/admin/devices/999", headers=admin_headers)
        deleted = await client.delete("/api/admin/devices/999", headers=admin_headers)
        assert fetched.status_code == deleted.status_code == 404


@pytest.mark.api
class TestAdminGate:
    """Every admin route requires an admin access token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("GET", "/api/admin/devices"),
            ("GET", "/api/admin/users/1"),
            ("PUT", "/api/admin/users/1/status"),
            ("DELETE", "/api/admin/users/1"),
            ("GET", "/api/admin/devices/1"),
            ("PUT", "/api/admin/devices/1/status"),
            ("DELETE", "/api/admin/devices/1"),
        ],
    )
    async def test_student_forbidden(
        self, client: AsyncClient, student, auth_headers, method, path
    ):
        response = await client.request(
            method, path, headers=auth_headers(student), json={"status": "blocked"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    async def test_anonymous_unauthenticated(self, client: AsyncClient):
        response = await client.get("/api/admin/users/1")
        assert response.status_code == 401
