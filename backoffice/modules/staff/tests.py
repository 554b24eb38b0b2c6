"""
Tests para el módulo de Personal

- Usuarios administrativos (operadores de caja)
- Meseros
"""

import pytest
from fastapi import HTTPException

from backoffice.modules.staff.schemas import AdminUserCreate, WaiterCreate
from backoffice.modules.staff.service import StaffService


class TestAdminUsers:
    """Tests para usuarios administrativos"""

    def test_create_admin_user_normalizes_username(self, db_session):
        user = StaffService(db_session).create_admin_user(
            AdminUserCreate(username="  Gerente ", display_name="Gerencia")
        )
        assert user.id is not None
        assert user.username == "gerente"
        assert user.is_active is True

    def test_duplicate_username_conflict(self, db_session, admin_user):
        with pytest.raises(HTTPException) as exc_info:
            StaffService(db_session).create_admin_user(AdminUserCreate(username="CAJERO1"))
        assert exc_info.value.status_code == 409

    def test_get_missing_admin_user(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            StaffService(db_session).get_admin_user(999)
        assert exc_info.value.status_code == 404

    def test_list_excludes_inactive_by_default(self, db_session, admin_user):
        service = StaffService(db_session)
        service.create_admin_user(AdminUserCreate(username="inactivo", is_active=False))

        active = [u.username for u in service.list_admin_users()]
        everyone = [u.username for u in service.list_admin_users(include_inactive=True)]

        assert active == ["cajero1"]
        assert "inactivo" in everyone


class TestWaiters:
    """Tests para meseros"""

    def test_create_waiter_uppercases_code(self, db_session):
        waiter = StaffService(db_session).create_waiter(WaiterCreate(code="m02", full_name="Luis Ruiz"))
        assert waiter.code == "M02"

    def test_duplicate_waiter_code_conflict(self, db_session, waiter):
        with pytest.raises(HTTPException) as exc_info:
            StaffService(db_session).create_waiter(WaiterCreate(code="m01", full_name="Otro"))
        assert exc_info.value.status_code == 409

    def test_get_waiter_by_code(self, db_session, waiter):
        service = StaffService(db_session)
        assert service.get_waiter_by_code(" m01 ").id == waiter.id
        assert service.get_waiter_by_code("NOEXISTE") is None


class TestStaffEndpoints:
    """Tests de endpoints"""

    def test_create_and_list_waiters(self, client):
        response = client.post("/staff/waiters", json={"code": "m10", "full_name": "Carla Gómez"})
        assert response.status_code == 201
        assert response.json()["code"] == "M10"

        listing = client.get("/staff/waiters")
        assert listing.status_code == 200
        assert [w["code"] for w in listing.json()] == ["M10"]

    def test_create_admin_user_duplicate(self, client, admin_user):
        response = client.post("/staff/admin-users", json={"username": "cajero1"})
        assert response.status_code == 409


class TestOperatorHeader:
    """Tests del encabezado X-Admin-User-ID y de los encabezados de seguridad"""

    def test_invalid_header_rejected(self, client):
        response = client.get("/staff/waiters", headers={"X-Admin-User-ID": "abc"})
        assert response.status_code == 400

    def test_non_positive_header_rejected(self, client):
        response = client.get("/staff/waiters", headers={"X-Admin-User-ID": "0"})
        assert response.status_code == 400

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
