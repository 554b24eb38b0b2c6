from fastapi import APIRouter, Query, status
from typing import List

from backoffice.dependencies.dbDependencies import db_dependency
from backoffice.modules.staff.service import StaffService
from backoffice.modules.staff.schemas import AdminUserCreate, AdminUserOut, WaiterCreate, WaiterOut

staff_router = APIRouter(prefix="/staff", tags=["Staff"])


@staff_router.get("/admin-users", response_model=List[AdminUserOut])
def list_admin_users(db: db_dependency, include_inactive: bool = Query(False)):
    """Listar usuarios del back office."""
    return StaffService(db).list_admin_users(include_inactive)


@staff_router.post("/admin-users", response_model=AdminUserOut, status_code=status.HTTP_201_CREATED)
def create_admin_user(data: AdminUserCreate, db: db_dependency):
    """Crear un usuario del back office."""
    return StaffService(db).create_admin_user(data)


@staff_router.get("/waiters", response_model=List[WaiterOut])
def list_waiters(db: db_dependency, include_inactive: bool = Query(False)):
    return StaffService(db).list_waiters(include_inactive)


@staff_router.post("/waiters", response_model=WaiterOut, status_code=status.HTTP_201_CREATED)
def create_waiter(data: WaiterCreate, db: db_dependency):
    return StaffService(db).create_waiter(data)
