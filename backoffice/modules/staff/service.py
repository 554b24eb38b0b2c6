from typing import List, Optional
from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from backoffice.common.validators import normalize_code, clean_text
from backoffice.modules.staff.models import AdminUser, Waiter
from backoffice.modules.staff.schemas import AdminUserCreate, WaiterCreate


class StaffService:
    """Usuarios del back office y meseros."""

    def __init__(self, db: Session):
        self.db = db

    def list_admin_users(self, include_inactive: bool = False) -> List[AdminUser]:
        query = self.db.query(AdminUser)
        if not include_inactive:
            query = query.filter(AdminUser.is_active == True)
        return query.order_by(AdminUser.username).all()

    def get_admin_user(self, admin_user_id: int) -> AdminUser:
        user = self.db.query(AdminUser).filter(AdminUser.id == admin_user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Usuario no encontrado"
            )
        return user

    def create_admin_user(self, data: AdminUserCreate) -> AdminUser:
        username = data.username.strip().lower()
        if not username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El usuario es obligatorio"
            )
        existing = self.db.query(AdminUser).filter(AdminUser.username == username).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe el usuario '{username}'"
            )
        user = AdminUser(
            username=username,
            display_name=clean_text(data.display_name, 150),
            is_active=data.is_active
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def list_waiters(self, include_inactive: bool = False) -> List[Waiter]:
        query = self.db.query(Waiter)
        if not include_inactive:
            query = query.filter(Waiter.is_active == True)
        return query.order_by(Waiter.full_name).all()

    def get_waiter_by_code(self, code: Optional[str]) -> Optional[Waiter]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self.db.query(Waiter).filter(Waiter.code == normalized).first()

    def create_waiter(self, data: WaiterCreate) -> Waiter:
        code = normalize_code(data.code)
        if self.get_waiter_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un mesero con el código {code}"
            )
        waiter = Waiter(code=code, full_name=data.full_name.strip(), is_active=data.is_active)
        self.db.add(waiter)
        self.db.commit()
        self.db.refresh(waiter)
        return waiter
