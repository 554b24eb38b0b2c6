from backoffice.database.database import Base
from sqlalchemy import Column, Integer, String
from backoffice.common.mixins import TimestampMixin, ActiveMixin


class AdminUser(Base, TimestampMixin, ActiveMixin):
    """Usuarios del back office (cajeros, administradores, facturadores)"""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(60), nullable=False, unique=True, index=True)
    display_name = Column(String(150), nullable=True)


class Waiter(Base, TimestampMixin, ActiveMixin):
    """Meseros que atienden las mesas"""
    __tablename__ = "waiters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True, index=True)
    full_name = Column(String(150), nullable=False)
