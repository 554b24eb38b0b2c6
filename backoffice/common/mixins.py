"""
Common mixins for back-office models
"""
from sqlalchemy import Column, DateTime, Boolean
from sqlalchemy.sql import func


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ActiveMixin:
    """Mixin for catalog rows that can be deactivated instead of deleted"""

    is_active = Column(Boolean, default=True, nullable=False)

    def deactivate(self):
        self.is_active = False

    def activate(self):
        self.is_active = True
