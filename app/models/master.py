"""
Master Tables: AppUser
"""
from sqlalchemy import Column, String, Boolean
from app.core import Base
from app.core.permissions import UserRole
from .base import UUIDMixin, TimestampMixin

class AppUser(Base, UUIDMixin, TimestampMixin):
    """Application User (admin / warehouse / pharmacist / driver)"""
    __tablename__ = "app_user"
    
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200))
    full_name = Column(String(200))
    phone = Column(String(50))
    hashed_password = Column(String(255))
    role = Column(String(20), nullable=False, default=UserRole.PHARMACIST.value, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
