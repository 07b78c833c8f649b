"""
Alert Models
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Index, Uuid, text
from sqlalchemy.orm import relationship
import enum

from app.core import Base
from .base import UUIDMixin, TimestampMixin


class AlertType(str, enum.Enum):
    LOW_STOCK = "low-stock"
    EXPIRY = "expiry"
    DELIVERY_DELAY = "delivery-delay"
    REORDER = "reorder"
    MOVEMENT = "movement"
    SYSTEM = "system"


class AlertSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Condition types that may have only one open alert per drug
RECURRING_ALERT_TYPES = (AlertType.LOW_STOCK.value, AlertType.EXPIRY.value)

_OPEN_CONDITION = text("is_resolved = false AND type IN ('low-stock', 'expiry')")


class Alert(Base, UUIDMixin, TimestampMixin):
    """Alert about a drug or movement condition"""
    __tablename__ = "alert"
    __table_args__ = (
        Index(
            "uq_alert_open_condition",
            "drug_id",
            "type",
            unique=True,
            postgresql_where=_OPEN_CONDITION,
            sqlite_where=_OPEN_CONDITION,
        ),
    )
    
    type = Column(String(30), nullable=False, index=True)
    severity = Column(String(20), default=AlertSeverity.INFO.value, nullable=False)
    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    
    drug_id = Column(Uuid(as_uuid=True), ForeignKey("drug.id"), index=True)
    movement_id = Column(Uuid(as_uuid=True), ForeignKey("movement.id"))
    
    is_read = Column(Boolean, default=False, nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"))
    
    # Relationships
    drug = relationship("Drug", back_populates="alerts")
    movement = relationship("Movement")
    resolver = relationship("AppUser", foreign_keys=[resolved_by])
    audience = relationship("AlertTargetRole", back_populates="alert", cascade="all, delete-orphan")

    @property
    def target_roles(self):
        return [a.role for a in self.audience]


class AlertTargetRole(Base):
    """Roles an alert is visible to"""
    __tablename__ = "alert_target_role"
    
    alert_id = Column(Uuid(as_uuid=True), ForeignKey("alert.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(20), primary_key=True)
    
    alert = relationship("Alert", back_populates="audience")
