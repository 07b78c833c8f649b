"""
Movement (shipment) & Scan History Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Float, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
import enum

from app.core import Base
from .base import UUIDMixin, TimestampMixin, utcnow


class MovementStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class MovementPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Directed edges of the movement lifecycle
STATUS_TRANSITIONS = {
    MovementStatus.PENDING.value: [MovementStatus.APPROVED.value, MovementStatus.CANCELLED.value],
    MovementStatus.APPROVED.value: [MovementStatus.IN_TRANSIT.value, MovementStatus.CANCELLED.value],
    MovementStatus.IN_TRANSIT.value: [MovementStatus.DELIVERED.value, MovementStatus.CANCELLED.value],
    MovementStatus.DELIVERED.value: [],
    MovementStatus.CANCELLED.value: [],
}

TERMINAL_STATUSES = (MovementStatus.DELIVERED.value, MovementStatus.CANCELLED.value)


class Movement(Base, UUIDMixin, TimestampMixin):
    """Shipment of a fixed quantity of one drug batch between locations"""
    __tablename__ = "movement"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
    )
    
    movement_code = Column(String(50), unique=True, nullable=False, index=True)  # MOV-XXXX-XXXX
    drug_id = Column(Uuid(as_uuid=True), ForeignKey("drug.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    from_location = Column(String(50), nullable=False)
    to_location = Column(String(50), nullable=False)
    
    status = Column(String(20), default=MovementStatus.PENDING.value, nullable=False, index=True)
    priority = Column(String(20), default=MovementPriority.NORMAL.value, nullable=False)
    
    # Delivery
    driver_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), index=True)
    vehicle = Column(String(100), default="")
    expected_delivery = Column(DateTime)
    actual_delivery = Column(DateTime)
    
    notes = Column(Text, default="")
    created_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"))
    approved_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"))
    
    # Relationships
    drug = relationship("Drug", back_populates="movements")
    driver = relationship("AppUser", foreign_keys=[driver_id])
    creator = relationship("AppUser", foreign_keys=[created_by])
    approver = relationship("AppUser", foreign_keys=[approved_by])
    scan_history = relationship(
        "ScanEvent",
        back_populates="movement",
        order_by="ScanEvent.seq",
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ScanEvent(Base):
    """Append-only scan / audit trail entry of a movement"""
    __tablename__ = "movement_scan"
    
    seq = Column(Integer, primary_key=True, autoincrement=True)  # append order
    movement_id = Column(Uuid(as_uuid=True), ForeignKey("movement.id"), nullable=False, index=True)
    location = Column(String(50), nullable=False)
    lat = Column(Float)
    lng = Column(Float)
    scanned_at = Column(DateTime, default=utcnow, nullable=False)
    scanned_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"))
    notes = Column(Text)
    
    # Relationships
    movement = relationship("Movement", back_populates="scan_history")
    scanner = relationship("AppUser", foreign_keys=[scanned_by])
