"""
Drug Master & Stock Models

One Drug row is one batch of a product resident at one storage location.
"""
from sqlalchemy import Column, String, Numeric, Boolean, Integer, Date, ForeignKey, Text, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
import enum

from app.core import Base
from .base import UUIDMixin, TimestampMixin


class DrugCategory(str, enum.Enum):
    ANTIBIOTICS = "antibiotics"
    PAINKILLERS = "painkillers"
    CARDIOVASCULAR = "cardiovascular"
    RESPIRATORY = "respiratory"
    DIABETES = "diabetes"
    VITAMINS = "vitamins"
    VACCINES = "vaccines"
    EMERGENCY = "emergency"
    OTHER = "other"


class DrugUnit(str, enum.Enum):
    TABLETS = "tablets"
    CAPSULES = "capsules"
    VIALS = "vials"
    BOTTLES = "bottles"
    BOXES = "boxes"
    STRIPS = "strips"


class Location(str, enum.Enum):
    CENTRAL_WAREHOUSE = "central-warehouse"
    CITY_HOSPITAL = "city-hospital"
    DISTRICT_PHARMACY = "district-pharmacy"
    MOBILE_UNIT = "mobile-unit"


class StorageCondition(str, enum.Enum):
    ROOM_TEMPERATURE = "room-temperature"
    REFRIGERATED = "refrigerated"
    FROZEN = "frozen"
    CONTROLLED = "controlled"


class StockStatus(str, enum.Enum):
    OUT_OF_STOCK = "out-of-stock"
    LOW_STOCK = "low-stock"
    OVERSTOCKED = "overstocked"
    IN_STOCK = "in-stock"


class Drug(Base, UUIDMixin, TimestampMixin):
    """Drug batch at a storage location"""
    __tablename__ = "drug"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_drug_quantity_non_negative"),
    )
    
    drug_code = Column(String(50), unique=True, nullable=False, index=True)  # DRG-XXXX-XXXX
    name = Column(String(300), nullable=False, index=True)
    generic_name = Column(String(300))
    category = Column(String(30), default=DrugCategory.OTHER.value, nullable=False)
    batch_no = Column(String(100), nullable=False, index=True)
    
    # Stock
    quantity = Column(Integer, nullable=False, default=0)
    unit = Column(String(20), default=DrugUnit.TABLETS.value, nullable=False)
    price = Column(Numeric(12, 2), default=0, nullable=False)
    min_threshold = Column(Integer, default=50, nullable=False)
    max_threshold = Column(Integer, default=1000, nullable=False)
    
    # Sourcing
    manufacturer = Column(String(200), nullable=False)
    supplier = Column(String(200), nullable=False)
    manufacture_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False, index=True)
    
    location = Column(String(30), default=Location.CENTRAL_WAREHOUSE.value, nullable=False, index=True)
    storage_condition = Column(String(30), default=StorageCondition.ROOM_TEMPERATURE.value, nullable=False)
    description = Column(Text, default="")
    qr_code = Column(Text, default="")  # PNG data URL
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"))
    
    # Relationships
    creator = relationship("AppUser", foreign_keys=[created_by])
    movements = relationship("Movement", back_populates="drug")
    alerts = relationship("Alert", back_populates="drug")

    @property
    def days_until_expiry(self) -> int:
        """Days left before expiry: 0 on the expiry day, negative once expired"""
        return (self.expiry_date - date.today()).days

    @property
    def stock_status(self) -> str:
        if self.quantity <= 0:
            return StockStatus.OUT_OF_STOCK.value
        if self.quantity <= self.min_threshold:
            return StockStatus.LOW_STOCK.value
        if self.quantity >= self.max_threshold:
            return StockStatus.OVERSTOCKED.value
        return StockStatus.IN_STOCK.value

    def qr_fields(self) -> dict:
        """Fields encoded in the QR payload"""
        return {
            "drugId": self.drug_code,
            "name": self.name,
            "batchNo": self.batch_no,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "location": self.location,
        }
