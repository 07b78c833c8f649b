"""
Drug Schemas
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal

from app.models.drug import DrugCategory, DrugUnit, Location, StorageCondition

class DrugCreate(BaseModel):
    name: str = Field(..., min_length=1)
    generic_name: Optional[str] = None
    category: DrugCategory = DrugCategory.OTHER
    batch_no: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)
    unit: DrugUnit = DrugUnit.TABLETS
    price: Decimal = Field(..., ge=0)
    manufacturer: str
    supplier: str
    manufacture_date: date
    expiry_date: date
    location: Location = Location.CENTRAL_WAREHOUSE
    min_threshold: int = Field(50, ge=0)
    max_threshold: int = Field(1000, ge=0)
    storage_condition: StorageCondition = StorageCondition.ROOM_TEMPERATURE
    description: str = ""

    @model_validator(mode="after")
    def check_dates_and_thresholds(self):
        if self.expiry_date <= self.manufacture_date:
            raise ValueError("expiry_date must be after manufacture_date")
        if self.max_threshold < self.min_threshold:
            raise ValueError("max_threshold must not be below min_threshold")
        return self

    class Config:
        use_enum_values = True
        validate_default = True

class DrugUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    generic_name: Optional[str] = None
    category: Optional[DrugCategory] = None
    batch_no: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0)
    unit: Optional[DrugUnit] = None
    price: Optional[Decimal] = Field(None, ge=0)
    manufacturer: Optional[str] = None
    supplier: Optional[str] = None
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None
    location: Optional[Location] = None
    min_threshold: Optional[int] = Field(None, ge=0)
    max_threshold: Optional[int] = Field(None, ge=0)
    storage_condition: Optional[StorageCondition] = None
    description: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True

class DrugScanRequest(BaseModel):
    """Decoded QR payload sent back by a scanner"""
    drug_code: str
    batch_no: str

class DrugSummary(BaseModel):
    id: UUID
    drug_code: str
    name: str
    batch_no: str

    class Config:
        from_attributes = True

class DrugResponse(BaseModel):
    id: UUID
    drug_code: str
    name: str
    generic_name: Optional[str]
    category: str
    batch_no: str
    quantity: int
    unit: str
    price: Decimal
    manufacturer: str
    supplier: str
    manufacture_date: date
    expiry_date: date
    location: str
    min_threshold: int
    max_threshold: int
    storage_condition: str
    description: Optional[str]
    qr_code: Optional[str]
    is_active: bool
    days_until_expiry: int
    stock_status: str
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
