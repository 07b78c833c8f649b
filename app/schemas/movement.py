"""
Movement Schemas
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.models.drug import Location
from app.models.movement import MovementStatus, MovementPriority
from .drug import DrugSummary

class MovementCreate(BaseModel):
    drug_id: UUID
    quantity: int = Field(..., gt=0)
    from_location: Location
    to_location: Location
    priority: MovementPriority = MovementPriority.NORMAL
    expected_delivery: Optional[datetime] = None
    driver_id: Optional[UUID] = None
    notes: str = ""

    @model_validator(mode="after")
    def check_route(self):
        if self.from_location == self.to_location:
            raise ValueError("from_location and to_location must differ")
        return self

    class Config:
        use_enum_values = True
        validate_default = True

class MovementStatusUpdate(BaseModel):
    status: MovementStatus
    notes: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True

class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

class MovementScanRequest(BaseModel):
    location: str = Field(..., min_length=1, max_length=50)
    coordinates: Optional[Coordinates] = None
    notes: Optional[str] = None

class AssignDriverRequest(BaseModel):
    driver_id: UUID
    vehicle: Optional[str] = None

class ScanEventResponse(BaseModel):
    seq: int
    location: str
    lat: Optional[float]
    lng: Optional[float]
    scanned_at: datetime
    scanned_by: Optional[UUID]
    notes: Optional[str]

    class Config:
        from_attributes = True

class MovementResponse(BaseModel):
    id: UUID
    movement_code: str
    drug_id: UUID
    drug: Optional[DrugSummary]
    quantity: int
    from_location: str
    to_location: str
    status: str
    priority: str
    driver_id: Optional[UUID]
    vehicle: Optional[str]
    expected_delivery: Optional[datetime]
    actual_delivery: Optional[datetime]
    notes: Optional[str]
    created_by: Optional[UUID]
    approved_by: Optional[UUID]
    scan_history: List[ScanEventResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
