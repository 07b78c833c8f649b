"""
Alert Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.core.permissions import UserRole
from app.models.alert import AlertType, AlertSeverity

class AlertCreate(BaseModel):
    """Manually raised alert"""
    type: AlertType = AlertType.SYSTEM
    severity: AlertSeverity = AlertSeverity.INFO
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    drug_id: Optional[UUID] = None
    movement_id: Optional[UUID] = None
    target_roles: List[UserRole] = Field(default_factory=lambda: [UserRole.ADMIN])

    class Config:
        use_enum_values = True
        validate_default = True

class AlertResponse(BaseModel):
    id: UUID
    type: str
    severity: str
    title: str
    message: str
    drug_id: Optional[UUID]
    movement_id: Optional[UUID]
    is_read: bool
    is_resolved: bool
    resolved_at: Optional[datetime]
    resolved_by: Optional[UUID]
    target_roles: List[str]
    created_at: datetime

    class Config:
        from_attributes = True
