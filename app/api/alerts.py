"""
Alerts API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db
from app.api.auth import require_permission
from app.models import AppUser
from app.schemas.alert import AlertCreate, AlertResponse
from app.schemas.drug import DrugResponse
from app.services import AlertService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    type: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    is_read: Optional[bool] = Query(None),
    is_resolved: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.read"))
):
    """Alerts targeted at the caller's role"""
    alerts, total, unread_count = AlertService.get_alerts(
        db, current_user.role, type, severity, is_read, is_resolved, page, per_page
    )
    return {
        "alerts": [AlertResponse.model_validate(a) for a in alerts],
        "unread_count": unread_count,
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


@router.post("", response_model=AlertResponse, status_code=201)
async def create_alert(
    alert_data: AlertCreate,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.create"))
):
    return AlertService.create_alert(db, alert_data)


@router.get("/expiry")
async def expiring_drugs(
    days: int = Query(30, ge=1, le=3650),
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.read"))
):
    drugs = AlertService.get_expiring_drugs(db, days)
    return {"drugs": [DrugResponse.model_validate(d) for d in drugs]}


@router.get("/low-stock")
async def low_stock_drugs(
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.read"))
):
    drugs = AlertService.get_low_stock_drugs(db)
    return {"drugs": [DrugResponse.model_validate(d) for d in drugs]}


@router.put("/read-all")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.mark_read"))
):
    updated = AlertService.mark_all_read(db, current_user.role)
    return {"message": "All alerts marked as read", "updated": updated}


@router.put("/{alert_id}/read", response_model=AlertResponse)
async def mark_read(
    alert_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.mark_read"))
):
    return AlertService.mark_read(db, alert_id, current_user.role)


@router.put("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("alert.resolve"))
):
    return AlertService.resolve(db, alert_id, current_user)
