from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from app.core import get_report_db
from app.api.auth import require_permission
from app.models import AppUser
from app.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reporting"])


@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_report_db),
    current_user: AppUser = Depends(require_permission("report.dashboard"))
):
    return ReportService.get_dashboard_stats(db)


@router.get("/inventory")
def get_inventory_report(
    location: Optional[str] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    db: Session = Depends(get_report_db),
    current_user: AppUser = Depends(require_permission("report.inventory"))
):
    return ReportService.get_inventory_report(db, location, category, start_date, end_date)


@router.get("/movements")
def get_movement_report(
    status: Optional[str] = None,
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_report_db),
    current_user: AppUser = Depends(require_permission("report.movement"))
):
    return ReportService.get_movement_report(db, status, from_location, to_location, start_date, end_date)


@router.get("/expiry")
def get_expiry_report(
    days: int = Query(90, ge=1, le=3650, description="Days ahead to include"),
    db: Session = Depends(get_report_db),
    current_user: AppUser = Depends(require_permission("report.expiry"))
):
    return ReportService.get_expiry_report(db, days)


@router.get("/consumption")
def get_consumption_report(
    start_date: Optional[date] = Query(None, description="Delivered on or after (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Delivered on or before (YYYY-MM-DD)"),
    db: Session = Depends(get_report_db),
    current_user: AppUser = Depends(require_permission("report.consumption"))
):
    """
    Delivered quantities per drug.

    Args:
        start_date / end_date: bounds on the actual delivery day, inclusive
    """
    return ReportService.get_consumption_report(db, start_date, end_date)
