"""
Movements API - shipment lifecycle endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db
from app.core.permissions import UserRole
from app.api.auth import require_permission
from app.models import AppUser
from app.schemas.movement import (
    MovementCreate, MovementStatusUpdate, MovementScanRequest, AssignDriverRequest, MovementResponse,
)
from app.services import MovementService

router = APIRouter(prefix="/movements", tags=["movements"])


@router.get("")
async def list_movements(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    from_location: Optional[str] = Query(None),
    to_location: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.read"))
):
    # Drivers only see their own assignments
    driver_id = current_user.id if current_user.role == UserRole.DRIVER.value else None
    movements, total = MovementService.get_movements(
        db, status, priority, from_location, to_location, driver_id, page, per_page
    )
    return {
        "movements": [MovementResponse.model_validate(m) for m in movements],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


@router.post("", response_model=MovementResponse, status_code=201)
async def create_movement(
    movement_data: MovementCreate,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.create"))
):
    return MovementService.create_movement(db, movement_data, current_user)


@router.get("/stats")
async def movement_stats(
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.read"))
):
    return MovementService.get_movement_stats(db)


@router.get("/{movement_id}", response_model=MovementResponse)
async def get_movement(
    movement_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.read"))
):
    return MovementService.get_movement(db, movement_id, current_user)


@router.put("/{movement_id}/status", response_model=MovementResponse)
async def update_movement_status(
    movement_id: UUID,
    update: MovementStatusUpdate,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.transition"))
):
    return MovementService.update_status(db, movement_id, update.status, current_user, update.notes)


@router.put("/{movement_id}/scan", response_model=MovementResponse)
async def scan_movement(
    movement_id: UUID,
    scan: MovementScanRequest,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.scan"))
):
    return MovementService.scan(db, movement_id, scan, current_user)


@router.put("/{movement_id}/assign-driver", response_model=MovementResponse)
async def assign_driver(
    movement_id: UUID,
    assignment: AssignDriverRequest,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("movement.assign_driver"))
):
    return MovementService.assign_driver(db, movement_id, assignment, current_user)
