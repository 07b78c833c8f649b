"""
Drugs API - drug record store endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db
from app.api.auth import require_permission
from app.models import AppUser
from app.schemas.drug import DrugCreate, DrugUpdate, DrugResponse, DrugScanRequest
from app.services import DrugService

router = APIRouter(prefix="/drugs", tags=["drugs"])


@router.get("")
async def list_drugs(
    category: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="in-stock, low-stock, out-of-stock, overstocked"),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.read"))
):
    drugs, total = DrugService.get_drugs(db, category, location, status, search, sort_by, order, page, per_page)
    return {
        "drugs": [DrugResponse.model_validate(d) for d in drugs],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


@router.post("", response_model=DrugResponse, status_code=201)
async def create_drug(
    drug_data: DrugCreate,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.create"))
):
    return DrugService.create_drug(db, drug_data, current_user)


@router.get("/stats")
async def inventory_stats(
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.stats"))
):
    return DrugService.get_inventory_stats(db)


@router.post("/scan", response_model=DrugResponse)
async def scan_drug(
    scan: DrugScanRequest,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.scan"))
):
    """Resolve a scanned QR payload to the active drug record"""
    return DrugService.get_drug_by_qr(db, scan.drug_code, scan.batch_no)


@router.get("/{drug_id}", response_model=DrugResponse)
async def get_drug(
    drug_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.read"))
):
    return DrugService.get_drug(db, drug_id)


@router.put("/{drug_id}", response_model=DrugResponse)
async def update_drug(
    drug_id: UUID,
    drug_data: DrugUpdate,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.update"))
):
    return DrugService.update_drug(db, drug_id, drug_data, current_user)


@router.delete("/{drug_id}")
async def delete_drug(
    drug_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.delete"))
):
    DrugService.delete_drug(db, drug_id, current_user)
    return {"message": "Drug deleted successfully"}


@router.post("/{drug_id}/regenerate-qr")
async def regenerate_qr(
    drug_id: UUID,
    db: Session = Depends(get_db),
    current_user: AppUser = Depends(require_permission("drug.regenerate_qr"))
):
    drug = DrugService.regenerate_qr(db, drug_id)
    return {"qr_code": drug.qr_code}
