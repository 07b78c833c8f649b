"""
Drug Service - Business Logic for the drug record store
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models import AppUser, Drug, StockStatus, generate_reference
from app.schemas.drug import DrugCreate, DrugResponse, DrugUpdate
from app.services.alert_service import AlertService
from app.services.audit_service import record_audit
from app.services.qr_service import generate_qr_code
from app.services.realtime import manager

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Drug.created_at,
    "updated_at": Drug.updated_at,
    "name": Drug.name,
    "quantity": Drug.quantity,
    "expiry_date": Drug.expiry_date,
    "price": Drug.price,
    "drug_code": Drug.drug_code,
}

NULLABLE_FIELDS = ("generic_name",)

AUDITED_FIELDS = (
    "name", "batch_no", "quantity", "price", "location", "expiry_date",
    "min_threshold", "max_threshold", "is_active",
)


def stock_status_filter(status: str):
    """SQL criterion matching Drug.stock_status"""
    above_min = Drug.quantity > Drug.min_threshold
    filters = {
        StockStatus.OUT_OF_STOCK.value: Drug.quantity <= 0,
        StockStatus.LOW_STOCK.value: and_(Drug.quantity > 0, Drug.quantity <= Drug.min_threshold),
        StockStatus.OVERSTOCKED.value: and_(Drug.quantity > 0, above_min, Drug.quantity >= Drug.max_threshold),
        StockStatus.IN_STOCK.value: and_(Drug.quantity > 0, above_min, Drug.quantity < Drug.max_threshold),
    }
    if status not in filters:
        raise ValidationError(f"Unknown stock status: {status}")
    return filters[status]


def snapshot(drug: Drug) -> dict:
    data = {}
    for field in AUDITED_FIELDS:
        value = getattr(drug, field)
        data[field] = value.isoformat() if isinstance(value, date) else (
            str(value) if value is not None and not isinstance(value, (int, bool, str)) else value
        )
    return data


class DrugService:
    """Drug record business logic"""

    @staticmethod
    def get_drugs(
        db: Session,
        category: Optional[str] = None,
        location: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "desc",
        page: int = 1,
        per_page: int = 20
    ) -> Tuple[List[Drug], int]:
        """Active drugs with filters, sorting and pagination"""
        query = db.query(Drug).filter(Drug.is_active == True)

        if category:
            query = query.filter(Drug.category == category)
        if location:
            query = query.filter(Drug.location == location)
        if status:
            query = query.filter(stock_status_filter(status))
        if search:
            search_term = f"%{search}%"
            query = query.filter(
                or_(
                    Drug.name.ilike(search_term),
                    Drug.drug_code.ilike(search_term),
                    Drug.batch_no.ilike(search_term)
                )
            )

        column = SORTABLE_FIELDS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort by {sort_by}")
        ordering = column.asc() if order == "asc" else column.desc()

        total = query.count()
        drugs = query.order_by(ordering, Drug.id)\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return drugs, total

    @staticmethod
    def get_drug(db: Session, drug_id: UUID, include_inactive: bool = True) -> Drug:
        drug = db.query(Drug).filter(Drug.id == drug_id).first()
        if not drug or (not include_inactive and not drug.is_active):
            raise NotFoundError("Drug not found")
        return drug

    @staticmethod
    def get_drug_by_qr(db: Session, drug_code: str, batch_no: str) -> Drug:
        """Lookup from a scanned QR payload"""
        drug = db.query(Drug).filter(
            Drug.drug_code == drug_code,
            Drug.batch_no == batch_no,
            Drug.is_active == True
        ).first()
        if not drug:
            raise NotFoundError("Drug not found")
        return drug

    @staticmethod
    def create_drug(db: Session, drug_data: DrugCreate, created_by: Optional[AppUser] = None) -> Drug:
        drug = Drug(
            drug_code=generate_reference("DRG"),
            created_by=created_by.id if created_by else None,
            **drug_data.model_dump()
        )
        drug.qr_code = generate_qr_code(drug.qr_fields())

        db.add(drug)
        db.flush()
        record_audit(db, "drug", drug.id, "INSERT", drug.created_by, after_data=snapshot(drug))
        db.commit()
        db.refresh(drug)

        logger.info(f"Drug created: {drug.drug_code} {drug.name} (batch {drug.batch_no}, qty {drug.quantity})")
        manager.emit("drugCreated", DrugResponse.model_validate(drug))
        return drug

    @staticmethod
    def update_drug(db: Session, drug_id: UUID, drug_data: DrugUpdate, performed_by: Optional[AppUser] = None) -> Drug:
        """
        Direct edit under a row lock, then alert detection on the committed
        state.
        """
        changes = drug_data.model_dump(exclude_unset=True)
        try:
            drug = db.query(Drug).filter(Drug.id == drug_id).with_for_update().first()
            if not drug or not drug.is_active:
                raise NotFoundError("Drug not found")

            before = snapshot(drug)
            for field, value in changes.items():
                if value is None and field not in NULLABLE_FIELDS:
                    raise ValidationError(f"{field} cannot be null")
                setattr(drug, field, value)

            if drug.expiry_date <= drug.manufacture_date:
                raise ValidationError("expiry_date must be after manufacture_date")
            if drug.max_threshold < drug.min_threshold:
                raise ValidationError("max_threshold must not be below min_threshold")

            if {"name", "batch_no", "expiry_date", "location"} & changes.keys():
                drug.qr_code = generate_qr_code(drug.qr_fields())

            record_audit(
                db, "drug", drug.id, "UPDATE",
                performed_by.id if performed_by else None,
                before_data=before, after_data=snapshot(drug),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(drug)

        AlertService.detect(db, drug)
        db.refresh(drug)
        manager.emit("drugUpdated", DrugResponse.model_validate(drug))
        manager.emit("stockUpdate", {
            "drugId": drug.id,
            "quantity": drug.quantity,
            "stockStatus": drug.stock_status,
        })
        return drug

    @staticmethod
    def delete_drug(db: Session, drug_id: UUID, performed_by: Optional[AppUser] = None) -> Drug:
        """Soft delete; movement history keeps pointing at the row"""
        drug = db.query(Drug).filter(Drug.id == drug_id).with_for_update().first()
        if not drug or not drug.is_active:
            raise NotFoundError("Drug not found")

        drug.is_active = False
        record_audit(
            db, "drug", drug.id, "DELETE",
            performed_by.id if performed_by else None,
            before_data={"is_active": True}, after_data={"is_active": False},
        )
        db.commit()

        logger.info(f"Drug soft-deleted: {drug.drug_code}")
        manager.emit("drugDeleted", {"id": drug.id})
        return drug

    @staticmethod
    def regenerate_qr(db: Session, drug_id: UUID) -> Drug:
        drug = DrugService.get_drug(db, drug_id)
        drug.qr_code = generate_qr_code(drug.qr_fields())
        db.commit()
        db.refresh(drug)
        return drug

    @staticmethod
    def get_inventory_stats(db: Session) -> Dict:
        """Totals and breakdowns over active drugs"""
        today = date.today()
        active = Drug.is_active == True

        total_drugs, total_quantity, total_value = db.query(
            func.count(Drug.id),
            func.coalesce(func.sum(Drug.quantity), 0),
            func.coalesce(func.sum(Drug.quantity * Drug.price), 0),
        ).filter(active).one()

        def count(*criteria) -> int:
            return db.query(func.count(Drug.id)).filter(active, *criteria).scalar()

        by_category = {
            category: {"count": n, "quantity": int(qty or 0)}
            for category, n, qty in db.query(
                Drug.category, func.count(Drug.id), func.sum(Drug.quantity)
            ).filter(active).group_by(Drug.category).all()
        }
        by_location = {
            location: {"count": n, "quantity": int(qty or 0)}
            for location, n, qty in db.query(
                Drug.location, func.count(Drug.id), func.sum(Drug.quantity)
            ).filter(active).group_by(Drug.location).all()
        }

        return {
            "total_drugs": total_drugs,
            "total_quantity": int(total_quantity),
            "total_value": float(total_value),
            "low_stock": count(stock_status_filter(StockStatus.LOW_STOCK.value)),
            "out_of_stock": count(stock_status_filter(StockStatus.OUT_OF_STOCK.value)),
            "expiring_soon": count(Drug.expiry_date > today, Drug.expiry_date <= today + timedelta(days=settings.EXPIRY_WARNING_DAYS)),
            "expired": count(Drug.expiry_date <= today),
            "by_category": by_category,
            "by_location": by_location,
        }
