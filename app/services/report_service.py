from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from app.core import settings
from app.models import Alert, AlertSeverity, Drug, Movement, MovementStatus, StockStatus, utcnow
from app.schemas.drug import DrugResponse, DrugSummary
from app.schemas.movement import MovementResponse


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min)


def _day_after(value: date) -> datetime:
    return datetime.combine(value + timedelta(days=1), time.min)


def _summarize_drugs(drugs) -> Dict[str, Any]:
    return {
        "total_items": len(drugs),
        "total_quantity": sum(d.quantity for d in drugs),
        "total_value": float(sum(d.quantity * d.price for d in drugs)),
        "low_stock": sum(1 for d in drugs if d.stock_status == StockStatus.LOW_STOCK.value),
        "out_of_stock": sum(1 for d in drugs if d.stock_status == StockStatus.OUT_OF_STOCK.value),
        "expiring_soon": sum(1 for d in drugs if 0 < d.days_until_expiry <= settings.EXPIRY_WARNING_DAYS),
    }


class ReportService:
    """
    Read-only projections over drugs, movements and alerts.

    Each report is computed from one session; the report dependency opens it
    as a REPEATABLE READ transaction on PostgreSQL so the sub-queries share a
    snapshot.
    """

    @staticmethod
    def get_inventory_report(
        db: Session,
        location: Optional[str] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        query = db.query(Drug).filter(Drug.is_active == True)
        if location:
            query = query.filter(Drug.location == location)
        if category:
            query = query.filter(Drug.category == category)
        if start_date:
            query = query.filter(Drug.created_at >= _day_start(start_date))
        if end_date:
            query = query.filter(Drug.created_at < _day_after(end_date))

        drugs = query.order_by(Drug.name.asc(), Drug.id).all()
        return {
            "generated_at": utcnow(),
            "filters": {"location": location, "category": category, "start_date": start_date, "end_date": end_date},
            "summary": _summarize_drugs(drugs),
            "items": [DrugResponse.model_validate(d) for d in drugs],
        }

    @staticmethod
    def get_movement_report(
        db: Session,
        status: Optional[str] = None,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        query = db.query(Movement)
        if status:
            query = query.filter(Movement.status == status)
        if from_location:
            query = query.filter(Movement.from_location == from_location)
        if to_location:
            query = query.filter(Movement.to_location == to_location)
        if start_date:
            query = query.filter(Movement.created_at >= _day_start(start_date))
        if end_date:
            query = query.filter(Movement.created_at < _day_after(end_date))

        movements = query.order_by(Movement.created_at.desc(), Movement.id).all()
        counts = {s.value: 0 for s in MovementStatus}
        for m in movements:
            counts[m.status] = counts.get(m.status, 0) + 1

        return {
            "generated_at": utcnow(),
            "filters": {
                "status": status, "from_location": from_location, "to_location": to_location,
                "start_date": start_date, "end_date": end_date,
            },
            "summary": dict(total=len(movements), **counts),
            "items": [MovementResponse.model_validate(m) for m in movements],
        }

    @staticmethod
    def get_expiry_report(db: Session, days: int = 90) -> Dict[str, Any]:
        """Active drugs expiring within `days`, bucketed by urgency (expired ones included)"""
        horizon = date.today() + timedelta(days=days)
        drugs = db.query(Drug).filter(
            Drug.is_active == True,
            Drug.expiry_date <= horizon
        ).order_by(Drug.expiry_date.asc(), Drug.id).all()

        buckets = {"expired": [], "critical": [], "warning": [], "upcoming": []}
        for drug in drugs:
            remaining = drug.days_until_expiry
            if remaining <= 0:
                buckets["expired"].append(drug)
            elif remaining <= settings.EXPIRY_CRITICAL_DAYS:
                buckets["critical"].append(drug)
            elif remaining <= settings.EXPIRY_WARNING_DAYS:
                buckets["warning"].append(drug)
            else:
                buckets["upcoming"].append(drug)

        return {
            "generated_at": utcnow(),
            "days_ahead": days,
            "summary": dict(
                total=len(drugs),
                total_value_at_risk=float(sum(d.quantity * d.price for d in drugs)),
                **{name: len(items) for name, items in buckets.items()}
            ),
            "categories": {
                name: [DrugResponse.model_validate(d) for d in items]
                for name, items in buckets.items()
            },
        }

    @staticmethod
    def get_consumption_report(
        db: Session,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """Delivered quantities per drug, largest first"""
        query = db.query(
            Movement.drug_id,
            func.sum(Movement.quantity).label("total_quantity"),
            func.count(Movement.id).label("movements"),
        ).filter(Movement.status == MovementStatus.DELIVERED.value)
        if start_date:
            query = query.filter(Movement.actual_delivery >= _day_start(start_date))
        if end_date:
            query = query.filter(Movement.actual_delivery < _day_after(end_date))

        rows = query.group_by(Movement.drug_id).all()
        drugs = {
            d.id: d for d in db.query(Drug).filter(Drug.id.in_([r.drug_id for r in rows])).all()
        } if rows else {}

        consumption = sorted(
            (
                {
                    "drug": DrugSummary.model_validate(drugs[r.drug_id]) if r.drug_id in drugs else None,
                    "category": drugs[r.drug_id].category if r.drug_id in drugs else None,
                    "total_quantity": int(r.total_quantity or 0),
                    "movements": r.movements,
                }
                for r in rows
            ),
            key=lambda item: item["total_quantity"],
            reverse=True,
        )

        return {
            "generated_at": utcnow(),
            "filters": {"start_date": start_date, "end_date": end_date},
            "summary": {
                "total_movements": sum(item["movements"] for item in consumption),
                "total_quantity_moved": sum(item["total_quantity"] for item in consumption),
                "unique_drugs": len(consumption),
            },
            "consumption_by_drug": consumption,
        }

    @staticmethod
    def get_dashboard_stats(db: Session) -> Dict[str, Any]:
        drugs = db.query(Drug).filter(Drug.is_active == True).all()
        inventory = _summarize_drugs(drugs)
        inventory["total_drugs"] = inventory.pop("total_items")

        movement_counts = dict(
            db.query(Movement.status, func.count(Movement.id)).group_by(Movement.status).all()
        )
        alert_counts = dict(
            db.query(Alert.severity, func.count(Alert.id))
            .filter(Alert.is_resolved == False)
            .group_by(Alert.severity).all()
        )

        return {
            "inventory": inventory,
            "movements": {
                "total": sum(movement_counts.values()),
                "pending": movement_counts.get(MovementStatus.PENDING.value, 0),
                "approved": movement_counts.get(MovementStatus.APPROVED.value, 0),
                "in_transit": movement_counts.get(MovementStatus.IN_TRANSIT.value, 0),
                "delivered": movement_counts.get(MovementStatus.DELIVERED.value, 0),
                "cancelled": movement_counts.get(MovementStatus.CANCELLED.value, 0),
            },
            "alerts": {
                "total": sum(alert_counts.values()),
                "critical": alert_counts.get(AlertSeverity.CRITICAL.value, 0),
                "warning": alert_counts.get(AlertSeverity.WARNING.value, 0),
                "info": alert_counts.get(AlertSeverity.INFO.value, 0),
            },
        }
