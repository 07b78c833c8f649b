"""
Alert Service - condition detection, dedup and alert state changes
"""
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.core.permissions import UserRole
from app.models import (
    Alert, AlertTargetRole, AlertType, AlertSeverity, AppUser, Drug, Movement,
    MovementPriority, RECURRING_ALERT_TYPES, utcnow,
)
from app.schemas.alert import AlertCreate, AlertResponse
from app.services.realtime import manager, role_room

logger = logging.getLogger(__name__)

LOW_STOCK_ROLES = [UserRole.ADMIN.value, UserRole.WAREHOUSE.value]
EXPIRY_ROLES = [UserRole.ADMIN.value, UserRole.WAREHOUSE.value, UserRole.PHARMACIST.value]
MOVEMENT_ROLES = [UserRole.ADMIN.value, UserRole.WAREHOUSE.value, UserRole.DRIVER.value]


def _build_alert(
    alert_type: str,
    severity: str,
    title: str,
    message: str,
    target_roles: List[str],
    drug_id: Optional[UUID] = None,
    movement_id: Optional[UUID] = None,
) -> Alert:
    alert = Alert(
        type=alert_type,
        severity=severity,
        title=title,
        message=message,
        drug_id=drug_id,
        movement_id=movement_id,
    )
    alert.audience = [AlertTargetRole(role=role) for role in dict.fromkeys(target_roles)]
    return alert


class AlertService:
    """Alert business logic"""

    @staticmethod
    def publish(alert: Alert):
        """Push a committed alert to the rooms of its target roles"""
        manager.emit(
            "newAlert",
            AlertResponse.model_validate(alert),
            [role_room(role) for role in alert.target_roles],
        )

    # ---------- Detection ----------

    @staticmethod
    def low_stock_condition(drug: Drug) -> Optional[dict]:
        if drug.quantity > drug.min_threshold:
            return None
        return {
            "alert_type": AlertType.LOW_STOCK.value,
            "severity": AlertSeverity.CRITICAL.value if drug.quantity <= 0 else AlertSeverity.WARNING.value,
            "title": f"Low Stock: {drug.name}",
            "message": (
                f"{drug.name} (Batch: {drug.batch_no}) is running low. "
                f"Current: {drug.quantity}, Threshold: {drug.min_threshold}"
            ),
            "target_roles": LOW_STOCK_ROLES,
        }

    @staticmethod
    def expiry_condition(drug: Drug) -> Optional[dict]:
        days = drug.days_until_expiry
        if not 0 < days <= settings.EXPIRY_WARNING_DAYS:
            return None
        return {
            "alert_type": AlertType.EXPIRY.value,
            "severity": AlertSeverity.CRITICAL.value if days <= settings.EXPIRY_CRITICAL_DAYS else AlertSeverity.WARNING.value,
            "title": f"Expiring Soon: {drug.name}",
            "message": f"{drug.name} (Batch: {drug.batch_no}) expires in {days} days",
            "target_roles": EXPIRY_ROLES,
        }

    @staticmethod
    def has_open_alert(db: Session, drug_id: UUID, alert_type: str) -> bool:
        return db.query(Alert.id).filter(
            Alert.drug_id == drug_id,
            Alert.type == alert_type,
            Alert.is_resolved == False,
        ).first() is not None

    @staticmethod
    def detect(db: Session, drug: Drug, publish: bool = True) -> List[Alert]:
        """
        Evaluate low-stock and expiry conditions for one drug and open an
        alert for each condition that has no unresolved alert yet.

        Each alert is committed on its own. The partial unique index on
        (drug_id, type) for open rows turns a racing duplicate insert into an
        IntegrityError, which is treated the same as an existing alert.
        """
        created = []
        if not drug.is_active:
            return created
        drug_id = drug.id
        for check in (AlertService.low_stock_condition, AlertService.expiry_condition):
            condition = check(drug)
            if condition is None:
                continue
            if AlertService.has_open_alert(db, drug_id, condition["alert_type"]):
                continue

            alert = _build_alert(drug_id=drug_id, **condition)
            db.add(alert)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(f"Open {condition['alert_type']} alert already exists for drug {drug_id}")
                continue

            db.refresh(alert)
            logger.info(f"Raised {alert.severity} {alert.type} alert for drug {drug_id}")
            created.append(alert)
            if publish:
                AlertService.publish(alert)
        return created

    @staticmethod
    def add_movement_alert(db: Session, movement: Movement, drug: Drug) -> Alert:
        """Stage the movement-created alert in the caller's transaction"""
        urgent = movement.priority == MovementPriority.URGENT.value
        alert = _build_alert(
            alert_type=AlertType.MOVEMENT.value,
            severity=AlertSeverity.CRITICAL.value if urgent else AlertSeverity.INFO.value,
            title=f"New Movement: {drug.name}",
            message=(
                f"Movement created from {movement.from_location} to {movement.to_location}. "
                f"Quantity: {movement.quantity}"
            ),
            target_roles=MOVEMENT_ROLES,
            drug_id=drug.id,
            movement_id=movement.id,
        )
        db.add(alert)
        return alert

    @staticmethod
    def create_alert(db: Session, alert_data: AlertCreate) -> Alert:
        """Manually raised alert"""
        if alert_data.drug_id and not db.get(Drug, alert_data.drug_id):
            raise NotFoundError("Drug not found")
        if alert_data.movement_id and not db.get(Movement, alert_data.movement_id):
            raise NotFoundError("Movement not found")

        if alert_data.type in RECURRING_ALERT_TYPES and alert_data.drug_id and \
                AlertService.has_open_alert(db, alert_data.drug_id, alert_data.type):
            raise InvalidTransitionError(f"An unresolved {alert_data.type} alert already exists for this drug")

        roles = [getattr(role, "value", role) for role in alert_data.target_roles] or [UserRole.ADMIN.value]
        alert = _build_alert(
            alert_type=alert_data.type,
            severity=alert_data.severity,
            title=alert_data.title,
            message=alert_data.message,
            target_roles=roles,
            drug_id=alert_data.drug_id,
            movement_id=alert_data.movement_id,
        )
        db.add(alert)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise InvalidTransitionError(f"An unresolved {alert_data.type} alert already exists for this drug")
        db.refresh(alert)

        AlertService.publish(alert)
        return alert

    # ---------- Queries ----------

    @staticmethod
    def visible_query(db: Session, role: str):
        return db.query(Alert).filter(Alert.audience.any(AlertTargetRole.role == role))

    @staticmethod
    def get_alerts(
        db: Session,
        role: str,
        alert_type: Optional[str] = None,
        severity: Optional[str] = None,
        is_read: Optional[bool] = None,
        is_resolved: Optional[bool] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Tuple[List[Alert], int, int]:
        """Alerts visible to a role, plus total and unread counts"""
        query = AlertService.visible_query(db, role)

        if alert_type:
            query = query.filter(Alert.type == alert_type)
        if severity:
            query = query.filter(Alert.severity == severity)
        if is_resolved is not None:
            query = query.filter(Alert.is_resolved == is_resolved)

        unread_count = query.filter(Alert.is_read == False).count()
        if is_read is not None:
            query = query.filter(Alert.is_read == is_read)

        total = query.count()
        alerts = query.order_by(Alert.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return alerts, total, unread_count

    @staticmethod
    def get_visible_alert(db: Session, alert_id: UUID, role: str) -> Alert:
        alert = AlertService.visible_query(db, role).filter(Alert.id == alert_id).first()
        if not alert:
            raise NotFoundError("Alert not found")
        return alert

    # ---------- State changes ----------

    @staticmethod
    def mark_read(db: Session, alert_id: UUID, role: str) -> Alert:
        alert = AlertService.get_visible_alert(db, alert_id, role)
        alert.is_read = True
        db.commit()
        db.refresh(alert)
        return alert

    @staticmethod
    def mark_all_read(db: Session, role: str) -> int:
        ids = [
            alert_id for (alert_id,) in db.query(Alert.id).filter(
                Alert.audience.any(AlertTargetRole.role == role),
                Alert.is_read == False,
            )
        ]
        if ids:
            db.query(Alert).filter(Alert.id.in_(ids)).update(
                {Alert.is_read: True}, synchronize_session=False
            )
        db.commit()
        return len(ids)

    @staticmethod
    def resolve(db: Session, alert_id: UUID, user: AppUser) -> Alert:
        """Resolution is final; a later detection opens a new alert"""
        alert = AlertService.get_visible_alert(db, alert_id, user.role)
        if alert.is_resolved:
            raise InvalidTransitionError("Alert is already resolved")

        alert.is_resolved = True
        alert.resolved_at = utcnow()
        alert.resolved_by = user.id
        db.commit()
        db.refresh(alert)
        logger.info(f"Alert {alert.id} resolved by {user.username}")
        return alert

    # ---------- Condition lists ----------

    @staticmethod
    def get_expiring_drugs(db: Session, days: int = 30) -> List[Drug]:
        today = date.today()
        return db.query(Drug).filter(
            Drug.is_active == True,
            Drug.expiry_date >= today,
            Drug.expiry_date <= today + timedelta(days=days),
        ).order_by(Drug.expiry_date.asc()).all()

    @staticmethod
    def get_low_stock_drugs(db: Session) -> List[Drug]:
        return db.query(Drug).filter(
            Drug.is_active == True,
            Drug.quantity <= Drug.min_threshold,
        ).order_by(Drug.quantity.asc()).all()
