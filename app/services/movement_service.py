"""
Movement Service - shipment lifecycle and the stock adjustments it drives

Lifecycle: pending -> approved -> in_transit -> delivered, with cancelled
reachable from every non-terminal state. Stock leaves the source drug on
approval; delivered units are booked onto a drug record at the destination.

Every mutating call runs as one transaction: the movement row is locked,
its status is swapped with a compare-and-set on the previous status, and the
drug quantity is changed with a conditional UPDATE. Any failure rolls the
whole unit back. Alert detection and websocket events run only after commit.
"""
import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ForbiddenError, InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError,
)
from app.core.permissions import UserRole
from app.models import (
    AppUser, Drug, Movement, MovementPriority, MovementStatus, ScanEvent,
    STATUS_TRANSITIONS, generate_reference, to_naive_utc, utcnow,
)
from app.schemas.drug import DrugResponse
from app.schemas.movement import (
    AssignDriverRequest, MovementCreate, MovementResponse, MovementScanRequest,
)
from app.services.alert_service import AlertService
from app.services.audit_service import record_audit
from app.services.drug_service import snapshot
from app.services.qr_service import generate_qr_code
from app.services.realtime import manager, role_room, user_room

logger = logging.getLogger(__name__)

# Master data copied when a partial delivery opens a record at the destination
DRUG_MASTER_FIELDS = (
    "name", "generic_name", "category", "batch_no", "unit", "price", "manufacturer",
    "supplier", "manufacture_date", "expiry_date", "min_threshold", "max_threshold",
    "storage_condition", "description",
)


def movement_rooms(movement: Movement) -> List[str]:
    """Stock staff plus the assigned driver"""
    rooms = [role_room(UserRole.ADMIN.value), role_room(UserRole.WAREHOUSE.value)]
    if movement.driver_id:
        rooms.append(user_room(movement.driver_id))
    return rooms


class MovementService:
    """Movement business logic"""

    @staticmethod
    def check_transition(current_status: str, new_status: str):
        """Raise InvalidTransitionError unless current -> new is an edge of the lifecycle"""
        allowed = STATUS_TRANSITIONS.get(current_status, [])
        if not allowed:
            raise InvalidTransitionError(f"Movement is already {current_status}")
        if new_status not in allowed:
            raise InvalidTransitionError(f"Cannot transition from {current_status} to {new_status}")

    @staticmethod
    def _lock_movement(db: Session, movement_id: UUID) -> Movement:
        movement = db.query(Movement).filter(Movement.id == movement_id).with_for_update().first()
        if not movement:
            raise NotFoundError("Movement not found")
        return movement

    @staticmethod
    def _swap_status(db: Session, movement: Movement, old_status: str, new_status: str, **values):
        """Compare-and-set on the status column; loses cleanly to a concurrent writer"""
        values.update({"status": new_status, "updated_at": utcnow()})
        swapped = db.query(Movement).filter(
            Movement.id == movement.id,
            Movement.status == old_status
        ).update(values, synchronize_session="fetch")
        if swapped != 1:
            raise InvalidTransitionError(f"Movement {movement.movement_code} was changed concurrently")

    @staticmethod
    def _get_active_user(db: Session, user_id: UUID) -> AppUser:
        user = db.get(AppUser, user_id)
        if not user or not user.is_active:
            raise NotFoundError("Driver not found")
        return user

    @staticmethod
    def _deduct_stock(db: Session, movement: Movement):
        """Atomic conditional decrement; never drives quantity below zero"""
        deducted = db.query(Drug).filter(
            Drug.id == movement.drug_id,
            Drug.is_active == True,
            Drug.quantity >= movement.quantity
        ).update({"quantity": Drug.quantity - movement.quantity}, synchronize_session="fetch")
        if deducted != 1:
            drug = db.get(Drug, movement.drug_id)
            if drug is None or not drug.is_active:
                raise NotFoundError("Drug not found")
            raise InsufficientStockError(
                f"Insufficient stock for movement: requested {movement.quantity}, available {drug.quantity}"
            )

    @staticmethod
    def _restore_stock(db: Session, movement: Movement, performed_by: UUID):
        db.query(Drug).filter(Drug.id == movement.drug_id).update(
            {"quantity": Drug.quantity + movement.quantity}, synchronize_session="fetch"
        )
        record_audit(
            db, "drug", movement.drug_id, "STOCK_RESTORE", performed_by,
            after_data={"movement": movement.movement_code, "quantity": movement.quantity},
        )

    @staticmethod
    def _receive_at_destination(db: Session, movement: Movement, performed_by: UUID) -> Drug:
        """
        Book delivered units onto a record at the destination.

        Drug rows are location-homogeneous: units are added to an active row
        of the same product batch at the destination when one exists; an
        emptied source row is relocated as a whole; otherwise a new row is
        opened at the destination with the source's master data.
        """
        source = db.query(Drug).filter(Drug.id == movement.drug_id).with_for_update().one()
        destination = db.query(Drug).filter(
            Drug.id != source.id,
            Drug.name == source.name,
            Drug.batch_no == source.batch_no,
            Drug.location == movement.to_location,
            Drug.is_active == True
        ).with_for_update().first()

        if destination is not None:
            before = snapshot(destination)
            destination.quantity += movement.quantity
            action = "STOCK_RECEIVE"
        elif source.is_active and source.quantity == 0:
            destination = source
            before = snapshot(source)
            source.quantity += movement.quantity
            source.location = movement.to_location
            source.qr_code = generate_qr_code(source.qr_fields())
            action = "RELOCATE"
        else:
            before = None
            destination = Drug(
                drug_code=generate_reference("DRG"),
                quantity=movement.quantity,
                location=movement.to_location,
                created_by=performed_by,
                **{field: getattr(source, field) for field in DRUG_MASTER_FIELDS}
            )
            destination.qr_code = generate_qr_code(destination.qr_fields())
            db.add(destination)
            db.flush()
            action = "INSERT"

        record_audit(
            db, "drug", destination.id, action, performed_by,
            before_data=before,
            after_data=dict(snapshot(destination), movement=movement.movement_code),
        )
        return destination

    @staticmethod
    def _publish(event: str, movement: Movement):
        manager.emit(event, MovementResponse.model_validate(movement), movement_rooms(movement))

    # ---------- Commands ----------

    @staticmethod
    def create_movement(db: Session, movement_data: MovementCreate, created_by: AppUser) -> Movement:
        """
        Create a pending movement after checking availability. Stock is not
        committed yet; that happens on approval.
        """
        if movement_data.quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")

        try:
            drug = db.query(Drug).filter(Drug.id == movement_data.drug_id).with_for_update().first()
            if not drug or not drug.is_active:
                raise NotFoundError("Drug not found")
            if movement_data.from_location != drug.location:
                raise ValidationError(
                    f"Drug {drug.drug_code} is stocked at {drug.location}, not {movement_data.from_location}"
                )
            if drug.quantity < movement_data.quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for movement: requested {movement_data.quantity}, available {drug.quantity}"
                )
            if movement_data.driver_id:
                MovementService._get_active_user(db, movement_data.driver_id)

            movement = Movement(
                movement_code=generate_reference("MOV"),
                drug_id=drug.id,
                quantity=movement_data.quantity,
                from_location=movement_data.from_location,
                to_location=movement_data.to_location,
                status=MovementStatus.PENDING.value,
                priority=movement_data.priority or MovementPriority.NORMAL.value,
                expected_delivery=to_naive_utc(movement_data.expected_delivery),
                driver_id=movement_data.driver_id,
                notes=movement_data.notes,
                created_by=created_by.id,
            )
            movement.scan_history.append(ScanEvent(
                location=movement_data.from_location,
                scanned_by=created_by.id,
                notes="Movement created",
            ))
            db.add(movement)
            db.flush()

            alert = AlertService.add_movement_alert(db, movement, drug)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        db.refresh(alert)
        logger.info(
            f"Movement created: {movement.movement_code} {movement.quantity} x {drug.drug_code} "
            f"{movement.from_location} -> {movement.to_location} ({movement.priority})"
        )
        MovementService._publish("movementCreated", movement)
        AlertService.publish(alert)
        return movement

    @staticmethod
    def update_status(
        db: Session,
        movement_id: UUID,
        new_status: str,
        performed_by: AppUser,
        notes: Optional[str] = None
    ) -> Movement:
        """Explicit status transition with its stock side effects, all-or-nothing"""
        touched_drug: Optional[Drug] = None
        try:
            movement = MovementService._lock_movement(db, movement_id)
            if performed_by.role == UserRole.DRIVER.value and movement.driver_id != performed_by.id:
                raise ForbiddenError("Drivers may only update movements assigned to them")

            old_status = movement.status
            MovementService.check_transition(old_status, new_status)

            extra = {}
            if new_status == MovementStatus.APPROVED.value:
                extra["approved_by"] = performed_by.id
            if new_status == MovementStatus.DELIVERED.value:
                extra["actual_delivery"] = utcnow()
            MovementService._swap_status(db, movement, old_status, new_status, **extra)

            note = notes or f"Status changed from {old_status} to {new_status}"
            if new_status == MovementStatus.APPROVED.value:
                MovementService._deduct_stock(db, movement)
                touched_drug = movement.drug
            elif new_status == MovementStatus.DELIVERED.value:
                touched_drug = MovementService._receive_at_destination(db, movement, performed_by.id)
            elif (
                new_status == MovementStatus.CANCELLED.value
                and old_status in (MovementStatus.APPROVED.value, MovementStatus.IN_TRANSIT.value)
                and settings.RESTORE_STOCK_ON_CANCEL
            ):
                MovementService._restore_stock(db, movement, performed_by.id)
                note = f"{note} (returned {movement.quantity} to source stock)"

            location = movement.to_location if new_status == MovementStatus.DELIVERED.value else movement.from_location
            movement.scan_history.append(ScanEvent(
                location=location,
                scanned_by=performed_by.id,
                notes=note,
            ))
            record_audit(
                db, "movement", movement.id, "STATUS_CHANGE", performed_by.id,
                before_data={"status": old_status},
                after_data={"status": new_status},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        logger.info(f"Movement {movement.movement_code}: {old_status} -> {new_status} by {performed_by.username}")

        if touched_drug is not None:
            db.refresh(touched_drug)
            AlertService.detect(db, touched_drug)
            manager.emit("drugUpdated", DrugResponse.model_validate(touched_drug))
            db.refresh(movement)

        MovementService._publish("movementUpdated", movement)
        manager.emit("movementStatusChanged", {
            "id": movement.id,
            "movement_code": movement.movement_code,
            "status": movement.status,
            "updated_at": movement.updated_at,
        }, movement_rooms(movement))
        return movement

    @staticmethod
    def scan(db: Session, movement_id: UUID, scan_data: MovementScanRequest, scanned_by: AppUser) -> Movement:
        """
        Append a scan. The first scan of an approved movement is the pickup
        confirmation and moves it to in_transit.
        """
        promoted = False
        try:
            movement = MovementService._lock_movement(db, movement_id)
            if movement.is_terminal:
                raise InvalidTransitionError(f"Cannot scan a {movement.status} movement")

            if movement.status == MovementStatus.APPROVED.value:
                MovementService._swap_status(
                    db, movement, MovementStatus.APPROVED.value, MovementStatus.IN_TRANSIT.value
                )
                record_audit(
                    db, "movement", movement.id, "STATUS_CHANGE", scanned_by.id,
                    before_data={"status": MovementStatus.APPROVED.value},
                    after_data={"status": MovementStatus.IN_TRANSIT.value, "via": "scan"},
                )
                promoted = True

            coordinates = scan_data.coordinates
            movement.scan_history.append(ScanEvent(
                location=scan_data.location,
                lat=coordinates.lat if coordinates else None,
                lng=coordinates.lng if coordinates else None,
                scanned_by=scanned_by.id,
                notes=scan_data.notes,
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        last_scan = movement.scan_history[-1]
        logger.info(f"Movement {movement.movement_code} scanned at {scan_data.location}")

        rooms = movement_rooms(movement)
        manager.emit("movementScanned", {
            "id": movement.id,
            "movement_code": movement.movement_code,
            "location": last_scan.location,
            "coordinates": {"lat": last_scan.lat, "lng": last_scan.lng} if last_scan.lat is not None else None,
            "scanned_at": last_scan.scanned_at,
            "status": movement.status,
        }, rooms)
        if promoted:
            manager.emit("movementStatusChanged", {
                "id": movement.id,
                "movement_code": movement.movement_code,
                "status": movement.status,
                "updated_at": movement.updated_at,
            }, rooms)
        return movement

    @staticmethod
    def assign_driver(db: Session, movement_id: UUID, assignment: AssignDriverRequest, performed_by: AppUser) -> Movement:
        try:
            movement = MovementService._lock_movement(db, movement_id)
            if movement.is_terminal:
                raise InvalidTransitionError(f"Cannot reassign a {movement.status} movement")

            driver = MovementService._get_active_user(db, assignment.driver_id)
            if driver.role != UserRole.DRIVER.value:
                logger.warning(f"Assigning movement {movement.movement_code} to non-driver user {driver.username}")

            before = {"driver_id": str(movement.driver_id) if movement.driver_id else None, "vehicle": movement.vehicle}
            movement.driver_id = driver.id
            if assignment.vehicle is not None:
                movement.vehicle = assignment.vehicle
            record_audit(
                db, "movement", movement.id, "UPDATE", performed_by.id,
                before_data=before,
                after_data={"driver_id": str(driver.id), "vehicle": movement.vehicle},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        logger.info(f"Movement {movement.movement_code} assigned to {driver.username}")
        manager.emit("movementAssigned", MovementResponse.model_validate(movement), [user_room(driver.id)])
        MovementService._publish("movementUpdated", movement)
        return movement

    # ---------- Queries ----------

    @staticmethod
    def get_movements(
        db: Session,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        driver_id: Optional[UUID] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Tuple[List[Movement], int]:
        query = db.query(Movement)

        if status:
            query = query.filter(Movement.status == status)
        if priority:
            query = query.filter(Movement.priority == priority)
        if from_location:
            query = query.filter(Movement.from_location == from_location)
        if to_location:
            query = query.filter(Movement.to_location == to_location)
        if driver_id:
            query = query.filter(Movement.driver_id == driver_id)

        total = query.count()
        movements = query.order_by(Movement.created_at.desc(), Movement.id)\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return movements, total

    @staticmethod
    def get_movement(db: Session, movement_id: UUID, viewer: Optional[AppUser] = None) -> Movement:
        """Drivers only see movements assigned to them"""
        movement = db.query(Movement).filter(Movement.id == movement_id).first()
        if not movement:
            raise NotFoundError("Movement not found")
        if viewer is not None and viewer.role == UserRole.DRIVER.value and movement.driver_id != viewer.id:
            raise NotFoundError("Movement not found")
        return movement

    @staticmethod
    def get_movement_stats(db: Session) -> Dict:
        by_status = dict(
            db.query(Movement.status, func.count(Movement.id)).group_by(Movement.status).all()
        )
        by_priority = dict(
            db.query(Movement.priority, func.count(Movement.id)).group_by(Movement.priority).all()
        )
        return {
            "total": sum(by_status.values()),
            "pending": by_status.get(MovementStatus.PENDING.value, 0),
            "approved": by_status.get(MovementStatus.APPROVED.value, 0),
            "in_transit": by_status.get(MovementStatus.IN_TRANSIT.value, 0),
            "delivered": by_status.get(MovementStatus.DELIVERED.value, 0),
            "cancelled": by_status.get(MovementStatus.CANCELLED.value, 0),
            "by_priority": {p.value: by_priority.get(p.value, 0) for p in MovementPriority},
        }
