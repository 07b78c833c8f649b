from .base import TimestampMixin, UUIDMixin, utcnow, to_naive_utc, generate_reference
from .master import AppUser
from .drug import Drug, DrugCategory, DrugUnit, Location, StorageCondition, StockStatus
from .movement import Movement, ScanEvent, MovementStatus, MovementPriority, STATUS_TRANSITIONS, TERMINAL_STATUSES
from .alert import Alert, AlertTargetRole, AlertType, AlertSeverity, RECURRING_ALERT_TYPES
from .audit import AuditLog

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin", "utcnow", "to_naive_utc", "generate_reference",
    # Master
    "AppUser",
    # Drug
    "Drug", "DrugCategory", "DrugUnit", "Location", "StorageCondition", "StockStatus",
    # Movement
    "Movement", "ScanEvent", "MovementStatus", "MovementPriority",
    "STATUS_TRANSITIONS", "TERMINAL_STATUSES",
    # Alert
    "Alert", "AlertTargetRole", "AlertType", "AlertSeverity", "RECURRING_ALERT_TYPES",
    # Audit
    "AuditLog",
]
