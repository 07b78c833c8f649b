# Services Package
from .alert_service import AlertService
from .drug_service import DrugService
from .movement_service import MovementService
from .report_service import ReportService
from .realtime import manager
from . import notification_service
from . import qr_service

__all__ = [
    "AlertService",
    "DrugService",
    "MovementService",
    "ReportService",
    "manager",
    "notification_service",
    "qr_service",
]
