# Pydantic Schemas Package
from .drug import DrugCreate, DrugUpdate, DrugResponse, DrugSummary, DrugScanRequest
from .movement import (
    MovementCreate, MovementStatusUpdate, MovementScanRequest, AssignDriverRequest,
    MovementResponse, ScanEventResponse, Coordinates,
)
from .alert import AlertCreate, AlertResponse

__all__ = [
    "DrugCreate", "DrugUpdate", "DrugResponse", "DrugSummary", "DrugScanRequest",
    "MovementCreate", "MovementStatusUpdate", "MovementScanRequest", "AssignDriverRequest",
    "MovementResponse", "ScanEventResponse", "Coordinates",
    "AlertCreate", "AlertResponse",
]
