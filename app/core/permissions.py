"""
Role policy table: operation -> roles allowed to perform it
"""
import enum
from typing import Dict, FrozenSet


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    WAREHOUSE = "warehouse"
    PHARMACIST = "pharmacist"
    DRIVER = "driver"


ALL_ROLES = frozenset(r.value for r in UserRole)
STOCK_ROLES = frozenset({UserRole.ADMIN.value, UserRole.WAREHOUSE.value})

POLICY: Dict[str, FrozenSet[str]] = {
    # Drugs
    "drug.read": ALL_ROLES,
    "drug.scan": ALL_ROLES,
    "drug.stats": ALL_ROLES,
    "drug.create": STOCK_ROLES,
    "drug.update": STOCK_ROLES,
    "drug.regenerate_qr": STOCK_ROLES,
    "drug.delete": frozenset({UserRole.ADMIN.value}),
    # Movements
    "movement.read": ALL_ROLES,
    "movement.scan": ALL_ROLES,
    "movement.create": STOCK_ROLES,
    "movement.assign_driver": STOCK_ROLES,
    "movement.transition": STOCK_ROLES | {UserRole.DRIVER.value},
    # Alerts
    "alert.read": ALL_ROLES,
    "alert.mark_read": ALL_ROLES,
    "alert.resolve": STOCK_ROLES,
    "alert.create": frozenset({UserRole.ADMIN.value}),
    # Reports
    "report.dashboard": ALL_ROLES,
    "report.inventory": STOCK_ROLES | {UserRole.PHARMACIST.value},
    "report.expiry": STOCK_ROLES | {UserRole.PHARMACIST.value},
    "report.movement": STOCK_ROLES,
    "report.consumption": frozenset({UserRole.ADMIN.value}),
}


def is_allowed(role: str, operation: str) -> bool:
    """Unknown operations are denied"""
    return role in POLICY.get(operation, frozenset())
