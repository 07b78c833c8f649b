import pytest

from app.core.permissions import POLICY, UserRole, is_allowed


@pytest.mark.parametrize("operation, allowed", [
    ("drug.create", {"admin", "warehouse"}),
    ("drug.delete", {"admin"}),
    ("drug.read", {"admin", "warehouse", "pharmacist", "driver"}),
    ("movement.create", {"admin", "warehouse"}),
    ("movement.transition", {"admin", "warehouse", "driver"}),
    ("alert.resolve", {"admin", "warehouse"}),
    ("alert.create", {"admin"}),
    ("report.inventory", {"admin", "warehouse", "pharmacist"}),
    ("report.consumption", {"admin"}),
])
def test_policy(operation, allowed):
    assert {role.value for role in UserRole if is_allowed(role.value, operation)} == allowed


def test_unknown_operation_or_role_is_denied():
    assert not is_allowed("admin", "drug.launch")
    assert not is_allowed("auditor", "drug.read")


def test_every_operation_names_known_roles():
    roles = {role.value for role in UserRole}
    for operation, allowed in POLICY.items():
        assert allowed <= roles, operation
