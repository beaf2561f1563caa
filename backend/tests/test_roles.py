import pytest

from smilecare.models import UserRole
from smilecare.utils.deps import (
    ROLE_HIERARCHY, ROLE_PERMISSIONS, UnknownRoleError, has_permission, role_level,
)


def test_every_role_has_a_level_and_permissions():
    assert set(ROLE_HIERARCHY) == set(UserRole)
    assert set(ROLE_PERMISSIONS) == set(UserRole)


def test_hierarchy_order():
    levels = [role_level(role) for role in (
        UserRole.PATIENT, UserRole.STAFF, UserRole.NURSE, UserRole.DOCTOR, UserRole.ADMIN,
    )]
    assert levels == sorted(levels)
    assert len(set(levels)) == len(levels)


@pytest.mark.parametrize("role, permission, expected", [
    (UserRole.ADMIN, "write:prescriptions", True),
    (UserRole.ADMIN, "anything:else", True),
    (UserRole.DOCTOR, "write:patients", True),
    (UserRole.DOCTOR, "manage:users", False),
    (UserRole.NURSE, "write:appointments", True),
    (UserRole.NURSE, "write:patients", False),
    (UserRole.STAFF, "read:patients", True),
    (UserRole.STAFF, "write:patients", False),
    (UserRole.PATIENT, "read:patients", False),
])
def test_has_permission(role, permission, expected):
    assert has_permission(role, permission) is expected


def test_unknown_role_is_an_error():
    with pytest.raises(UnknownRoleError):
        role_level("superuser")
    with pytest.raises(UnknownRoleError):
        has_permission("superuser", "read:all")
