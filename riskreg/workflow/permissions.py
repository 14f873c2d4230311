from typing import Union

from riskreg.domain.models import Role
from riskreg.errors import PermissionDeniedError


def as_role(role: Union[Role, str]) -> Role:
    return role if isinstance(role, Role) else Role(role)


def ensure_can_edit_definitions(role: Union[Role, str], action: str) -> Role:
    """Create, link, unlink and delete are reserved to risk managers and approvers."""
    role = as_role(role)
    if not role.can_edit_definitions:
        raise PermissionDeniedError(role.value, action)
    return role


def ensure_manager(role: Union[Role, str], action: str) -> Role:
    role = as_role(role)
    if not role.is_manager:
        raise PermissionDeniedError(role.value, action)
    return role
