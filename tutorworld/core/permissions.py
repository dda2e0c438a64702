"""
Role and ownership rules shared by every service that mutates content.
"""

from typing import Iterable

from tutorworld.core.errors import Forbidden
from tutorworld.models.user import Role, User


def bypasses_ownership(role: Role) -> bool:
    if role is Role.ADMIN:
        return True
    if role is Role.TEACHER or role is Role.STUDENT:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


def has_role(user: User, roles: Iterable[Role]) -> bool:
    return user.role_enum in set(roles)


def ensure_role(user: User, *roles: Role) -> None:
    if not has_role(user, roles):
        allowed = ", ".join(role.value for role in roles)
        raise Forbidden(f"Access requires role: {allowed}")


def is_owner_or_admin(user: User, owner_id: int) -> bool:
    return bypasses_ownership(user.role_enum) or user.id == owner_id


def ensure_owner(user: User, owner_id: int) -> None:
    """Admins pass unconditionally; anyone else must be the resource owner."""
    if not is_owner_or_admin(user, owner_id):
        raise Forbidden("You do not have permission to modify this resource")
