"""Role hierarchy checks used by protected operations."""

from uuid import UUID

from knolib_identity.core.auth.types import ROLE_LEVELS, Principal, Role


def role_level(role: Role | str | None) -> int:
    """Rank of a role; unknown or missing roles rank 0."""
    if role is None:
        return 0
    try:
        return ROLE_LEVELS[Role(role)]
    except ValueError:
        return 0


def has_role(actual: Role | str | None, required: Role | str) -> bool:
    """Whether ``actual`` is at least ``required`` in ADMIN > EDITOR > AUTHOR."""
    return role_level(actual) >= role_level(required) > 0


def lower_role(a: Role, b: Role) -> Role:
    """The less privileged of two roles."""
    return a if a.level <= b.level else b


def can_manage_users(principal: Principal) -> bool:
    """User administration is ADMIN only."""
    return has_role(principal.role, Role.ADMIN)


def can_manage_content(principal: Principal) -> bool:
    """Managing anyone's content needs EDITOR or above."""
    return has_role(principal.role, Role.EDITOR)


def can_create_content(principal: Principal) -> bool:
    """Every known role may create content."""
    return has_role(principal.role, Role.AUTHOR)


def can_modify_content(principal: Principal, owner_id: UUID) -> bool:
    """Owners may modify their own content; EDITOR and above may modify any."""
    if principal.user_id == owner_id and can_create_content(principal):
        return True
    return can_manage_content(principal)


def can_delete_account(principal: Principal, target_user_id: UUID) -> bool:
    """ADMIN may delete accounts other than their own."""
    if principal.user_id == target_user_id:
        return False
    return can_manage_users(principal)
