"""RBAC core domain."""

from knolib_identity.core.rbac.permissions import (
    can_create_content,
    can_delete_account,
    can_manage_content,
    can_manage_users,
    can_modify_content,
    has_role,
)

__all__ = [
    "can_create_content",
    "can_delete_account",
    "can_manage_content",
    "can_manage_users",
    "can_modify_content",
    "has_role",
]
