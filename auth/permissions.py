"""
auth/permissions.py -- Static role permissions and the ownership guard.

Two independent authorization axes:

  has_permission(role, action)
      "May this role perform this class of action at all?" Answered from a
      fixed table of permission patterns. Patterns are namespaced strings:
        "*"              every action
        "content:*"      any action starting with "content:"
        "media:upload"   exactly that action

  can_modify(role, acting_user_id, resource_owner_id)
      "May this user touch this particular instance?" Admins and editors may
      modify anything; everyone else only what they own. Deliberately based
      on the role list rather than on permission strings.

Layer rule: no imports from api/, core/, or the stores.
"""

from __future__ import annotations

from auth.models import Role

WILDCARD = "*"

_ADMIN = frozenset({WILDCARD})
_EDITOR = frozenset({"content:*", "media:*", "comments:moderate"})
_AUTHOR = frozenset({"content:create", "content:edit:own", "media:upload"})
_VIEWER = frozenset({"content:read", "comments:create"})

_MODERATOR_ROLES = frozenset({Role.admin, Role.editor})


def permissions_for(role: Role) -> frozenset[str]:
    """Return the permission patterns granted to role."""
    match Role(role):
        case Role.admin:
            return _ADMIN
        case Role.editor:
            return _EDITOR
        case Role.author:
            return _AUTHOR
        case Role.viewer:
            return _VIEWER
    raise ValueError(f"No permission set defined for role {role!r}")


def _pattern_matches(pattern: str, action: str) -> bool:
    if pattern == WILDCARD:
        return True
    if pattern.endswith(":*"):
        # Prefix keeps the colon: "content:*" grants "content:read", not "contentx".
        return action.startswith(pattern[:-1])
    return pattern == action


def has_permission(role: Role, action: str) -> bool:
    """Return True if any of role's patterns grants action.

    The empty action is only granted by the bare "*" wildcard.
    """
    return any(_pattern_matches(p, action) for p in permissions_for(role))


def can_modify(role: Role, acting_user_id: str, resource_owner_id: str) -> bool:
    if Role(role) in _MODERATOR_ROLES:
        return True
    return acting_user_id == resource_owner_id
