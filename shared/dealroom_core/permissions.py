"""
DEALROOM Core - Permission Matrix
=================================

Static role x action policy, independent of room state and grants.

GRANT_GATED means the role may perform the action category, but only
with an ACTIVE, unexpired grant for the room and that exact role.

Author: DEALROOM Development Team
Version: 1.0.0
"""

from enum import Enum
from typing import Dict, FrozenSet

from .models import Action, Role


class MatrixEntry(str, Enum):
    ALLOW = "ALLOW"
    GRANT_GATED = "GRANT_GATED"
    DENY = "DENY"


_A = MatrixEntry.ALLOW
_G = MatrixEntry.GRANT_GATED
_D = MatrixEntry.DENY


# =============================================================================
# POLICY TABLE
# =============================================================================

PERMISSION_MATRIX: Dict[Action, Dict[Role, MatrixEntry]] = {
    Action.VIEW: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _G, Role.INVESTOR: _G, Role.EXTERNAL: _G,
    },
    Action.UPLOAD: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
    Action.REPLACE: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
    Action.DELETE_DOC: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
    Action.CREATE_FOLDER: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
    Action.INVITE: {
        Role.ISSUER: _A, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
    Action.ADMIN_ACTIONS: {
        Role.ISSUER: _D, Role.ADMIN: _A,
        Role.MARKET_MAKER: _D, Role.INVESTOR: _D, Role.EXTERNAL: _D,
    },
}

# Actions refused outright unless the room resolves to ACTIVE
ACTIVE_ROOM_ACTIONS: FrozenSet[Action] = frozenset({
    Action.VIEW,
    Action.UPLOAD,
    Action.REPLACE,
    Action.DELETE_DOC,
    Action.INVITE,
    Action.CREATE_FOLDER,
})

# Actions that must name a target document
DOCUMENT_ACTIONS: FrozenSet[Action] = frozenset({
    Action.VIEW,
    Action.REPLACE,
    Action.DELETE_DOC,
})

# Roles that may hold grants (everyone except implicit managers)
GRANT_GATED_ROLES: FrozenSet[Role] = frozenset(
    role for role, entry in PERMISSION_MATRIX[Action.VIEW].items() if entry == _G
)


# =============================================================================
# LOOKUPS
# =============================================================================


def entry(role: Role, action: Action) -> MatrixEntry:
    """Matrix cell for (role, action). Unknown pairs are denied."""
    return PERMISSION_MATRIX.get(action, {}).get(role, MatrixEntry.DENY)


def is_role_allowed(role: Role, action: Action) -> bool:
    """True when the static table does not deny the pair outright."""
    return entry(role, action) != MatrixEntry.DENY


def is_grant_gated(role: Role, action: Action) -> bool:
    return entry(role, action) == MatrixEntry.GRANT_GATED


def requires_active_room(action: Action) -> bool:
    return action in ACTIVE_ROOM_ACTIONS


def has_management_rights(role: Role) -> bool:
    """ISSUER and ADMIN manage rooms without grant rows."""
    return role not in GRANT_GATED_ROLES


__all__ = [
    "MatrixEntry",
    "PERMISSION_MATRIX",
    "ACTIVE_ROOM_ACTIONS",
    "DOCUMENT_ACTIONS",
    "GRANT_GATED_ROLES",
    "entry",
    "is_role_allowed",
    "is_grant_gated",
    "requires_active_room",
    "has_management_rights",
]
