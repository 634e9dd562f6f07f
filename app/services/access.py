"""Access decisions for admin and session-only routes

Every guard goes through ``can_access``; the permission table below covers
finer-grained checks inside the admin area.
"""

import enum
from typing import Dict, FrozenSet, Optional

from app.models.user import UserRole
from app.schemas.auth import AccessDecision, Identity

ADMIN_LOGIN_PATH = "/admin/auth"
HOME_PATH = "/"

ALLOW = AccessDecision(allowed=True)

_USER_PERMISSIONS = frozenset({
    "dashboard.view",
    "reservations.view",
    "reservations.create",
    "reservations.edit",
    "customers.view",
    "customers.create",
    "customers.edit",
})

_ADMIN_PERMISSIONS = _USER_PERMISSIONS | frozenset({
    "reservations.delete",
    "customers.delete",
    "tables.view",
    "tables.create",
    "tables.edit",
    "tables.delete",
    "zones.view",
    "zones.create",
    "zones.edit",
    "zones.delete",
    "layout.view",
    "layout.edit",
    "combinations.view",
    "combinations.create",
    "combinations.edit",
    "combinations.delete",
    "schedules.view",
    "schedules.edit",
    "settings.view",
    "settings.edit",
    "users.view",
    "users.create",
    "users.edit",
    "users.delete",
})

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    UserRole.ADMIN.value: _ADMIN_PERMISSIONS,
    UserRole.USER.value: _USER_PERMISSIONS,
}


def can_access(identity: Identity, require_admin: bool) -> AccessDecision:
    """Allow, or redirect to the admin login (admin routes) or home"""
    if identity.is_local_admin:
        return ALLOW
    if require_admin and identity.profile_role == UserRole.ADMIN.value:
        return ALLOW
    if not require_admin and identity.has_session:
        return ALLOW
    if require_admin:
        return AccessDecision(allowed=False, redirect_to=ADMIN_LOGIN_PATH)
    return AccessDecision(allowed=False, redirect_to=HOME_PATH)


def has_permission(identity: Identity, permission: str) -> bool:
    if identity.is_local_admin:
        return True
    if identity.profile_role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(identity.profile_role, frozenset())


class GateState(str, enum.Enum):
    LOADING = "loading"
    RESOLVED = "resolved"


class AccessGate:
    """Holds one access decision per identity-check cycle.

    While loading there is no decision. ``resolve`` fixes the decision once;
    later calls with the same identity return it unchanged, and a different
    identity starts a new cycle.
    """

    def __init__(self, require_admin: bool):
        self.require_admin = require_admin
        self._state = GateState.LOADING
        self._identity: Optional[Identity] = None
        self._decision: Optional[AccessDecision] = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def decision(self) -> Optional[AccessDecision]:
        return self._decision

    def reset(self) -> None:
        self._state = GateState.LOADING
        self._identity = None
        self._decision = None

    def resolve(self, identity: Identity) -> AccessDecision:
        if self._state == GateState.RESOLVED and identity == self._identity:
            return self._decision
        self._identity = identity
        self._decision = can_access(identity, self.require_admin)
        self._state = GateState.RESOLVED
        return self._decision
