"""Tests for access decisions"""

import pytest

from app.schemas.auth import Identity
from app.services.access import (
    ADMIN_LOGIN_PATH,
    HOME_PATH,
    AccessGate,
    GateState,
    can_access,
    has_permission,
)


ANONYMOUS = Identity()
STAFF = Identity(profile_role="user", has_session=True)
ADMIN = Identity(profile_role="admin", has_session=True)
LOCAL_ADMIN = Identity(is_local_admin=True)


@pytest.mark.parametrize("identity,require_admin,allowed,redirect_to", [
    (ANONYMOUS, False, False, HOME_PATH),
    (ANONYMOUS, True, False, ADMIN_LOGIN_PATH),
    (STAFF, False, True, None),
    (STAFF, True, False, ADMIN_LOGIN_PATH),
    (ADMIN, False, True, None),
    (ADMIN, True, True, None),
    (LOCAL_ADMIN, False, True, None),
    (LOCAL_ADMIN, True, True, None),
])
def test_can_access(identity, require_admin, allowed, redirect_to):
    decision = can_access(identity, require_admin)

    assert decision.allowed is allowed
    assert decision.redirect_to == redirect_to


def test_local_admin_overrides_everything():
    identity = Identity(is_local_admin=True, profile_role="user", has_session=False)

    assert can_access(identity, require_admin=True).allowed
    assert has_permission(identity, "users.delete")


def test_admin_role_without_session_flag_passes_admin_routes():
    identity = Identity(profile_role="admin", has_session=False)

    assert can_access(identity, require_admin=True).allowed
    assert not can_access(identity, require_admin=False).allowed


def test_gate_starts_loading_without_decision():
    gate = AccessGate(require_admin=True)

    assert gate.state == GateState.LOADING
    assert gate.decision is None


def test_gate_resolves_once_per_identity():
    gate = AccessGate(require_admin=True)

    first = gate.resolve(ADMIN)
    second = gate.resolve(ADMIN)

    assert gate.state == GateState.RESOLVED
    assert first.allowed
    assert second is first


def test_gate_recomputes_when_identity_changes():
    gate = AccessGate(require_admin=True)
    gate.resolve(ADMIN)

    decision = gate.resolve(STAFF)

    assert not decision.allowed
    assert decision.redirect_to == ADMIN_LOGIN_PATH
    assert gate.decision == decision


def test_gate_reset():
    gate = AccessGate(require_admin=False)
    gate.resolve(STAFF)

    gate.reset()

    assert gate.state == GateState.LOADING
    assert gate.decision is None


@pytest.mark.parametrize("identity,permission,expected", [
    (STAFF, "dashboard.view", True),
    (STAFF, "reservations.edit", True),
    (STAFF, "reservations.delete", False),
    (STAFF, "tables.view", False),
    (ADMIN, "tables.view", True),
    (ADMIN, "users.delete", True),
    (ADMIN, "unknown.permission", False),
    (ANONYMOUS, "dashboard.view", False),
    (Identity(profile_role="owner", has_session=True), "dashboard.view", False),
])
def test_has_permission(identity, permission, expected):
    assert has_permission(identity, permission) is expected
