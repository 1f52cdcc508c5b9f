import pytest

from techfest.auth_service.access import AccessGrant, Capability, evaluate
from techfest.auth_service.users import Role
from techfest.errors import Forbidden


def test_public_needs_no_user():
    grant = evaluate(None, Capability.PUBLIC)
    assert grant.user is None
    assert not grant.is_scoped


@pytest.mark.parametrize("role", list(Role))
def test_authenticated_allows_every_role(user_factory, role):
    user = user_factory(role=role, is_approved=False)
    assert evaluate(user, Capability.AUTHENTICATED).user is user


def test_superior_only(user_factory):
    superior = user_factory(role=Role.SUPERIOR_ADMIN)
    assert not evaluate(superior, Capability.SUPERIOR_ONLY).is_scoped

    for role in (Role.USER, Role.EVENT_ADMIN):
        with pytest.raises(Forbidden) as exc:
            evaluate(user_factory(role=role), Capability.SUPERIOR_ONLY)
        assert "Superior Admin clearance required" in exc.value.message


def test_event_admin_or_superior_rejects_users(user_factory):
    with pytest.raises(Forbidden) as exc:
        evaluate(user_factory(role=Role.USER), Capability.EVENT_ADMIN_OR_SUPERIOR, event_id=1)
    assert "Event Admin clearance required" in exc.value.message


def test_superior_admin_is_unscoped(user_factory):
    grant = evaluate(user_factory(role=Role.SUPERIOR_ADMIN), Capability.EVENT_ADMIN_OR_SUPERIOR, event_id=99)
    assert grant.scope is None
    assert grant.allows_event(99)


def test_unapproved_event_admin_is_pending(user_factory):
    admin = user_factory(role=Role.EVENT_ADMIN, is_approved=False, assigned_events=[1])

    with pytest.raises(Forbidden) as exc:
        evaluate(admin, Capability.EVENT_ADMIN_OR_SUPERIOR, event_id=1)
    assert "pending superior approval" in exc.value.message


def test_event_admin_must_be_assigned(user_factory):
    admin = user_factory(role=Role.EVENT_ADMIN, assigned_events=[1, 2])

    grant = evaluate(admin, Capability.EVENT_ADMIN_OR_SUPERIOR, event_id=2)
    assert grant.scope == frozenset({1, 2})

    with pytest.raises(Forbidden) as exc:
        evaluate(admin, Capability.EVENT_ADMIN_OR_SUPERIOR, event_id=3)
    assert "not assigned to this event" in exc.value.message


def test_event_admin_without_target_gets_scope(user_factory):
    admin = user_factory(role=Role.EVENT_ADMIN, assigned_events=[4])

    grant = evaluate(admin, Capability.EVENT_ADMIN_OR_SUPERIOR)
    assert grant.is_scoped
    assert grant.allows_event(4)
    assert not grant.allows_event(5)


def test_scoped_grant_with_no_assignments_allows_nothing():
    grant = AccessGrant(user=None, scope=frozenset())
    assert grant.is_scoped
    assert not grant.allows_event(1)
