"""
Access control evaluator.

Decides whether a freshly loaded user may exercise a capability, and for
event admins, which events the decision is scoped to.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from techfest.auth_service.users import Role, User
from techfest.errors import Forbidden


class Capability(enum.Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    SUPERIOR_ONLY = "superior_only"
    EVENT_ADMIN_OR_SUPERIOR = "event_admin_or_superior"


@dataclass(frozen=True)
class AccessGrant:
    """
    Outcome of a successful check.

    scope is None for unscoped access, otherwise the set of event ids the
    caller may see or touch.
    """

    user: Optional[User]
    scope: Optional[frozenset] = None

    @property
    def is_scoped(self) -> bool:
        return self.scope is not None

    def allows_event(self, event_id: int) -> bool:
        return self.scope is None or event_id in self.scope


def _superior_only(user: User) -> AccessGrant:
    if user.role is Role.SUPERIOR_ADMIN:
        return AccessGrant(user)
    if user.role in (Role.EVENT_ADMIN, Role.USER):
        raise Forbidden("Access denied: Superior Admin clearance required")
    raise ValueError(f"Unhandled role {user.role!r}")


def _event_admin_or_superior(user: User, event_id: Optional[int]) -> AccessGrant:
    if user.role is Role.SUPERIOR_ADMIN:
        return AccessGrant(user)
    if user.role is Role.USER:
        raise Forbidden("Access denied: Event Admin clearance required")
    if user.role is not Role.EVENT_ADMIN:
        raise ValueError(f"Unhandled role {user.role!r}")

    if not user.is_approved:
        raise Forbidden("Access denied: Your admin account is pending superior approval")
    if event_id is not None and event_id not in user.assigned_events:
        raise Forbidden("Access denied: You are not assigned to this event")
    return AccessGrant(user, scope=frozenset(user.assigned_events))


def evaluate(user: Optional[User], capability: Capability, event_id: Optional[int] = None) -> AccessGrant:
    """
    Check a principal against a route's required capability.

    Args:
        user (User): The principal, loaded from storage for this request.
            May be None only for PUBLIC routes.
        capability (Capability): What the route requires.
        event_id (int, optional): The event the request targets, if any.

    Returns:
        AccessGrant: The caller and the event scope they are limited to.

    Raises:
        Forbidden: If the role, approval or assignment check fails.
    """
    if capability is Capability.PUBLIC:
        return AccessGrant(user)
    if user is None:
        raise ValueError("A loaded user is required for non-public capabilities")
    if capability is Capability.AUTHENTICATED:
        return AccessGrant(user)
    if capability is Capability.SUPERIOR_ONLY:
        return _superior_only(user)
    if capability is Capability.EVENT_ADMIN_OR_SUPERIOR:
        return _event_admin_or_superior(user, event_id)
    raise ValueError(f"Unhandled capability {capability!r}")
