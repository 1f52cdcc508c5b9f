"""
Shared request helpers for route handlers.
Reads tokens and JSON bodies from the request, resolves the principal and
enforces capabilities.
"""

import functools
from typing import Any, Callable, Dict, Optional

from flask import current_app, g, request

from techfest.auth_service import users
from techfest.auth_service.access import AccessGrant, Capability, evaluate
from techfest.auth_service.tokens import TokenService
from techfest.config import Settings
from techfest.database.db_connection import transaction
from techfest.errors import Unauthenticated, ValidationError

ACCESS_HEADER = "x-auth-token"
REFRESH_COOKIE = "refreshToken"


def get_settings() -> Settings:
    return current_app.config["SETTINGS"]


def get_token_service() -> TokenService:
    return current_app.extensions["token_service"]


def read_json_body() -> Dict[str, Any]:
    """
    Return the request's JSON object, or {} when there is no body.

    Raises:
        ValidationError: If the body is JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def string_field(data: Dict[str, Any], key: str) -> str:
    """
    Read an optional string field, stripped. Missing or null gives "".

    Raises:
        ValidationError: If the value is present but not a string.
    """
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def read_access_token() -> Optional[str]:
    """
    Pull the access token from the custom header, falling back to a
    standard Bearer Authorization header.
    """
    token = request.headers.get(ACCESS_HEADER)
    if token:
        return token.strip()
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip()
    return None


def authorize(capability: Capability, event_id: Optional[int] = None) -> AccessGrant:
    """
    Verify the request's access token and evaluate the capability.

    The user record is re-read on every call so role, approval and
    assignment edits apply to the very next request.

    Raises:
        Unauthenticated: Missing/invalid token or the user no longer exists.
        Forbidden: The capability check failed.
    """
    if capability is Capability.PUBLIC:
        return evaluate(None, capability)

    principal_id = get_token_service().verify_access(read_access_token())
    with transaction() as cur:
        user = users.get_user_by_id(cur, principal_id)
    if user is None:
        raise Unauthenticated("User no longer exists")
    return evaluate(user, capability, event_id)


def require_capability(capability: Capability, event_arg: Optional[str] = None) -> Callable:
    """
    Route decorator enforcing a capability.

    Args:
        capability (Capability): Access level the route needs.
        event_arg (str, optional): Name of the URL parameter holding the
            target event id, for scoped event-admin checks.

    On success the grant is stored on flask.g as g.grant and the user as
    g.current_user.
    """

    def decorator(view: Callable) -> Callable:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any):
            event_id = kwargs.get(event_arg) if event_arg else None
            grant = authorize(capability, event_id)
            g.grant = grant
            g.current_user = grant.user
            return view(*args, **kwargs)

        return wrapper

    return decorator
