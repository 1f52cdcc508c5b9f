"""
Admin management routes (superior admins only).

Superior admins review event-admin applicants, approve or suspend them,
change roles, and assign the events each event admin may manage.
"""

import logging
from typing import Any, List, Optional, Tuple

from flask import Blueprint, Response, g, jsonify, request

from techfest.auth_service import users
from techfest.auth_service.access import Capability
from techfest.auth_service.users import Role
from techfest.auth_service.utils import read_json_body, require_capability
from techfest.database.db_connection import transaction
from techfest.errors import NotFound, ValidationError
from techfest.events_service import store as event_store

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admins", __name__)

VALID_ROLES = [role.value for role in Role]


@admin_bp.before_request
def before_request() -> None:
    logging.info(f"[Admins] Incoming {request.method} {request.path}")


@admin_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Admins] Response {response.status}")
    return response


def _parse_event_ids(raw: Any) -> List[int]:
    if not isinstance(raw, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in raw):
        raise ValidationError("assignedEvents must be a list of event ids")
    return raw


@admin_bp.route("/", methods=["GET"])
@require_capability(Capability.SUPERIOR_ONLY)
def list_admins() -> Tuple[Response, int]:
    """
    List event and superior admins.

    Filters:
    - ?pending=true : only admins still waiting for approval.
    """
    pending_only = request.args.get("pending", "").lower() in ("1", "true", "yes")
    with transaction() as cur:
        admins = users.list_admins(cur, pending_only=pending_only)
    return jsonify([a.to_public() for a in admins]), 200


@admin_bp.route("/update/<int:user_id>", methods=["PUT"])
@require_capability(Capability.SUPERIOR_ONLY)
def update_admin(user_id: int) -> Tuple[Response, int]:
    """
    Change a user's role, approval flag or assigned events.

    Expects JSON with any of:
        { "role": "user" | "event_admin" | "superior_admin",
          "isApproved": bool,
          "assignedEvents": [event_id, ...] }

    Returns:
        200: Updated user.
        400: Invalid input or an attempt to change one's own role.
        403: Caller is not a superior admin.
        404: User or an assigned event not found.
    """
    data = read_json_body()

    role: Optional[Role] = None
    if "role" in data:
        if data["role"] not in VALID_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")
        role = Role(data["role"])
        if user_id == g.current_user.user_id and role is not Role.SUPERIOR_ADMIN:
            raise ValidationError("You cannot change your own role")

    is_approved: Optional[bool] = None
    if "isApproved" in data:
        if not isinstance(data["isApproved"], bool):
            raise ValidationError("isApproved must be a boolean")
        is_approved = data["isApproved"]

    assigned: Optional[List[int]] = None
    if "assignedEvents" in data:
        assigned = _parse_event_ids(data["assignedEvents"])

    if role is None and is_approved is None and assigned is None:
        raise ValidationError("No valid fields provided")

    with transaction() as cur:
        if assigned:
            missing = set(assigned) - event_store.existing_event_ids(cur, assigned)
            if missing:
                raise NotFound(f"Events not found: {', '.join(str(m) for m in sorted(missing))}")
        updated = users.update_admin_fields(
            cur, user_id, role=role, is_approved=is_approved, assigned_events=assigned
        )
    if updated is None:
        raise NotFound("User not found")

    logger.info(
        "Superior admin %s updated user %s: role=%s approved=%s events=%s",
        g.current_user.user_id,
        user_id,
        updated.role.value,
        updated.is_approved,
        sorted(updated.assigned_events),
    )
    return jsonify(updated.to_public()), 200
