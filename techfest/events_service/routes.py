"""
Events service routes: browse, create, update and delete festival events.

Creating and deleting events is reserved for superior admins; event admins
may update the events they are assigned to.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, jsonify, request

from techfest.auth_service.access import Capability
from techfest.auth_service.utils import read_json_body, require_capability, string_field
from techfest.database.db_connection import transaction
from techfest.errors import NotFound, ValidationError
from techfest.events_service import store

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 200
VALID_EVENT_TYPES = ["individual", "team"]
DEFAULT_TEAM_SIZE = 4


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


def parse_dt(val: Optional[str]) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 string to a datetime object.

    Returns:
        datetime: The parsed datetime, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        if val.endswith("Z"):
            val = val[:-1] + "+00:00"
        return datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None


def _non_negative_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{key} must be a non-negative integer")
    return value


def validate_event_payload(data: Dict[str, Any], current: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Validate a create (current=None) or partial update payload.

    Args:
        data (dict): Request JSON using API field names.
        current (dict, optional): Stored event row for updates.

    Returns:
        dict: Column name -> value for the fields to write.

    Raises:
        ValidationError: On any malformed or inconsistent field.
    """
    creating = current is None
    fields: Dict[str, Any] = {}

    unknown = set(data) - set(store.WRITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    if creating:
        missing = [k for k in ("title", "description", "fee", "date") if data.get(k) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if "title" in data:
        title = string_field(data, "title")
        if not title:
            raise ValidationError("Title cannot be empty")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"Title must be {TITLE_MAX_LENGTH} characters or less.")
        fields["title"] = title

    if "description" in data:
        description = string_field(data, "description")
        if not description:
            raise ValidationError("Description cannot be empty")
        fields["description"] = description

    if "fee" in data:
        try:
            fee = Decimal(str(data["fee"]))
        except (InvalidOperation, ValueError):
            raise ValidationError("fee must be a number")
        if isinstance(data["fee"], bool) or not fee.is_finite() or fee < 0:
            raise ValidationError("fee must be a non-negative number")
        fields["fee"] = fee

    if "date" in data:
        date = parse_dt(data.get("date"))
        if not date:
            raise ValidationError("Invalid date format. Use ISO-8601.")
        fields["date"] = date

    for key in ("image", "venue", "category"):
        if key in data:
            fields[key] = string_field(data, key) or None

    if "maxParticipants" in data:
        fields["max_participants"] = _non_negative_int(data, "maxParticipants")

    # --- TEAM LOGIC VALIDATION ---
    base = current or {}
    event_type = data.get("eventType", base.get("event_type", "individual"))
    if event_type not in VALID_EVENT_TYPES:
        raise ValidationError(f"eventType must be one of: {', '.join(VALID_EVENT_TYPES)}")

    if event_type == "team":
        if "maxTeamSize" in data:
            team_size = _non_negative_int(data, "maxTeamSize")
        elif base.get("event_type") == "team":
            team_size = base["max_team_size"]
        else:
            team_size = DEFAULT_TEAM_SIZE
        if team_size < 2:
            raise ValidationError("maxTeamSize must be at least 2 for team events")
    else:
        if "maxTeamSize" in data and data["maxTeamSize"] != 1:
            raise ValidationError("maxTeamSize applies to team events only; set eventType to team")
        team_size = 1

    if creating or "eventType" in data or "maxTeamSize" in data:
        fields["event_type"] = event_type
        fields["max_team_size"] = team_size

    return fields


@events_bp.route("/", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return all events ordered by date.

    Filters:
    - ?category=<name> : case-insensitive category match.
    """
    with transaction() as cur:
        rows = store.list_events(cur, category=request.args.get("category"))
    return jsonify([store.serialize_event(r) for r in rows]), 200


@events_bp.route("/<int:event_id>", methods=["GET"])
def get_event(event_id: int) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Returns:
        200: Event object.
        404: Event not found.
    """
    with transaction() as cur:
        event = store.get_event(cur, event_id)
    if not event:
        raise NotFound("Event not found")
    return jsonify(store.serialize_event(event)), 200


@events_bp.route("/", methods=["POST"])
@require_capability(Capability.SUPERIOR_ONLY)
def create_event() -> Tuple[Response, int]:
    """
    Create an event (superior admin only).

    Required: title, description, fee, date.
    Optional: image, venue, category, eventType, maxTeamSize, maxParticipants.

    Returns:
        200: Created event.
        400: Validation error.
    """
    data = read_json_body()
    fields = validate_event_payload(data)

    with transaction() as cur:
        event = store.create_event(cur, fields)

    logger.info("Event %s created: %s", event["event_id"], event["title"])
    return jsonify(store.serialize_event(event)), 200


@events_bp.route("/<int:event_id>", methods=["PUT"])
@require_capability(Capability.EVENT_ADMIN_OR_SUPERIOR, event_arg="event_id")
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Update an event.

    Permission:
    - Superior admin, or
    - An approved event admin assigned to this event.

    Returns:
        200: Updated event.
        400: Validation error.
        403: Forbidden.
        404: Event not found.
    """
    data = read_json_body()
    if not data:
        raise ValidationError("No update data provided")

    with transaction() as cur:
        current = store.get_event(cur, event_id, for_update=True)
        if not current:
            raise NotFound("Event not found")
        fields = validate_event_payload(data, current)
        event = store.update_event(cur, event_id, fields)

    return jsonify(store.serialize_event(event)), 200


@events_bp.route("/<int:event_id>", methods=["DELETE"])
@require_capability(Capability.SUPERIOR_ONLY)
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event together with all of its registrations.
    """
    with transaction() as cur:
        deleted = store.delete_event(cur, event_id)
    if not deleted:
        raise NotFound("Event not found")

    logger.info("Event %s deleted with its registrations", event_id)
    return jsonify({"status": "deleted"}), 200
