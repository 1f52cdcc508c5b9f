"""
Registration routes: sign up for events (solo or as a team), submit manual
UPI payment proof, and the admin views for verifying and listing
registrations.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, Response, g, jsonify, request

from techfest.auth_service.access import Capability
from techfest.auth_service.utils import get_settings, read_json_body, require_capability, string_field
from techfest.database.db_connection import transaction
from techfest.errors import Forbidden, ValidationError
from techfest.registrations_service import admission, store

logger = logging.getLogger(__name__)

registrations_bp = Blueprint("registrations", __name__)

TEAM_NAME_MAX_LENGTH = 120
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


# --- REQUEST LOGGING ---
@registrations_bp.before_request
def before_request() -> None:
    """
    Log method and path only; bodies carry payment references.
    """
    logging.info(f"[Registrations] Incoming {request.method} {request.path}")


@registrations_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Registrations] Response {response.status}")
    return response


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer id")
    return value


def parse_registration_request(data: Dict[str, Any]) -> Tuple[int, Optional[str], List[int]]:
    """
    Pull eventId, teamName and teamMembers out of a request body.

    Raises:
        ValidationError: On missing or mistyped fields.
    """
    if data.get("eventId") is None:
        raise ValidationError("eventId is required")
    event_id = _require_int(data.get("eventId"), "eventId")

    team_name = data.get("teamName")
    if team_name is not None:
        if not isinstance(team_name, str) or len(team_name.strip()) > TEAM_NAME_MAX_LENGTH:
            raise ValidationError(f"teamName must be a string of at most {TEAM_NAME_MAX_LENGTH} characters")
        team_name = team_name.strip() or None

    raw_members = data.get("teamMembers") or []
    if not isinstance(raw_members, list):
        raise ValidationError("teamMembers must be a list of user ids")
    members = [_require_int(m, "teamMembers entry") for m in raw_members]
    return event_id, team_name, members


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError("amountPaid is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("amountPaid must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("amountPaid must be a non-negative number")
    return amount


def _int_arg(name: str, default: int, minimum: int, maximum: Optional[int] = None) -> int:
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    return min(value, maximum) if maximum else value


# --- REGISTER (FREE) ---
@registrations_bp.route("/register", methods=["POST"])
@require_capability(Capability.AUTHENTICATED)
def register() -> Tuple[Response, int]:
    """
    Register the caller for a free event, optionally with team members.

    Expects JSON:
        { "eventId": int, "teamName": str?, "teamMembers": [user_id, ...]? }

    Returns:
        200: The registration (status "registered").
        400: AlreadyRegistered, TeamSizeExceeded, CapacityReached or invalid input.
        404: Event or team member not found.
    """
    data = read_json_body()
    event_id, team_name, members = parse_registration_request(data)
    registration = admission.admit(g.current_user.user_id, event_id, team_name, members)
    return jsonify(registration), 200


# --- MANUAL UPI ---
@registrations_bp.route("/manual-upi", methods=["POST"])
@require_capability(Capability.AUTHENTICATED)
def manual_upi() -> Tuple[Response, int]:
    """
    Submit a manual UPI payment for verification.

    Expects JSON:
        { "eventId": int, "transactionId": str, "amountPaid": number,
          "teamName": str?, "teamMembers": [user_id, ...]? }

    Returns:
        200: The registration (status "pending_verification").
        400: Missing UTR or an admission error.
    """
    data = read_json_body()
    transaction_id = string_field(data, "transactionId")
    if not transaction_id:
        raise ValidationError("Transaction ID (UTR) is required")

    event_id, team_name, members = parse_registration_request(data)
    payment = admission.Payment(
        method=admission.UPI_DIRECT,
        amount=parse_amount(data.get("amountPaid")),
        transaction_id=transaction_id,
    )
    registration = admission.admit(g.current_user.user_id, event_id, team_name, members, payment)

    settings = get_settings()
    return jsonify({
        "message": "Registration submitted for verification. Please wait for admin approval.",
        "registration": registration,
        "upiUsed": settings.admin_upi_id,
    }), 200


# --- MY REGISTRATIONS ---
@registrations_bp.route("/my", methods=["GET"])
@require_capability(Capability.AUTHENTICATED)
def my_registrations() -> Tuple[Response, int]:
    """
    Registrations the caller belongs to (as primary or team member), newest first.
    """
    with transaction() as cur:
        rows = store.list_for_user(cur, g.current_user.user_id)
        members = store.team_members_by_registration(cur, [r["registration_id"] for r in rows])

    result = []
    for row in rows:
        event = {
            "id": row["event_id"],
            "title": row["event_title"],
            "date": row["event_date"].isoformat() if row.get("event_date") else None,
            "venue": row.get("event_venue"),
            "eventType": row.get("event_type"),
        }
        result.append(store.serialize_registration(row, members[row["registration_id"]], event=event))
    return jsonify(result), 200


# --- UPI DETAILS ---
@registrations_bp.route("/upi-details", methods=["GET"])
@require_capability(Capability.AUTHENTICATED)
def upi_details() -> Tuple[Response, int]:
    """
    The UPI id participants pay into for manual transfers.
    """
    settings = get_settings()
    return jsonify({"upiId": settings.admin_upi_id, "merchantName": settings.upi_merchant_name}), 200


# --- VERIFY / REJECT (SUPERIOR ONLY) ---
@registrations_bp.route("/verify/<int:registration_id>", methods=["POST"])
@require_capability(Capability.SUPERIOR_ONLY)
def verify_registration(registration_id: int) -> Tuple[Response, int]:
    """
    Mark a registration as paid after checking the UPI proof by hand.

    Returns:
        200: The registration (status "paid").
        404: Registration not found.
    """
    registration = admission.verify(registration_id)
    logger.info("Registration %s verified by %s", registration_id, g.current_user.user_id)
    return jsonify(registration), 200


@registrations_bp.route("/reject/<int:registration_id>", methods=["POST"])
@require_capability(Capability.SUPERIOR_ONLY)
def reject_registration(registration_id: int) -> Tuple[Response, int]:
    """
    Mark a registration as failed (bogus or missing payment).
    """
    registration = admission.reject(registration_id)
    logger.info("Registration %s rejected by %s", registration_id, g.current_user.user_id)
    return jsonify(registration), 200


# --- ALL REGISTRATIONS (ADMINS) ---
@registrations_bp.route("/all", methods=["GET"])
@require_capability(Capability.EVENT_ADMIN_OR_SUPERIOR)
def all_registrations() -> Tuple[Response, int]:
    """
    Paginated list of registrations.

    Superior admins see every event; event admins only their assigned ones.

    Query:
    - page (default 1), limit (default 20, max 100)
    - eventId : restrict to one event
    - status  : restrict to one status
    """
    page = _int_arg("page", 1, 1)
    limit = _int_arg("limit", DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE)
    event_id = _int_arg("eventId", 0, 1) or None
    status = request.args.get("status")
    if status is not None and status not in store.VALID_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(store.VALID_STATUSES)}")

    grant = g.grant
    if event_id is not None and not grant.allows_event(event_id):
        raise Forbidden("Access denied: You are not assigned to this event")

    with transaction() as cur:
        rows, total = store.list_registrations(
            cur,
            scope=grant.scope,
            event_id=event_id,
            status=status,
            limit=limit,
            offset=(page - 1) * limit,
        )
        members = store.team_members_by_registration(cur, [r["registration_id"] for r in rows])

    items = []
    for row in rows:
        item = store.serialize_registration(row, members[row["registration_id"]])
        item["userDetails"] = {
            "name": row["user_name"],
            "email": row["user_email"],
            "username": row["user_username"],
        }
        item["eventTitle"] = row["event_title"]
        items.append(item)

    return jsonify({"items": items, "page": page, "limit": limit, "total": total}), 200
