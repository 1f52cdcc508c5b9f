"""
Payment gateway routes: create a Razorpay order (which admits the caller
with a pending registration) and verify the checkout signature.
"""

import logging
from decimal import Decimal
from typing import Tuple

from flask import Blueprint, Response, current_app, g, jsonify, request

from techfest.auth_service.access import Capability
from techfest.auth_service.utils import read_json_body, require_capability
from techfest.database.db_connection import transaction
from techfest.errors import NotFound, PaymentVerificationFailed, ValidationError
from techfest.events_service import store as event_store
from techfest.payments_service.gateway import RazorpayGateway
from techfest.registrations_service import admission
from techfest.registrations_service import store as registration_store
from techfest.registrations_service.routes import parse_registration_request

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__)


@payments_bp.before_request
def before_request() -> None:
    logging.info(f"[Payments] Incoming {request.method} {request.path}")


@payments_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Payments] Response {response.status}")
    return response


def get_gateway() -> RazorpayGateway:
    return current_app.extensions["payment_gateway"]


@payments_bp.route("/create-order", methods=["POST"])
@require_capability(Capability.AUTHENTICATED)
def create_order() -> Tuple[Response, int]:
    """
    Create a Razorpay order for a paid event and hold a pending registration.

    Expects JSON:
        { "eventId": int, "teamName": str?, "teamMembers": [user_id, ...]? }

    Returns:
        200: { "order": <razorpay order>, "registration": <registration> }
        400: Free event, or an admission error.
        404: Event not found.
        502: Gateway failure.
    """
    data = read_json_body()
    event_id, team_name, members = parse_registration_request(data)

    with transaction() as cur:
        event = event_store.get_event(cur, event_id)
    if not event:
        raise NotFound("Event not found")
    fee = Decimal(event["fee"] or 0)
    if fee <= 0:
        raise ValidationError("This event is free; register without payment")

    order = get_gateway().create_order(fee)
    payment = admission.Payment(
        method=admission.RAZORPAY,
        amount=fee,
        razorpay_order_id=order["id"],
    )
    registration = admission.admit(g.current_user.user_id, event_id, team_name, members, payment)
    return jsonify({"order": order, "registration": registration}), 200


@payments_bp.route("/verify", methods=["POST"])
@require_capability(Capability.AUTHENTICATED)
def verify_payment() -> Tuple[Response, int]:
    """
    Verify a Razorpay checkout signature and mark the registration paid.

    Expects JSON:
        { "razorpay_order_id": str, "razorpay_payment_id": str,
          "razorpay_signature": str }

    Returns:
        200: { "success": true, "registration": ... }
        400: Missing fields, signature mismatch, or the registration is
             not pending (already paid, or rejected).
        404: No registration of the caller's holds this order.
    """
    data = read_json_body()
    order_id = data.get("razorpay_order_id")
    payment_id = data.get("razorpay_payment_id")
    signature = data.get("razorpay_signature")
    if not all(isinstance(v, str) and v for v in (order_id, payment_id, signature)):
        raise ValidationError("razorpay_order_id, razorpay_payment_id and razorpay_signature are required")

    if not get_gateway().verify_signature(order_id, payment_id, signature):
        logger.warning("Signature mismatch for order %s from user %s", order_id, g.current_user.user_id)
        raise PaymentVerificationFailed()

    with transaction() as cur:
        registration = registration_store.find_by_order_id(cur, order_id, g.current_user.user_id)
        if not registration:
            raise NotFound("Registration not found for this order")
        if registration["status"] != admission.PENDING_VERIFICATION:
            logger.warning(
                "Checkout for order %s arrived on registration %s in status %s",
                order_id,
                registration["registration_id"],
                registration["status"],
            )
            raise ValidationError(f"Registration is {registration['status']}, not awaiting payment")
        updated = registration_store.mark_gateway_paid(
            cur, registration["registration_id"], payment_id, signature
        )
        if updated is None:
            raise ValidationError("Registration is no longer awaiting payment")
        members = registration_store.team_members_by_registration(cur, [updated["registration_id"]])

    return jsonify({
        "message": "Payment verified successfully",
        "success": True,
        "registration": registration_store.serialize_registration(
            updated, members[updated["registration_id"]]
        ),
    }), 200
