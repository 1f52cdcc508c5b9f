"""
Registration admission controller.

Admission checks run against live state in one transaction that holds the
event row lock, so concurrent admissions to the same event are serialised
and cannot jointly overshoot capacity. The unique participant constraint
in the store is the final guard against double booking.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

import psycopg2.errors

from techfest.database.db_connection import transaction
from techfest.errors import (
    AlreadyRegistered,
    CapacityReached,
    NotFound,
    TeamSizeExceeded,
    ValidationError,
)
from techfest.events_service import store as event_store
from techfest.registrations_service import store

logger = logging.getLogger(__name__)

REGISTERED = "registered"
PENDING_VERIFICATION = "pending_verification"
PAID = "paid"
FAILED = "failed"

UPI_DIRECT = "upi_direct"
RAZORPAY = "razorpay"


@dataclass(frozen=True)
class Payment:
    """Payment evidence attached to an admission."""

    method: str
    amount: Any
    transaction_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None


def _check_team(event: Dict[str, Any], principal_id: int, members: Sequence[int]) -> None:
    if event["event_type"] != "team":
        if members:
            raise ValidationError("This is an individual event; team members are not allowed")
        return

    if principal_id in members:
        raise ValidationError("You are already part of the team; do not list yourself as a member")
    if len(set(members)) != len(members):
        raise ValidationError("Team members must be distinct")

    team_size = 1 + len(members)
    if team_size > event["max_team_size"]:
        raise TeamSizeExceeded(
            f"Team size {team_size} exceeds the maximum of {event['max_team_size']} for this event"
        )


def _check_payment(event: Dict[str, Any], payment: Optional[Payment]) -> None:
    if payment is None and Decimal(event["fee"] or 0) > 0:
        raise ValidationError("This event has a fee; submit a payment to register")


def admit(
    principal_id: int,
    event_id: int,
    team_name: Optional[str] = None,
    team_member_ids: Sequence[int] = (),
    payment: Optional[Payment] = None,
) -> Dict[str, Any]:
    """
    Validate and persist a new registration.

    Checks, in order (the first failure wins and nothing is written):
    1. the event exists;
    2. team shape and size fit the event;
    3. the event still has room;
    4. no participant is already registered for the event.

    Args:
        principal_id (int): The registering user (the primary participant).
        event_id (int): Target event.
        team_name (str, optional): Display name for team events.
        team_member_ids (sequence): Other participants, in order.
        payment (Payment, optional): Payment evidence. Without it the
            registration is free and immediately "registered"; with it, it
            waits in "pending_verification".

    Returns:
        dict: The serialized registration.

    Raises:
        NotFound, ValidationError, TeamSizeExceeded, CapacityReached,
        AlreadyRegistered
    """
    members = list(team_member_ids)
    status = PENDING_VERIFICATION if payment is not None else REGISTERED

    try:
        with transaction() as cur:
            event = event_store.get_event(cur, event_id, for_update=True)
            if not event:
                raise NotFound("Event not found")

            _check_team(event, principal_id, members)
            if members:
                unknown = set(members) - store.existing_user_ids(cur, members)
                if unknown:
                    raise NotFound(f"Team members not found: {', '.join(str(u) for u in sorted(unknown))}")
            _check_payment(event, payment)

            if event["max_participants"] > 0:
                taken = store.count_active_registrations(cur, event_id)
                if taken >= event["max_participants"]:
                    raise CapacityReached()

            overlap = store.find_registered_participants(cur, event_id, [principal_id] + members)
            if overlap:
                if principal_id in overlap:
                    raise AlreadyRegistered("You are already registered for this event")
                raise AlreadyRegistered(
                    f"Team members already registered for this event: {', '.join(str(u) for u in sorted(overlap))}"
                )

            registration = store.insert_registration(
                cur,
                event_id=event_id,
                user_id=principal_id,
                team_member_ids=members,
                status=status,
                team_name=team_name if event["event_type"] == "team" else None,
                payment_method=payment.method if payment else None,
                transaction_id=payment.transaction_id if payment else None,
                razorpay_order_id=payment.razorpay_order_id if payment else None,
                amount_paid=payment.amount if payment else 0,
            )
    except psycopg2.errors.UniqueViolation:
        logger.warning("Concurrent duplicate registration for event %s by user %s", event_id, principal_id)
        raise AlreadyRegistered()

    logger.info(
        "User %s admitted to event %s as registration %s (%s)",
        principal_id,
        event_id,
        registration["registration_id"],
        status,
    )
    return store.serialize_registration(registration, members)


def _transition(registration_id: int, status: str) -> Dict[str, Any]:
    with transaction() as cur:
        registration = store.set_status(cur, registration_id, status)
        if registration is None:
            raise NotFound("Registration not found")
        members = store.team_members_by_registration(cur, [registration_id])[registration_id]
    logger.info("Registration %s marked %s", registration_id, status)
    return store.serialize_registration(registration, members)


def verify(registration_id: int) -> Dict[str, Any]:
    """
    Mark a registration as paid.

    Callers must already be authorised as superior admins. No amount or
    signature re-check happens here: manual UPI proofs are verified by a
    human against the bank statement.
    """
    return _transition(registration_id, PAID)


def reject(registration_id: int) -> Dict[str, Any]:
    """Mark a registration as failed, releasing its place at the event."""
    return _transition(registration_id, FAILED)
