"""
Registration persistence.

A registration row holds the primary participant and payment data; every
participant (primary included) also gets a registration_members row, whose
unique (event_id, user_id) pair the database enforces at write time.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

REGISTRATION_COLUMNS = """
    r.registration_id, r.event_id, r.user_id, r.team_name, r.payment_method,
    r.transaction_id, r.razorpay_order_id, r.razorpay_payment_id,
    r.amount_paid, r.status, r.created_at, r.updated_at
"""

ACTIVE_STATUSES = ("registered", "pending_verification", "paid")
VALID_STATUSES = ACTIVE_STATUSES + ("failed",)


def serialize_registration(row, team_members: Sequence[int] = (), event=None) -> Dict[str, Any]:
    reg = dict(row)
    for key in ("created_at", "updated_at"):
        if reg.get(key):
            reg[key] = reg[key].isoformat()
    amount = reg.get("amount_paid")
    body = {
        "id": reg["registration_id"],
        "event": reg["event_id"],
        "user": reg["user_id"],
        "teamName": reg.get("team_name"),
        "teamMembers": list(team_members),
        "paymentMethod": reg.get("payment_method"),
        "transactionId": reg.get("transaction_id"),
        "razorpayOrderId": reg.get("razorpay_order_id"),
        "razorpayPaymentId": reg.get("razorpay_payment_id"),
        "amountPaid": float(amount) if isinstance(amount, Decimal) else amount,
        "status": reg["status"],
        "createdAt": reg.get("created_at"),
        "updatedAt": reg.get("updated_at"),
    }
    if event is not None:
        body["eventDetails"] = event
    return body


def team_members_by_registration(cur, registration_ids: Iterable[int]) -> Dict[int, List[int]]:
    ids = list(registration_ids)
    members: Dict[int, List[int]] = {rid: [] for rid in ids}
    if not ids:
        return members
    cur.execute(
        """
        SELECT registration_id, user_id FROM registration_members
        WHERE registration_id = ANY(%s) AND is_primary = FALSE
        ORDER BY registration_id, position;
        """,
        (ids,),
    )
    for row in cur.fetchall():
        members[row["registration_id"]].append(row["user_id"])
    return members


def existing_user_ids(cur, user_ids: Iterable[int]) -> Set[int]:
    ids = list(set(user_ids))
    if not ids:
        return set()
    cur.execute("SELECT user_id FROM users WHERE user_id = ANY(%s);", (ids,))
    return {row["user_id"] for row in cur.fetchall()}


def count_active_registrations(cur, event_id: int) -> int:
    """Registrations holding a place at the event (anything not failed)."""
    cur.execute(
        "SELECT COUNT(*) AS total FROM registrations WHERE event_id = %s AND status <> 'failed';",
        (event_id,),
    )
    row = cur.fetchone()
    return row["total"] if row else 0


def find_registered_participants(cur, event_id: int, user_ids: Iterable[int]) -> Set[int]:
    """Which of user_ids already appear, as primary or team member, at this event."""
    ids = list(set(user_ids))
    cur.execute(
        "SELECT user_id FROM registration_members WHERE event_id = %s AND user_id = ANY(%s);",
        (event_id, ids),
    )
    return {row["user_id"] for row in cur.fetchall()}


def insert_registration(
    cur,
    event_id: int,
    user_id: int,
    team_member_ids: Sequence[int],
    status: str,
    team_name: Optional[str] = None,
    payment_method: Optional[str] = None,
    transaction_id: Optional[str] = None,
    razorpay_order_id: Optional[str] = None,
    amount_paid: Any = 0,
) -> Dict[str, Any]:
    """
    Insert a registration and one member row per participant.

    Raises:
        psycopg2.errors.UniqueViolation: If any participant is already
            registered for the event.
    """
    cur.execute(
        """
        INSERT INTO registrations (
            event_id, user_id, team_name, payment_method, transaction_id,
            razorpay_order_id, amount_paid, status
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING registration_id, event_id, user_id, team_name, payment_method,
                  transaction_id, razorpay_order_id, razorpay_payment_id,
                  amount_paid, status, created_at, updated_at;
        """,
        (event_id, user_id, team_name, payment_method, transaction_id, razorpay_order_id, amount_paid, status),
    )
    registration = dict(cur.fetchone())
    participants = [user_id] + list(team_member_ids)
    for position, participant in enumerate(participants):
        cur.execute(
            """
            INSERT INTO registration_members (registration_id, event_id, user_id, position, is_primary)
            VALUES (%s, %s, %s, %s, %s);
            """,
            (registration["registration_id"], event_id, participant, position, position == 0),
        )
    return registration


def set_status(cur, registration_id: int, status: str) -> Optional[Dict[str, Any]]:
    cur.execute(
        f"""
        UPDATE registrations r SET status = %s, updated_at = CURRENT_TIMESTAMP
        WHERE r.registration_id = %s
        RETURNING {REGISTRATION_COLUMNS};
        """,
        (status, registration_id),
    )
    row = cur.fetchone()
    return dict(row) if row else None


def find_by_order_id(cur, order_id: str, user_id: int) -> Optional[Dict[str, Any]]:
    cur.execute(
        f"""
        SELECT {REGISTRATION_COLUMNS} FROM registrations r
        WHERE r.razorpay_order_id = %s AND r.user_id = %s
        FOR UPDATE;
        """,
        (order_id, user_id),
    )
    row = cur.fetchone()
    return dict(row) if row else None


def mark_gateway_paid(cur, registration_id: int, payment_id: str, signature: str) -> Optional[Dict[str, Any]]:
    """
    Record a verified checkout and mark the registration paid.

    Only a registration still pending verification moves; a failed one has
    given up its place and is left alone.

    Returns:
        dict: The updated row, or None if it was not pending.
    """
    cur.execute(
        f"""
        UPDATE registrations r
        SET razorpay_payment_id = %s, razorpay_signature = %s, status = 'paid',
            updated_at = CURRENT_TIMESTAMP
        WHERE r.registration_id = %s AND r.status = 'pending_verification'
        RETURNING {REGISTRATION_COLUMNS};
        """,
        (payment_id, signature, registration_id),
    )
    row = cur.fetchone()
    return dict(row) if row else None


def list_for_user(cur, user_id: int) -> List[Dict[str, Any]]:
    """
    Registrations where the user is primary or a team member, newest first,
    joined with event title/date/venue.
    """
    cur.execute(
        f"""
        SELECT {REGISTRATION_COLUMNS},
               e.title AS event_title, e.date AS event_date, e.venue AS event_venue,
               e.event_type AS event_type
        FROM registrations r
        JOIN events e ON e.event_id = r.event_id
        WHERE r.registration_id IN (
            SELECT registration_id FROM registration_members WHERE user_id = %s
        )
        ORDER BY r.created_at DESC;
        """,
        (user_id,),
    )
    return [dict(row) for row in cur.fetchall()]


def list_registrations(
    cur,
    scope: Optional[Iterable[int]] = None,
    event_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Page through registrations, newest first.

    Args:
        scope (iterable, optional): Restrict to these event ids. None means
            all events; an empty scope yields nothing.

    Returns:
        tuple: (rows, total matching rows)
    """
    conditions: List[str] = []
    params: List[Any] = []
    if scope is not None:
        conditions.append("r.event_id = ANY(%s)")
        params.append(list(scope))
    if event_id is not None:
        conditions.append("r.event_id = %s")
        params.append(event_id)
    if status is not None:
        conditions.append("r.status = %s")
        params.append(status)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    cur.execute(f"SELECT COUNT(*) AS total FROM registrations r {where};", params)
    total = cur.fetchone()["total"]

    cur.execute(
        f"""
        SELECT {REGISTRATION_COLUMNS},
               u.name AS user_name, u.email AS user_email, u.username AS user_username,
               e.title AS event_title
        FROM registrations r
        JOIN users u ON u.user_id = r.user_id
        JOIN events e ON e.event_id = r.event_id
        {where}
        ORDER BY r.created_at DESC, r.registration_id DESC
        LIMIT %s OFFSET %s;
        """,
        params + [limit, offset],
    )
    return [dict(row) for row in cur.fetchall()], total
