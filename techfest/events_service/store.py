"""
Event persistence.

Events are plain dicts straight from the cursor; `serialize_event` shapes
them for JSON.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

EVENT_COLUMNS = """
    event_id, title, description, image, fee, date, venue, category,
    event_type, max_team_size, max_participants, created_at, updated_at
"""

# JSON field name -> column name for writable fields.
WRITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "image": "image",
    "fee": "fee",
    "date": "date",
    "venue": "venue",
    "category": "category",
    "eventType": "event_type",
    "maxTeamSize": "max_team_size",
    "maxParticipants": "max_participants",
}


def serialize_event(row) -> Dict[str, Any]:
    event = dict(row)
    for key in ("date", "created_at", "updated_at"):
        if event.get(key):
            event[key] = event[key].isoformat()
    if isinstance(event.get("fee"), Decimal):
        event["fee"] = float(event["fee"])
    return {
        "id": event["event_id"],
        "title": event["title"],
        "description": event["description"],
        "image": event.get("image"),
        "fee": event["fee"],
        "date": event["date"],
        "venue": event.get("venue"),
        "category": event.get("category"),
        "eventType": event["event_type"],
        "maxTeamSize": event["max_team_size"],
        "maxParticipants": event["max_participants"],
        "createdAt": event.get("created_at"),
        "updatedAt": event.get("updated_at"),
    }


def list_events(cur, category: Optional[str] = None) -> List[Dict[str, Any]]:
    sql = f"SELECT {EVENT_COLUMNS} FROM events"
    params: List[Any] = []
    if category:
        sql += " WHERE LOWER(category) = LOWER(%s)"
        params.append(category)
    sql += " ORDER BY date ASC, event_id ASC;"
    cur.execute(sql, params)
    return [dict(row) for row in cur.fetchall()]


def get_event(cur, event_id: int, for_update: bool = False) -> Optional[Dict[str, Any]]:
    """
    Fetch one event.

    With for_update=True the row stays locked until the surrounding
    transaction ends, serialising writers that touch the same event.
    """
    sql = f"SELECT {EVENT_COLUMNS} FROM events WHERE event_id = %s"
    if for_update:
        sql += " FOR UPDATE"
    cur.execute(sql + ";", (event_id,))
    row = cur.fetchone()
    return dict(row) if row else None


def existing_event_ids(cur, event_ids: Iterable[int]) -> Set[int]:
    ids = list(set(event_ids))
    if not ids:
        return set()
    cur.execute("SELECT event_id FROM events WHERE event_id = ANY(%s);", (ids,))
    return {row["event_id"] for row in cur.fetchall()}


def create_event(cur, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Insert an event from validated column values."""
    columns = list(fields)
    placeholders = ", ".join(["%s"] * len(columns))
    cur.execute(
        f"INSERT INTO events ({', '.join(columns)}) VALUES ({placeholders}) RETURNING {EVENT_COLUMNS};",
        [fields[c] for c in columns],
    )
    return dict(cur.fetchone())


def update_event(cur, event_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    set_clause = ", ".join(f"{column} = %s" for column in fields)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"
    cur.execute(
        f"UPDATE events SET {set_clause} WHERE event_id = %s RETURNING {EVENT_COLUMNS};",
        list(fields.values()) + [event_id],
    )
    row = cur.fetchone()
    return dict(row) if row else None


def delete_event(cur, event_id: int) -> bool:
    """
    Delete an event and, first, every registration that references it.

    Both statements run in the caller's transaction so no registration can
    outlive its event.

    Returns:
        bool: False if the event did not exist.
    """
    cur.execute("SELECT event_id FROM events WHERE event_id = %s FOR UPDATE;", (event_id,))
    if cur.fetchone() is None:
        return False
    cur.execute("DELETE FROM registrations WHERE event_id = %s;", (event_id,))
    cur.execute("DELETE FROM events WHERE event_id = %s;", (event_id,))
    return cur.rowcount > 0
