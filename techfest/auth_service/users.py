"""
Credential store: persisted user records.

All functions take an open cursor so callers decide the transaction
boundary. Role, approval and assignment edits are performed only by
superior admins; the route layer enforces that.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional


class Role(str, enum.Enum):
    USER = "user"
    EVENT_ADMIN = "event_admin"
    SUPERIOR_ADMIN = "superior_admin"


@dataclass(frozen=True)
class User:
    user_id: int
    name: str
    username: str
    email: str
    role: Role
    is_approved: bool
    password_hash: str = field(repr=False, default="")
    college: Optional[str] = None
    profile_pic: str = ""
    assigned_events: frozenset = frozenset()
    created_at: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """Serializable view without credential material."""
        return {
            "id": self.user_id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "college": self.college,
            "profilePic": self.profile_pic,
            "role": self.role.value,
            "isApproved": self.is_approved,
            "assignedEvents": sorted(self.assigned_events),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


USER_COLUMNS = """
    user_id, name, username, email, password_hash, college,
    profile_pic, role, is_approved, created_at
"""


def _assigned_events(cur, user_id: int) -> frozenset:
    cur.execute(
        "SELECT event_id FROM event_admin_assignments WHERE user_id = %s;",
        (user_id,),
    )
    return frozenset(row["event_id"] for row in cur.fetchall())


def user_from_row(row, assigned_events: Iterable[int] = ()) -> User:
    """
    Build a User from a DictCursor row.

    Raises:
        ValueError: If the stored role is not one of the known roles.
    """
    return User(
        user_id=row["user_id"],
        name=row["name"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        college=row["college"],
        profile_pic=row["profile_pic"] or "",
        role=Role(row["role"]),
        is_approved=bool(row["is_approved"]),
        assigned_events=frozenset(assigned_events),
        created_at=row["created_at"],
    )


def _load(cur, where: str, value: Any) -> Optional[User]:
    cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE {where} = %s;", (value,))
    row = cur.fetchone()
    if not row:
        return None
    return user_from_row(row, _assigned_events(cur, row["user_id"]))


def get_user_by_id(cur, user_id: int) -> Optional[User]:
    return _load(cur, "user_id", user_id)


def get_user_by_email(cur, email: str) -> Optional[User]:
    return _load(cur, "email", email.strip().lower())


def get_user_by_username(cur, username: str) -> Optional[User]:
    return _load(cur, "username", username.strip().lower())


def find_taken_identity(cur, email: str, username: str) -> Optional[str]:
    """
    Return "email" or "username" if either is already registered, else None.
    """
    cur.execute(
        "SELECT email, username FROM users WHERE email = %s OR username = %s LIMIT 1;",
        (email, username),
    )
    row = cur.fetchone()
    if not row:
        return None
    return "email" if row["email"] == email else "username"


def create_user(
    cur,
    name: str,
    username: str,
    email: str,
    password_hash: str,
    college: Optional[str] = None,
    role: Role = Role.USER,
    is_approved: bool = True,
) -> User:
    """
    Insert a new user.

    Raises:
        psycopg2.errors.UniqueViolation: If email or username is taken.
    """
    cur.execute(
        f"""
        INSERT INTO users (name, username, email, password_hash, college, role, is_approved)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING {USER_COLUMNS};
        """,
        (name, username, email, password_hash, college, role.value, is_approved),
    )
    return user_from_row(cur.fetchone())


def set_refresh_token_hash(cur, user_id: int, token_hash: Optional[str]) -> None:
    """Overwrite (or clear, with None) the user's live refresh token digest."""
    cur.execute(
        "UPDATE users SET refresh_token_hash = %s WHERE user_id = %s;",
        (token_hash, user_id),
    )


def swap_refresh_token_hash(cur, user_id: int, expected_hash: str, new_hash: str) -> bool:
    """
    Replace the stored digest only if it still equals expected_hash.

    Returns:
        bool: True when the swap happened.
    """
    cur.execute(
        """
        UPDATE users SET refresh_token_hash = %s
        WHERE user_id = %s AND refresh_token_hash = %s
        RETURNING user_id;
        """,
        (new_hash, user_id, expected_hash),
    )
    return cur.fetchone() is not None


def list_users(cur) -> List[User]:
    cur.execute(f"SELECT {USER_COLUMNS} FROM users ORDER BY user_id ASC;")
    return [user_from_row(row) for row in cur.fetchall()]


def list_admins(cur, pending_only: bool = False) -> List[User]:
    sql = f"SELECT {USER_COLUMNS} FROM users WHERE role IN ('event_admin', 'superior_admin')"
    if pending_only:
        sql += " AND is_approved = FALSE"
    sql += " ORDER BY user_id ASC;"
    cur.execute(sql)
    rows = cur.fetchall()
    return [user_from_row(row, _assigned_events(cur, row["user_id"])) for row in rows]


def update_admin_fields(
    cur,
    user_id: int,
    role: Optional[Role] = None,
    is_approved: Optional[bool] = None,
    assigned_events: Optional[Iterable[int]] = None,
) -> Optional[User]:
    """
    Apply a superior admin's edit to a user record.

    assigned_events, when given, replaces the whole set.

    Returns:
        User: The updated record, or None if the user does not exist.
    """
    fields = []
    values: List[Any] = []
    if role is not None:
        fields.append("role = %s")
        values.append(role.value)
    if is_approved is not None:
        fields.append("is_approved = %s")
        values.append(is_approved)
    fields.append("updated_at = CURRENT_TIMESTAMP")

    cur.execute(
        f"UPDATE users SET {', '.join(fields)} WHERE user_id = %s RETURNING user_id;",
        values + [user_id],
    )
    if cur.fetchone() is None:
        return None

    if assigned_events is not None:
        cur.execute("DELETE FROM event_admin_assignments WHERE user_id = %s;", (user_id,))
        for event_id in sorted(set(assigned_events)):
            cur.execute(
                "INSERT INTO event_admin_assignments (user_id, event_id) VALUES (%s, %s);",
                (user_id, event_id),
            )

    return get_user_by_id(cur, user_id)
