"""
Operational commands for the Techfest database.

Usage:
    python -m techfest.database.manage init-db
    python -m techfest.database.manage seed
    python -m techfest.database.manage promote <email>
    python -m techfest.database.manage list-users
    python -m techfest.database.manage check-user <email>
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from techfest.auth_service import users
from techfest.auth_service.users import Role
from techfest.config import Settings
from techfest.database.db_connection import transaction
from techfest.events_service import store as event_store


SCHEMA_PATH = Path(__file__).with_name("schema.sql")

SEED_EVENTS = [
    {
        "title": "Hack-O-Rama 2026",
        "description": "A 24-hour national level hackathon where innovation meets execution. "
                       "Build real-world solutions for real-world problems.",
        "fee": 499,
        "date": datetime(2026, 3, 15, tzinfo=timezone.utc),
        "venue": "Main Audi",
        "category": "Technical",
        "event_type": "team",
        "max_team_size": 4,
        "max_participants": 100,
    },
    {
        "title": "Code Gladiators",
        "description": "Competitive programming contest to test your data structures and "
                       "algorithms skills against the best.",
        "fee": 199,
        "date": datetime(2026, 3, 16, tzinfo=timezone.utc),
        "venue": "CS Lab 1",
        "category": "Technical",
        "event_type": "individual",
        "max_team_size": 1,
        "max_participants": 150,
    },
    {
        "title": "Robo-Wars",
        "description": "The ultimate battle of steel and circuits. Design your bot and dominate the arena.",
        "fee": 599,
        "date": datetime(2026, 3, 17, tzinfo=timezone.utc),
        "venue": "Robotics Arena",
        "category": "Technical",
        "event_type": "team",
        "max_team_size": 5,
        "max_participants": 40,
    },
    {
        "title": "UI/UX Design Sprint",
        "description": "Showcase your design thinking and create stunning user experiences "
                       "for modern applications.",
        "fee": 299,
        "date": datetime(2026, 3, 18, tzinfo=timezone.utc),
        "venue": "Design Studio",
        "category": "Creative",
        "event_type": "individual",
        "max_team_size": 1,
        "max_participants": 0,
    },
]


def init_db(dsn: str) -> None:
    """Apply schema.sql; every statement is idempotent."""
    with transaction(dsn) as cur:
        cur.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
    print("Schema applied.")


def seed(dsn: str) -> None:
    """Replace all events (and therefore their registrations) with the seed catalogue."""
    with transaction(dsn) as cur:
        cur.execute("SELECT event_id FROM events;")
        for row in cur.fetchall():
            event_store.delete_event(cur, row["event_id"])
        for event in SEED_EVENTS:
            event_store.create_event(cur, event)
    print(f"Seeded {len(SEED_EVENTS)} events successfully!")


def promote(dsn: str, email: str) -> int:
    with transaction(dsn) as cur:
        user = users.get_user_by_email(cur, email)
        if not user:
            print("User not found. Please sign up first.")
            return 1
        users.update_admin_fields(cur, user.user_id, role=Role.SUPERIOR_ADMIN, is_approved=True)
    print(f"User {email} promoted to superior_admin!")
    return 0


def list_users(dsn: str) -> None:
    with transaction(dsn) as cur:
        rows = users.list_users(cur)
    print("System Users Summary:")
    for u in rows:
        print(f"- Email: {u.email}, Username: {u.username}, Role: {u.role.value}, Approved: {u.is_approved}")


def check_user(dsn: str, email: str) -> int:
    with transaction(dsn) as cur:
        user = users.get_user_by_email(cur, email)
    if not user:
        print("User not found")
        return 1
    print("User found:", user.to_public())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="techfest.database.manage", description=__doc__.split("\n\n")[0])
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="apply schema.sql")
    sub.add_parser("seed", help="replace events with the seed catalogue")
    promote_cmd = sub.add_parser("promote", help="make a user a superior admin")
    promote_cmd.add_argument("email")
    sub.add_parser("list-users", help="print every user")
    check_cmd = sub.add_parser("check-user", help="print one user")
    check_cmd.add_argument("email")
    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    dsn = (settings or Settings.from_env()).database_url

    if args.command == "init-db":
        init_db(dsn)
    elif args.command == "seed":
        seed(dsn)
    elif args.command == "promote":
        return promote(dsn, args.email)
    elif args.command == "list-users":
        list_users(dsn)
    elif args.command == "check-user":
        return check_user(dsn, args.email)
    return 0


if __name__ == "__main__":
    sys.exit(main())
