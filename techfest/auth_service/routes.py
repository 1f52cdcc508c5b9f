"""
Authentication service route handlers.

Provides routes for:
- Signup (participant or event-admin applicant)
- Login
- Refresh-token rotation
- Logout
- Profile retrieval (/me)
- Username lookup for building teams

Token issuing and verification is delegated to `auth_service.tokens`.
"""

import logging
import re
from typing import Any, Dict, Tuple

import psycopg2.errors
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import Blueprint, Response, g, jsonify, make_response, request

from techfest.auth_service import users
from techfest.auth_service.access import Capability
from techfest.auth_service.users import Role
from techfest.auth_service.utils import (
    REFRESH_COOKIE,
    get_settings,
    get_token_service,
    read_json_body,
    require_capability,
    string_field,
)
from techfest.database.db_connection import transaction
from techfest.errors import DuplicateIdentity, InvalidCredentials, NotFound, ValidationError

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
users_bp = Blueprint("users", __name__)
ph = PasswordHasher()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[a-z0-9_]{3,40}$")
PASSWORD_MIN_LENGTH = 6
SIGNUP_ROLES = (Role.USER.value, Role.EVENT_ADMIN.value)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    Headers are not logged since they carry tokens.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- COOKIE HELPERS ---
def _set_refresh_cookie(response: Response, refresh_token: str) -> Response:
    settings = get_settings()
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=settings.refresh_cookie_max_age,
        httponly=True,
        samesite="Strict",
        secure=not settings.is_development,
        path="/api/auth",
    )
    return response


def _clear_refresh_cookie(response: Response) -> Response:
    response.delete_cookie(REFRESH_COOKIE, path="/api/auth", samesite="Strict")
    return response


def _token_response(body: Dict[str, Any], refresh_token: str, status: int) -> Tuple[Response, int]:
    response = make_response(jsonify(body), status)
    return _set_refresh_cookie(response, refresh_token), status


# --- SIGNUP ---
@auth_bp.route("/signup", methods=["POST"])
def signup() -> Tuple[Response, int]:
    """
    Register a new account and log it in.

    Expects a JSON body with:
    - name (str)
    - username (str): 3-40 chars, letters, digits, underscore.
    - email (str)
    - password (str): Minimum 6 characters.
    - college (str, optional)
    - role (str, optional): "user" (default) or "event_admin". Event-admin
      applicants start unapproved until a superior admin approves them.

    Returns:
        201: JSON with token and user; refresh cookie set.
        400: Invalid input or duplicate email/username.
    """
    data = read_json_body()
    name = string_field(data, "name")
    username = string_field(data, "username").lower()
    email = string_field(data, "email").lower()
    college = string_field(data, "college") or None
    requested_role = string_field(data, "role") or Role.USER.value
    password = data.get("password") or ""
    if not isinstance(password, str):
        raise ValidationError("password must be a string")

    # --- START VALIDATION ---
    if not name or not username or not email or not password:
        raise ValidationError("name, username, email and password are required")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    if not USERNAME_RE.match(username):
        raise ValidationError("Username must be 3-40 letters, digits or underscores")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if requested_role not in SIGNUP_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(SIGNUP_ROLES)}")
    # --- END VALIDATION ---

    role = Role(requested_role)
    password_hash = ph.hash(password)
    tokens = get_token_service()

    try:
        with transaction() as cur:
            taken = users.find_taken_identity(cur, email, username)
            if taken:
                raise DuplicateIdentity(f"User with this {taken} already exists")
            user = users.create_user(
                cur,
                name=name,
                username=username,
                email=email,
                password_hash=password_hash,
                college=college,
                role=role,
                is_approved=role is Role.USER,
            )
            access_token, refresh_token = tokens.issue_token_pair(user.user_id)
            tokens.persist_refresh_token(user.user_id, refresh_token, cur=cur)
    except psycopg2.errors.UniqueViolation:
        raise DuplicateIdentity()

    logger.info("New %s account %s (%s)", role.value, user.user_id, email)
    return _token_response({"token": access_token, "user": user.to_public()}, refresh_token, 201)


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a fresh token pair.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with token and user; refresh cookie set.
        400: Invalid credentials (unknown email or wrong password).
    """
    data = read_json_body()
    email = data.get("email")
    password = data.get("password")

    if not isinstance(email, str) or not isinstance(password, str):
        raise InvalidCredentials()
    email = email.strip().lower()

    if not email or not password:
        raise InvalidCredentials()

    tokens = get_token_service()
    with transaction() as cur:
        user = users.get_user_by_email(cur, email)
        if not user:
            raise InvalidCredentials()
        try:
            ph.verify(user.password_hash, password)
        except (VerificationError, InvalidHashError):
            raise InvalidCredentials()

        access_token, refresh_token = tokens.issue_token_pair(user.user_id)
        tokens.persist_refresh_token(user.user_id, refresh_token, cur=cur)

    return _token_response({"token": access_token, "user": user.to_public()}, refresh_token, 200)


# --- REFRESH ---
@auth_bp.route("/refresh-token", methods=["POST"])
def refresh_token() -> Tuple[Response, int]:
    """
    Rotate the refresh token held in the HttpOnly cookie.

    Returns:
        200: JSON with a new access token; rotated cookie set.
        401: Cookie missing, expired, or not the user's live token.
    """
    presented = request.cookies.get(REFRESH_COOKIE)
    _, access_token, new_refresh = get_token_service().rotate_refresh_token(presented)
    return _token_response({"token": access_token}, new_refresh, 200)


# --- LOGOUT ---
@auth_bp.route("/logout", methods=["POST"])
@require_capability(Capability.AUTHENTICATED)
def logout() -> Tuple[Response, int]:
    """
    Revoke the caller's refresh token and clear the cookie.
    """
    get_token_service().revoke(g.current_user.user_id)
    response = make_response(jsonify({"message": "Logged out"}), 200)
    return _clear_refresh_cookie(response), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
@require_capability(Capability.AUTHENTICATED)
def get_current_user() -> Tuple[Response, int]:
    """
    Return the caller's profile as currently stored.
    """
    return jsonify(g.current_user.to_public()), 200


# --- FIND USER BY USERNAME ---
@users_bp.route("/find/<username>", methods=["GET"])
@require_capability(Capability.AUTHENTICATED)
def find_user(username: str) -> Tuple[Response, int]:
    """
    Look up a participant by username, used when adding team members.

    Returns:
        200: {id, name, username}
        404: No such user.
    """
    with transaction() as cur:
        user = users.get_user_by_username(cur, username)
    if not user:
        raise NotFound("User not found")
    return jsonify({"id": user.user_id, "name": user.name, "username": user.username}), 200
