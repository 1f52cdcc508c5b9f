"""
Token service: short-lived access tokens and rotating refresh tokens.

Access tokens are stateless and carry only the user id. Refresh tokens are
the only revocable state: each user has at most one live refresh token,
stored as its SHA-256 digest, and every successful refresh replaces it.
"""

import hashlib
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional, Tuple

import jwt

from techfest.auth_service import users
from techfest.config import Settings
from techfest.database.db_connection import transaction
from techfest.errors import InvalidToken, Unauthenticated

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenService:
    """Issues, verifies, rotates and revokes tokens using injected settings."""

    def __init__(self, settings: Settings) -> None:
        self._access_secret = settings.jwt_access_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self._access_ttl = timedelta(minutes=settings.access_token_minutes)
        self._refresh_ttl = timedelta(days=settings.refresh_token_days)

    # --- ENCODING ---
    def _encode(self, user_id: int, kind: str) -> str:
        now = datetime.now(timezone.utc)
        ttl, secret = (self._access_ttl, self._access_secret) if kind == ACCESS else (
            self._refresh_ttl,
            self._refresh_secret,
        )
        payload = {
            "sub": str(user_id),
            "type": kind,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def _decode(self, token: str, kind: str) -> int:
        """
        Verify signature, expiry and token type.

        Raises:
            jwt.InvalidTokenError: For any signature, expiry or shape problem.
        """
        secret = self._access_secret if kind == ACCESS else self._refresh_secret
        payload = jwt.decode(
            token, secret, algorithms=[ALGORITHM], options={"require": ["exp", "sub"]}
        )
        if payload.get("type") != kind:
            raise jwt.InvalidTokenError(f"expected a {kind} token")
        try:
            return int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise jwt.InvalidTokenError("malformed subject") from e

    @staticmethod
    @contextmanager
    def _cursor(cur=None) -> Iterator:
        if cur is not None:
            yield cur
        else:
            with transaction() as own:
                yield own

    # --- PUBLIC OPERATIONS ---
    def issue_token_pair(self, user_id: int) -> Tuple[str, str]:
        """
        Create a new (access_token, refresh_token) pair for a user.

        The pair is not persisted; call persist_refresh_token to make the
        refresh token the user's live one.
        """
        return self._encode(user_id, ACCESS), self._encode(user_id, REFRESH)

    def persist_refresh_token(self, user_id: int, refresh_token: str, cur=None) -> None:
        """Make refresh_token the only valid refresh token for user_id."""
        with self._cursor(cur) as c:
            users.set_refresh_token_hash(c, user_id, token_digest(refresh_token))

    def rotate_refresh_token(self, presented: Optional[str]) -> Tuple[int, str, str]:
        """
        Exchange a live refresh token for a new pair.

        Returns:
            tuple: (user_id, access_token, refresh_token)

        Raises:
            InvalidToken: If the token is missing, fails verification, is
                expired, or is not the user's currently stored token.
        """
        if not presented:
            raise InvalidToken("Refresh token missing")
        try:
            user_id = self._decode(presented, REFRESH)
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Refresh token expired")
        except jwt.InvalidTokenError:
            raise InvalidToken("Refresh token is not valid")

        access_token, refresh_token = self.issue_token_pair(user_id)
        with transaction() as cur:
            swapped = users.swap_refresh_token_hash(
                cur, user_id, token_digest(presented), token_digest(refresh_token)
            )
        if not swapped:
            logger.warning("Rejected stale or revoked refresh token for user %s", user_id)
            raise InvalidToken("Refresh token has been revoked or already used")
        return user_id, access_token, refresh_token

    def revoke(self, user_id: int, cur=None) -> None:
        """Clear the user's stored refresh token (logout)."""
        with self._cursor(cur) as c:
            users.set_refresh_token_hash(c, user_id, None)

    def verify_access(self, token: Optional[str]) -> int:
        """
        Decode an access token into the principal's user id.

        Raises:
            Unauthenticated: If the token is missing, malformed or expired.
        """
        if not token:
            raise Unauthenticated()
        try:
            return self._decode(token, ACCESS)
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except jwt.InvalidTokenError:
            raise Unauthenticated("Token is not valid")
