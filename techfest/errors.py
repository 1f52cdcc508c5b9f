"""
Domain error taxonomy.

Every error a route can surface to a client is an APIError subclass; the
gateway turns them into JSON responses. Anything else is a server fault.
"""

from typing import Any, Dict, Optional


class APIError(Exception):
    status_code = 400
    code = "bad_request"
    message = "Bad request"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class Unauthenticated(APIError):
    status_code = 401
    code = "unauthenticated"
    message = "No token, authorization denied"


class InvalidToken(APIError):
    status_code = 401
    code = "invalid_token"
    message = "Refresh token is invalid or expired"


class Forbidden(APIError):
    status_code = 403
    code = "forbidden"
    message = "Access denied"


class NotFound(APIError):
    status_code = 404
    code = "not_found"
    message = "Resource not found"


class ValidationError(APIError):
    code = "validation_error"
    message = "Invalid input"


class DuplicateIdentity(APIError):
    code = "duplicate_identity"
    message = "User already exists"


class InvalidCredentials(APIError):
    code = "invalid_credentials"
    message = "Invalid Credentials"


class AlreadyRegistered(APIError):
    code = "already_registered"
    message = "A participant is already registered for this event"


class TeamSizeExceeded(APIError):
    code = "team_size_exceeded"
    message = "Team size exceeds the maximum allowed for this event"


class CapacityReached(APIError):
    code = "capacity_reached"
    message = "Event has reached its maximum number of participants"


class PaymentVerificationFailed(APIError):
    code = "payment_verification_failed"
    message = "Payment verification failed"


class PaymentGatewayError(APIError):
    status_code = 502
    code = "payment_gateway_error"
    message = "Payment gateway request failed"
