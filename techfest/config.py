"""
Application configuration.
Reads the environment (and a local .env file) once at startup and freezes
the result into a Settings object that is handed to the app factory.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

DEVELOPMENT = "development"
PRODUCTION = "production"


@dataclass(frozen=True)
class Settings:
    """
    Immutable runtime configuration.

    Secrets and connection details are required; everything else has a
    default matching the festival's deployment.
    """

    database_url: str
    jwt_access_secret: str
    jwt_refresh_secret: str
    environment: str = PRODUCTION
    access_token_minutes: int = 15
    refresh_token_days: int = 7
    admin_upi_id: str = ""
    upi_merchant_name: str = "Techfest"
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("*",))
    log_level: str = "INFO"
    port: int = 5001

    def __post_init__(self) -> None:
        if not self.jwt_access_secret or not self.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must both be set")
        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        if not self.database_url:
            raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def refresh_cookie_max_age(self) -> int:
        """Refresh cookie lifetime in seconds."""
        return self.refresh_token_days * 24 * 60 * 60

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ (Mapping, optional): Source mapping. Defaults to os.environ
                after loading .env.

        Returns:
            Settings: The frozen configuration.

        Raises:
            RuntimeError: If a required variable is missing or malformed.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        origins = environ.get("CORS_ORIGINS", "*")

        try:
            return cls(
                database_url=environ.get("DATABASE_URL", ""),
                jwt_access_secret=environ.get("JWT_ACCESS_SECRET", ""),
                jwt_refresh_secret=environ.get("JWT_REFRESH_SECRET", ""),
                environment=environ.get("APP_ENV", PRODUCTION).strip().lower(),
                access_token_minutes=int(environ.get("ACCESS_TOKEN_MINUTES", 15)),
                refresh_token_days=int(environ.get("REFRESH_TOKEN_DAYS", 7)),
                admin_upi_id=environ.get("ADMIN_UPI_ID", ""),
                upi_merchant_name=environ.get("UPI_MERCHANT_NAME", "Techfest"),
                razorpay_key_id=environ.get("RAZORPAY_KEY_ID", ""),
                razorpay_key_secret=environ.get("RAZORPAY_KEY_SECRET", ""),
                cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
                log_level=environ.get("LOG_LEVEL", "INFO").upper(),
                port=int(environ.get("GATEWAY_PORT", 5001)),
            )
        except ValueError as e:
            raise RuntimeError(f"Invalid numeric configuration value: {e}") from e
