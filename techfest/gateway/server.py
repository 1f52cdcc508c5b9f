"""
API gateway: combines the auth, admin, events, registrations and payments
blueprints into one Flask app.
This is the local entrypoint for development.
"""

import logging
import traceback
from typing import Optional, Tuple

from flask import Flask, Response, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from techfest.auth_service.tokens import TokenService
from techfest.config import Settings
from techfest.errors import APIError
from techfest.payments_service.gateway import RazorpayGateway

logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    """
    Turn domain errors into structured JSON and log everything unexpected.
    """

    @app.errorhandler(APIError)
    def handle_api_error(error: APIError) -> Tuple[Response, int]:
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"error": error.description, "code": error.name.lower().replace(" ", "_")}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception) -> Tuple[Response, int]:
        logger.exception("Unhandled error")
        body = {"error": "Internal Server Error", "code": "internal_error"}
        if app.config["SETTINGS"].is_development:
            body["detail"] = str(error)
            body["trace"] = traceback.format_exception(type(error), error, error.__traceback__)
        return jsonify(body), 500


def create_app(settings: Optional[Settings] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        settings (Settings, optional): Configuration. Defaults to the
            environment (and .env).

    Returns:
        Flask: The configured Flask application.
    """
    settings = settings or Settings.from_env()

    # Basic console logging during API requests
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(levelname)s] %(asctime)s %(name)s - %(message)s",
    )

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.extensions["token_service"] = TokenService(settings)
    app.extensions["payment_gateway"] = RazorpayGateway(settings)

    CORS(app, resources={
        r"/api/*": {
            "origins": list(settings.cors_origins),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "x-auth-token", "Authorization"],
            "supports_credentials": True,
        }
    })

    app.url_map.strict_slashes = False

    # --- REGISTER BLUEPRINTS ---
    from techfest.admin_service.routes import admin_bp
    from techfest.auth_service.routes import auth_bp, users_bp
    from techfest.events_service.routes import events_bp
    from techfest.payments_service.routes import payments_bp
    from techfest.registrations_service.routes import registrations_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(admin_bp, url_prefix="/api/admins")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(registrations_bp, url_prefix="/api/registrations")
    app.register_blueprint(payments_bp, url_prefix="/api/payments")

    register_error_handlers(app)
    logger.info("All blueprints registered successfully (%s mode).", settings.environment)

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "Techfest API is running"}), 200

    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["SETTINGS"].port, debug=app.config["SETTINGS"].is_development)
