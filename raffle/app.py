from __future__ import annotations

from flask import Flask, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from .config import load_settings
from .errors import RaffleError
from .routes.admin import bp as admin_bp
from .routes.config import bp as config_bp
from .routes.health import bp as health_bp
from .routes.raffle import bp as raffle_bp


def create_app() -> Flask:
    settings = load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key

    app.register_blueprint(health_bp)
    app.register_blueprint(raffle_bp, url_prefix="/raffle")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")
    app.register_blueprint(config_bp)

    @app.errorhandler(RaffleError)
    def handle_raffle_error(exc: RaffleError):
        if exc.http_status >= 500:
            app.logger.error("Raffle operation failed: %s", exc)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        details = exc.errors(include_url=False, include_context=False)
        return jsonify({"error": "invalid_request", "details": details}), 400

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app
