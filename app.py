from datetime import datetime

import click
from flask import Flask
from flask_migrate import Migrate

from config import Config, Environment
from models import db
from routes import health_bp, auth_bp
from security.cors import apply_cors_headers, preflight
from services import EXTENSION_KEY, build_services, get_services
from services.otp_store import purge_stale_codes
from utils.auth_context import load_current_user
from utils.errors import register_error_handlers

DEV_OTP_SECRET = "dev-only-otp-secret"


def create_app(config_object=Config, sms_gateway=None, auth_backend=None, clock=datetime.utcnow):
    app = Flask(__name__)
    app.config.from_object(config_object)

    environment = Environment.resolve(app.config.get("ENVIRONMENT"))
    if not app.config.get("OTP_SECRET"):
        if environment is Environment.PRODUCTION:
            raise RuntimeError("OTP_SECRET must be set in production")
        app.config["OTP_SECRET"] = DEV_OTP_SECRET

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    app.extensions[EXTENSION_KEY] = build_services(
        app.config,
        environment,
        sms_gateway=sms_gateway,
        auth_backend=auth_backend,
        clock=clock,
    )

    register_error_handlers(app)

    @app.before_request
    def _cors_preflight():
        return preflight()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        resp.headers["Cache-Control"] = "no-store"
        return apply_cors_headers(resp)

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("purge-expired-codes")
    def purge_expired_codes():
        """Delete expired one-time codes (storage hygiene only)."""
        deleted = purge_stale_codes(get_services().clock())
        click.echo(f"Deleted {deleted} expired code(s)")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
