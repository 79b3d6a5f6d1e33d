import os
from enum import Enum

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Environment(str, Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"

    @classmethod
    def resolve(cls, value) -> "Environment":
        """Unknown or empty values resolve to PRODUCTION."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.PRODUCTION


def _csv(value: str) -> list:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    OTP_SECRET = os.getenv("OTP_SECRET")

    # production unless explicitly told otherwise
    ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "phoneauth.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_NAME = os.getenv("APP_NAME", "WarehousePOS")

    # OTP
    OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "300"))  # 5 minutes
    RIDER_OTP_TTL_SECONDS = int(os.getenv("RIDER_OTP_TTL_SECONDS", "600"))
    OTP_COOLDOWN_SECONDS = int(os.getenv("OTP_COOLDOWN_SECONDS", "60"))

    # PIN brute-force protection
    PIN_MAX_ATTEMPTS = int(os.getenv("PIN_MAX_ATTEMPTS", "5"))
    PIN_LOCKOUT_MINUTES = int(os.getenv("PIN_LOCKOUT_MINUTES", "15"))
    PIN_BCRYPT_ROUNDS = int(os.getenv("PIN_BCRYPT_ROUNDS", "12"))

    # Per-IP fixed window on the verify endpoints
    VERIFY_RATE_WINDOW_SECONDS = int(os.getenv("VERIFY_RATE_WINDOW_SECONDS", "60"))
    VERIFY_RATE_MAX_REQUESTS = int(os.getenv("VERIFY_RATE_MAX_REQUESTS", "20"))

    # Sessions issued by the local auth backend
    AUTH_BACKEND = os.getenv("AUTH_BACKEND", "local")
    SESSION_LIFETIME_SECONDS = int(os.getenv("SESSION_LIFETIME_SECONDS", "3600"))
    REFRESH_LIFETIME_SECONDS = int(os.getenv("REFRESH_LIFETIME_SECONDS", str(30 * 24 * 60 * 60)))
    AUTH_PASSWORD_ROUNDS = int(os.getenv("AUTH_PASSWORD_ROUNDS", "10"))

    # Reserved domain for synthetic credentials; must never be a routable one
    SYNTHETIC_EMAIL_DOMAIN = os.getenv("SYNTHETIC_EMAIL_DOMAIN", "phone.auth.internal")

    # Supabase (AUTH_BACKEND=supabase)
    SUPABASE_URL = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # SMS providers
    MNOTIFY_API_KEY = os.getenv("MNOTIFY_API_KEY")
    MNOTIFY_SENDER_ID = os.getenv("MNOTIFY_SENDER_ID", "WarehousePOS")
    TERMII_API_KEY = os.getenv("TERMII_API_KEY")
    TERMII_SENDER_ID = os.getenv("TERMII_SENDER_ID", "WarehousePOS")
    SMS_TIMEOUT_SECONDS = float(os.getenv("SMS_TIMEOUT_SECONDS", "20"))

    CORS_ALLOWED_ORIGINS = _csv(os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://localhost:3000,"
        "https://app.warehousepos.com,https://pos.warehousepos.com,"
        "https://portal.warehousepos.com",
    ))

    DEBUG = False
