from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from config import Environment
from security.auth_backend import AuthBackend, LocalAuthBackend
from security.session_bridge import SessionBridge
from services.identity import IdentityResolver, LoginResult
from services.otp_service import OtpIssuanceService, OtpVerificationService
from services.pin_service import PinSetService, PinVerifyService
from utils.sms import SmsGateway

EXTENSION_KEY = "phone_auth"


@dataclass
class AuthServices:
    environment: Environment
    auth_backend: AuthBackend
    sms_gateway: SmsGateway
    identities: IdentityResolver
    bridge: SessionBridge
    otp_issuance: OtpIssuanceService
    otp_verification: OtpVerificationService
    pin_set: PinSetService
    pin_verify: PinVerifyService
    clock: object = datetime.utcnow


def _default_auth_backend(config, clock) -> AuthBackend:
    name = (config.get("AUTH_BACKEND") or "local").lower()
    if name == "supabase":
        from security.supabase_backend import SupabaseAuthBackend
        return SupabaseAuthBackend.from_config(config)
    if name != "local":
        raise ValueError(f"Unknown AUTH_BACKEND: {name}")
    return LocalAuthBackend.from_config(config, clock=clock)


def build_services(config, environment: Environment, sms_gateway=None, auth_backend=None,
                   clock=datetime.utcnow) -> AuthServices:
    """Wire the phone/PIN flows. Everything is passed in, nothing is global."""
    sms_gateway = sms_gateway or SmsGateway.from_config(config)
    auth_backend = auth_backend or _default_auth_backend(config, clock)
    otp_secret = config.get("OTP_SECRET")

    identities = IdentityResolver(auth_backend)
    bridge = SessionBridge(auth_backend, config.get("SYNTHETIC_EMAIL_DOMAIN", "phone.auth.internal"))

    return AuthServices(
        environment=environment,
        auth_backend=auth_backend,
        sms_gateway=sms_gateway,
        identities=identities,
        bridge=bridge,
        otp_issuance=OtpIssuanceService(
            sms_gateway,
            otp_secret,
            environment,
            clock=clock,
            ttl_seconds=config.get("OTP_TTL_SECONDS", 300),
            rider_ttl_seconds=config.get("RIDER_OTP_TTL_SECONDS", 600),
            cooldown_seconds=config.get("OTP_COOLDOWN_SECONDS", 60),
            app_name=config.get("APP_NAME", "WarehousePOS"),
        ),
        otp_verification=OtpVerificationService(otp_secret, identities, bridge, clock=clock),
        pin_set=PinSetService(clock=clock, rounds=config.get("PIN_BCRYPT_ROUNDS", 12)),
        pin_verify=PinVerifyService(
            identities,
            bridge,
            clock=clock,
            max_attempts=config.get("PIN_MAX_ATTEMPTS", 5),
            lockout_minutes=config.get("PIN_LOCKOUT_MINUTES", 15),
        ),
        clock=clock,
    )


def get_services() -> AuthServices:
    return current_app.extensions[EXTENSION_KEY]
