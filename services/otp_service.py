import logging
from datetime import datetime
from typing import Callable

from config import Environment
from models.pending_code import OTP_PURPOSES
from security.otp import generate_code, hash_code, is_valid_code_format
from security.phone import CALLING_CODES, mask_phone, normalize_phone
from security.rate_limit import otp_cooldown_remaining
from security.session_bridge import SessionBridge
from services.identity import IdentityResolver, LoginResult
from services.otp_store import consume_pending_code, store_pending_code
from utils.audit import log_event
from utils.errors import InvalidOrExpired, RateLimited, UpstreamFailure, ValidationError
from utils.sms import SmsGateway

logger = logging.getLogger(__name__)


def _require_phone_and_country(phone, country):
    if not isinstance(phone, str) or not phone.strip() or not isinstance(country, str) or not country.strip():
        return None
    country = country.strip().upper()
    if country not in CALLING_CODES:
        raise ValidationError("Unsupported country")
    return country


def _check_purpose(purpose) -> str:
    if purpose not in OTP_PURPOSES:
        raise ValidationError("Invalid purpose")
    return purpose


class OtpIssuanceService:
    """
    Generates a code, stores its hash and texts it.

    In Environment.DEVELOPMENT the SMS dispatch and the cooldown are skipped
    and the code is returned to the caller as `devOTP`. The code is still
    stored, so verification behaves the same in every environment.
    """

    def __init__(self, gateway: SmsGateway, otp_secret: str, environment: Environment,
                 clock: Callable[[], datetime] = datetime.utcnow, ttl_seconds: int = 300,
                 rider_ttl_seconds: int = 600, cooldown_seconds: int = 60, app_name: str = "WarehousePOS"):
        if not otp_secret:
            raise ValueError("OTP secret is required")
        self.gateway = gateway
        self.otp_secret = otp_secret
        self.environment = Environment.resolve(environment)
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.rider_ttl_seconds = rider_ttl_seconds
        self.cooldown_seconds = cooldown_seconds
        self.app_name = app_name

    @property
    def dev_mode(self) -> bool:
        return self.environment is Environment.DEVELOPMENT

    def _ttl_for(self, purpose: str) -> int:
        return self.rider_ttl_seconds if purpose == "rider_login" else self.ttl_seconds

    def _message(self, code: str, purpose: str) -> str:
        minutes = self._ttl_for(purpose) // 60
        label = "rider login code" if purpose == "rider_login" else "verification code"
        return f"Your {self.app_name} {label} is: {code}. Valid for {minutes} minutes."

    def issue(self, phone, country, purpose="login") -> dict:
        country = _require_phone_and_country(phone, country)
        if country is None:
            raise ValidationError("Phone and country are required")
        purpose = _check_purpose(purpose)

        formatted = normalize_phone(phone, country)
        now = self.clock()

        if not self.dev_mode:
            wait = otp_cooldown_remaining(formatted, now, self.cooldown_seconds)
            if wait:
                log_event("OTP_RATE_LIMITED", metadata={"phone": mask_phone(formatted), "retry_after": wait})
                raise RateLimited(wait)

        code = generate_code()
        store_pending_code(formatted, purpose, hash_code(code, self.otp_secret), now, self._ttl_for(purpose))

        if self.dev_mode:
            logger.info("[DEV] OTP for %s: %s", mask_phone(formatted), code)
            return {"message": f"Verification code sent to {formatted}", "devOTP": code}

        if not self.gateway.send(formatted, self._message(code, purpose), country):
            # row stays; it expires or is superseded by the retry
            log_event("OTP_SEND_FAILED", metadata={"phone": mask_phone(formatted), "country": country})
            raise UpstreamFailure("Failed to send SMS. Please try again.")

        log_event("OTP_SENT", metadata={"phone": mask_phone(formatted), "purpose": purpose})
        return {"message": f"Verification code sent to {formatted}"}


class OtpVerificationService:
    def __init__(self, otp_secret: str, identities: IdentityResolver, bridge: SessionBridge,
                 clock: Callable[[], datetime] = datetime.utcnow):
        if not otp_secret:
            raise ValueError("OTP secret is required")
        self.otp_secret = otp_secret
        self.identities = identities
        self.bridge = bridge
        self.clock = clock

    def verify(self, phone, country, code, purpose="login") -> LoginResult:
        country = _require_phone_and_country(phone, country)
        if country is None or not code:
            raise ValidationError("Phone, country, and OTP are required")
        purpose = _check_purpose(purpose)
        if not is_valid_code_format(code):
            raise ValidationError("Invalid OTP format - must be 6 digits")

        formatted = normalize_phone(phone, country)
        now = self.clock()

        # wrong, expired and replayed codes are indistinguishable to the caller
        if not consume_pending_code(formatted, purpose, hash_code(code, self.otp_secret), now):
            log_event("OTP_VERIFY_FAIL", metadata={"phone": mask_phone(formatted), "purpose": purpose})
            raise InvalidOrExpired()

        user, created = self.identities.find_or_create(formatted, country)
        log_event("OTP_VERIFIED", user_id=user.id, metadata={"purpose": purpose, "new_user": created})

        session = self.bridge.open_session(user.id, formatted)
        return LoginResult(user=user, session=session, is_new_user=created)
