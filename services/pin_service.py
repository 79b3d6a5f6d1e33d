from datetime import datetime
from typing import Callable

from models import db
from models.user import User
from security.lockout import is_locked, register_failure, reset_attempts
from security.phone import CALLING_CODES, mask_phone, normalize_phone
from security.pin import DEFAULT_PIN_ROUNDS, hash_pin, is_pin_shaped, validate_pin, verify_pin
from security.session_bridge import SessionBridge
from services.identity import IdentityResolver, LoginResult
from utils.audit import log_event
from utils.errors import InvalidPin, Locked, NotFound, PinNotSet, ValidationError


class PinSetService:
    """Sets the PIN of an already authenticated user; never keyed by phone."""

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow, rounds: int = DEFAULT_PIN_ROUNDS):
        self.clock = clock
        self.rounds = rounds

    def set_pin(self, user_id: str, pin) -> dict:
        pin = "" if pin is None else str(pin)
        valid, error = validate_pin(pin)
        if not valid:
            raise ValidationError(error, code="INVALID_PIN")

        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound("Account not found")

        now = self.clock()
        user.pin_hash = hash_pin(pin, rounds=self.rounds)
        user.pin_failed_attempts = 0
        user.pin_locked_until = None
        user.pin_updated_at = now
        user.updated_at = now
        db.session.commit()

        log_event("PIN_SET", user_id=user_id)
        return {"message": "PIN set successfully", "updatedAt": now.isoformat() + "Z"}


class PinVerifyService:
    """
    Unlocked -> Locked once failures reach `max_attempts`; Locked -> Unlocked
    when the lock expires. Time never resets the counter, only a correct PIN
    or a new PIN does, so the first failure after a lock expires locks again.
    """

    def __init__(self, identities: IdentityResolver, bridge: SessionBridge,
                 clock: Callable[[], datetime] = datetime.utcnow,
                 max_attempts: int = 5, lockout_minutes: int = 15):
        self.identities = identities
        self.bridge = bridge
        self.clock = clock
        self.max_attempts = max_attempts
        self.lockout_minutes = lockout_minutes

    def verify(self, phone, country, pin) -> LoginResult:
        if not isinstance(phone, str) or not phone.strip() or not country or pin in (None, ""):
            raise ValidationError("Phone, country, and PIN are required")
        country = str(country).strip().upper()
        if country not in CALLING_CODES:
            raise ValidationError("Unsupported country")
        pin = str(pin)
        if not is_pin_shaped(pin):
            raise ValidationError("PIN must be 4-6 digits", code="INVALID_PIN")

        formatted = normalize_phone(phone, country)
        user = self.identities.find(formatted)
        if user is None:
            raise NotFound()
        if not user.pin_hash:
            raise PinNotSet()

        now = self.clock()
        locked, locked_until = is_locked(user, now)
        if locked:
            # attempts while locked are free; counting them would let anyone extend the lock
            log_event("PIN_LOCKED_ATTEMPT", user_id=user.id)
            raise Locked(locked_until, attempts_remaining=0)

        if not verify_pin(pin, user.pin_hash):
            fail_count, locked_until = register_failure(user, now, self.max_attempts, self.lockout_minutes)
            remaining = max(0, self.max_attempts - fail_count)
            log_event("PIN_VERIFY_FAIL", user_id=user.id,
                      metadata={"fail_count": fail_count, "phone": mask_phone(formatted)})
            if locked_until:
                log_event("PIN_LOCKED", user_id=user.id, metadata={"locked_until": locked_until.isoformat()})
                raise Locked(locked_until, attempts_remaining=0)
            raise InvalidPin(remaining)

        reset_attempts(user, now)
        log_event("PIN_VERIFY_SUCCESS", user_id=user.id)

        session = self.bridge.open_session(user.id, formatted)
        return LoginResult(user=user, session=session)
