import re
from typing import Optional, Tuple

from security.hashing import bcrypt_hash, bcrypt_verify

# ASCII digits only; \d would also take other scripts' digits
_PIN_SHAPE = re.compile(r"[0-9]{4,6}")
_REPEATED = re.compile(r"([0-9])\1+")
_ASCENDING_RUNS = tuple("0123456789"[i:i + 4] for i in range(7))  # 0123 .. 6789

DEFAULT_PIN_ROUNDS = 12


def is_pin_shaped(pin) -> bool:
    return isinstance(pin, str) and _PIN_SHAPE.fullmatch(pin) is not None


def validate_pin(pin) -> Tuple[bool, Optional[str]]:
    """Set-time policy: 4-6 digits, not sequential, not one repeated digit."""
    if not is_pin_shaped(pin):
        return False, "PIN must be 4-6 digits"
    if pin.startswith(_ASCENDING_RUNS):
        return False, "PIN cannot be sequential numbers"
    if _REPEATED.fullmatch(pin):
        return False, "PIN cannot be the same digit repeated"
    return True, None


def hash_pin(pin: str, rounds: int = DEFAULT_PIN_ROUNDS) -> str:
    return bcrypt_hash(pin, rounds=rounds)


def verify_pin(pin: str, pin_hash: str) -> bool:
    return bcrypt_verify(pin, pin_hash)
