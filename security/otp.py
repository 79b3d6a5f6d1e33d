import hashlib
import hmac
import re
import secrets

CODE_LENGTH = 6
_CODE_RE = re.compile(r"[0-9]{6}")


def generate_code() -> str:
    # leading zeros are allowed
    return str(secrets.randbelow(10 ** CODE_LENGTH)).zfill(CODE_LENGTH)


def hash_code(code: str, secret: str) -> str:
    """
    Keyed, deterministic digest of an OTP. Verification recomputes it and
    matches by equality, so the secret is what prevents forgery.
    """
    if not secret:
        raise ValueError("OTP secret is not configured")
    return hmac.new(secret.encode("utf-8"), code.encode("utf-8"), hashlib.sha256).hexdigest()


def is_valid_code_format(code) -> bool:
    return isinstance(code, str) and _CODE_RE.fullmatch(code) is not None
