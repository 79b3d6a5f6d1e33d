import re

# ISO country -> calling code
CALLING_CODES = {
    "GH": "233",
    "NG": "234",
}
DEFAULT_CALLING_CODE = "234"

_NON_DIGIT = re.compile(r"\D")


def calling_code_for(country: str) -> str:
    return CALLING_CODES.get((country or "").strip().upper(), DEFAULT_CALLING_CODE)


def normalize_phone(raw, country: str) -> str:
    """
    Canonical E.164-shaped form of a locally entered number.
    Never raises; deliverability is the SMS provider's concern.
    """
    digits = _NON_DIGIT.sub("", raw if isinstance(raw, str) else "")
    code = calling_code_for(country)

    if digits.startswith(code):
        return "+" + digits
    if digits.startswith("0"):
        return "+" + code + digits[1:]
    return "+" + code + digits


def phone_digits(phone: str) -> str:
    return _NON_DIGIT.sub("", phone or "")


def mask_phone(phone: str) -> str:
    """+233241234567 -> +233*****4567, for logs."""
    if not phone or len(phone) <= 8:
        return "***"
    return phone[:4] + "*" * (len(phone) - 8) + phone[-4:]
