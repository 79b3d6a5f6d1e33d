from __future__ import annotations

import pytest

from security.phone import mask_phone, normalize_phone, phone_digits


@pytest.mark.parametrize(
    "raw",
    ["0241234567", "241234567", "233241234567", "+233241234567", "024-123 4567", "(024) 123-4567"],
)
def test_ghana_inputs_share_one_canonical_form(raw: str) -> None:
    assert normalize_phone(raw, "GH") == "+233241234567"


def test_nigeria_local_number_gets_234_prefix() -> None:
    assert normalize_phone("08012345678", "NG") == "+2348012345678"
    assert normalize_phone("8012345678", "ng") == "+2348012345678"


def test_normalization_is_idempotent() -> None:
    once = normalize_phone("0551234567", "GH")
    assert normalize_phone(once, "GH") == once


def test_only_one_leading_zero_is_stripped() -> None:
    assert normalize_phone("00241234567", "GH") == "+2330241234567"


def test_malformed_input_never_raises() -> None:
    assert normalize_phone("abc", "GH") == "+233"
    assert normalize_phone(None, "GH") == "+233"
    assert normalize_phone("0241234567", "ZZ").startswith("+")


def test_phone_digits_and_masking() -> None:
    assert phone_digits("+233241234567") == "233241234567"
    masked = mask_phone("+233241234567")
    assert masked.startswith("+233")
    assert masked.endswith("4567")
    assert "1234567" not in masked
    assert mask_phone("") == "***"
