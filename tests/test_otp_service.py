from __future__ import annotations

import pytest

from config import Environment
from models import PendingCode, PhoneIdentity
from services.otp_service import OtpIssuanceService
from services.otp_store import consume_pending_code, purge_stale_codes
from utils.errors import InvalidOrExpired, RateLimited, UpstreamFailure, ValidationError

from tests.conftest import other_code

PHONE = "0241234567"
CANONICAL = "+233241234567"


def test_issue_then_verify_creates_identity_and_session(services, gateway) -> None:
    result = services.otp_issuance.issue(PHONE, "GH")
    assert result == {"message": f"Verification code sent to {CANONICAL}"}
    assert gateway.sent[0][0] == CANONICAL
    assert gateway.sent[0][2] == "GH"
    assert "Valid for 5 minutes" in gateway.sent[0][1]

    login = services.otp_verification.verify(PHONE, "GH", gateway.last_code())

    assert login.is_new_user is True
    assert login.needs_profile_setup is True
    assert login.user.phone == CANONICAL
    assert login.session.access_token
    assert login.session.refresh_token
    assert PhoneIdentity.query.filter_by(phone=CANONICAL).one().user_id == login.user.id


def test_raw_code_is_never_stored(services, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    row = PendingCode.query.one()
    assert gateway.last_code() not in row.code_hash
    assert row.verified_at is None


def test_second_issue_within_cooldown_is_rate_limited(services, clock) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    clock.advance(seconds=20)

    with pytest.raises(RateLimited) as exc:
        services.otp_issuance.issue(PHONE, "GH")

    assert exc.value.details["retryAfterSeconds"] == 40
    assert exc.value.status_code == 429


def test_cooldown_applies_across_purposes(services, clock) -> None:
    services.otp_issuance.issue(PHONE, "GH", "login")
    clock.advance(seconds=1)

    with pytest.raises(RateLimited) as exc:
        services.otp_issuance.issue(PHONE, "GH", "registration")

    assert 0 < exc.value.details["retryAfterSeconds"] <= 60


def test_issue_allowed_again_after_cooldown(services, clock, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    clock.advance(seconds=61)
    services.otp_issuance.issue(PHONE, "GH")
    assert len(gateway.sent) == 2
    assert PendingCode.query.count() == 1


def test_only_the_latest_code_verifies(services, clock, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    first = gateway.last_code()
    clock.advance(seconds=61)
    services.otp_issuance.issue(PHONE, "GH")
    second = gateway.last_code()

    if first != second:
        with pytest.raises(InvalidOrExpired):
            services.otp_verification.verify(PHONE, "GH", first)
    assert services.otp_verification.verify(PHONE, "GH", second).session


def test_wrong_code_is_rejected(services, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    with pytest.raises(InvalidOrExpired):
        services.otp_verification.verify(PHONE, "GH", other_code(gateway.last_code()))


def test_replay_is_rejected(services, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    code = gateway.last_code()

    services.otp_verification.verify(PHONE, "GH", code)
    with pytest.raises(InvalidOrExpired) as exc:
        services.otp_verification.verify(PHONE, "GH", code)

    assert exc.value.message == "Invalid or expired verification code"


def test_expired_code_is_rejected(services, clock, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    clock.advance(minutes=5, seconds=1)

    with pytest.raises(InvalidOrExpired):
        services.otp_verification.verify(PHONE, "GH", gateway.last_code())


def test_code_is_bound_to_its_purpose(services, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH", "registration")
    with pytest.raises(InvalidOrExpired):
        services.otp_verification.verify(PHONE, "GH", gateway.last_code(), "login")
    assert services.otp_verification.verify(PHONE, "GH", gateway.last_code(), "registration")


def test_rider_codes_live_ten_minutes(services, clock, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH", "rider_login")
    assert "rider login code" in gateway.sent[0][1]
    clock.advance(minutes=9)
    assert services.otp_verification.verify(PHONE, "GH", gateway.last_code(), "rider_login").session


def test_gateway_failure_is_upstream_failure_and_keeps_row(services, gateway) -> None:
    gateway.ok = False
    with pytest.raises(UpstreamFailure) as exc:
        services.otp_issuance.issue(PHONE, "GH")

    assert exc.value.status_code == 500
    assert "Failed to send SMS" in exc.value.message
    assert PendingCode.query.count() == 1


def test_returning_phone_reuses_identity(services, clock, gateway) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    first = services.otp_verification.verify(PHONE, "GH", gateway.last_code())
    clock.advance(seconds=61)
    services.otp_issuance.issue("+233 24 123 4567", "GH")
    second = services.otp_verification.verify("+233 24 123 4567", "GH", gateway.last_code())

    assert second.is_new_user is False
    assert second.user.id == first.user.id
    assert PhoneIdentity.query.count() == 1


@pytest.mark.parametrize(
    "phone, country, purpose",
    [("", "GH", "login"), (PHONE, "", "login"), (None, None, "login"), (PHONE, "GH", "admin"), (PHONE, "KE", "login")],
)
def test_issue_validation(services, gateway, phone, country, purpose) -> None:
    with pytest.raises(ValidationError):
        services.otp_issuance.issue(phone, country, purpose)
    assert gateway.sent == []


@pytest.mark.parametrize("code", ["12345", "abcdef", "1234567", None])
def test_malformed_code_is_rejected_before_storage(services, code) -> None:
    with pytest.raises(ValidationError):
        services.otp_verification.verify(PHONE, "GH", code)


def test_consume_succeeds_once(services, gateway, clock) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    row = PendingCode.query.one()

    assert consume_pending_code(CANONICAL, "login", row.code_hash, clock()) is True
    assert consume_pending_code(CANONICAL, "login", row.code_hash, clock()) is False


def test_purge_removes_only_expired_codes(services, clock) -> None:
    services.otp_issuance.issue(PHONE, "GH")
    services.otp_issuance.issue("0551234567", "GH")
    assert purge_stale_codes(clock()) == 0

    clock.advance(minutes=6)
    assert purge_stale_codes(clock()) == 2
    assert PendingCode.query.count() == 0


def test_development_mode_returns_code_without_sms(app, gateway, clock) -> None:
    service = OtpIssuanceService(gateway, "test-otp-secret", Environment.DEVELOPMENT, clock=clock)

    first = service.issue(PHONE, "GH")
    second = service.issue(PHONE, "GH")

    assert gateway.sent == []
    assert len(first["devOTP"]) == 6
    assert second["devOTP"]
    assert PendingCode.query.count() == 1


def test_production_never_exposes_the_code(app, gateway, clock) -> None:
    service = OtpIssuanceService(gateway, "test-otp-secret", Environment.PRODUCTION, clock=clock)
    assert service.dev_mode is False
    assert "devOTP" not in service.issue(PHONE, "GH")


def test_issuance_requires_a_secret(gateway) -> None:
    with pytest.raises(ValueError):
        OtpIssuanceService(gateway, "", Environment.TEST)
