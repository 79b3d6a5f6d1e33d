from flask import Blueprint, request, jsonify, g

from models import db
from models.profile import Profile
from security.rate_limit import check_and_increment_verify_rate
from services import get_services
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import RateLimited, Unauthorized, ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    return data


def _success(payload: dict, status: int = 200):
    body = {"success": True}
    body.update(payload)
    return jsonify(body), status


def _throttle(scope: str):
    allowed, retry_after = check_and_increment_verify_rate(scope)
    if not allowed:
        log_event("VERIFY_RATE_LIMIT", metadata={"scope": scope, "retry_after": retry_after})
        raise RateLimited(retry_after)


def _now():
    return get_services().clock()


@auth_bp.post("/otp/send")
def send_otp():
    data = _json_body()
    result = get_services().otp_issuance.issue(
        data.get("phone"),
        data.get("country"),
        data.get("purpose") or "login",
    )
    return _success(result)


@auth_bp.post("/otp/verify")
def verify_otp():
    data = _json_body()
    _throttle("otp_verify")
    result = get_services().otp_verification.verify(
        data.get("phone"),
        data.get("country"),
        data.get("otp"),
        data.get("purpose") or "login",
    )
    return _success(result.to_payload(_now()))


@auth_bp.post("/pin/set")
@login_required
def set_pin():
    data = _json_body()
    return _success(get_services().pin_set.set_pin(g.user.id, data.get("pin")))


@auth_bp.post("/pin/verify")
def verify_pin():
    data = _json_body()
    _throttle("pin_verify")
    result = get_services().pin_verify.verify(
        data.get("phone"),
        data.get("country"),
        data.get("pin"),
    )
    return _success(result.to_payload(_now(), include_new_user=False))


@auth_bp.post("/refresh")
def refresh():
    data = _json_body()
    session = get_services().auth_backend.refresh(data.get("refresh_token"))
    if session is None:
        raise Unauthorized("Invalid or expired refresh token")
    return _success({"session": session.to_dict(_now())})


@auth_bp.post("/logout")
@login_required
def logout():
    data = request.get_json(silent=True) or {}
    scope = "global" if data.get("scope") == "global" else "local"

    get_services().auth_backend.sign_out(g.access_token, scope)
    log_event("LOGOUT", user_id=g.user.id, metadata={"scope": scope})
    return _success({"message": "Logged out"})


@auth_bp.get("/me")
@login_required
def me():
    profile = g.user.profile
    return _success({
        "user": {"id": g.user.id, "phone": g.user.phone, "country": g.user.country},
        "profile": profile.to_dict() if profile else None,
        "hasPin": g.user.has_pin,
        "needsProfileSetup": profile is None,
    })


@auth_bp.post("/profile")
@login_required
def update_profile():
    data = _json_body()
    full_name = data.get("full_name")
    business_name = data.get("business_name")

    if full_name is not None and (not isinstance(full_name, str) or len(full_name.strip()) > 120):
        raise ValidationError("Invalid full_name")
    if business_name is not None and (not isinstance(business_name, str) or len(business_name.strip()) > 160):
        raise ValidationError("Invalid business_name")

    profile = g.user.profile
    if profile is None:
        profile = Profile(user_id=g.user.id, country=g.user.country)
        db.session.add(profile)
    if full_name is not None:
        profile.full_name = full_name.strip()
    if business_name is not None:
        profile.business_name = business_name.strip()

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=g.user.id)
    return _success({"message": "Profile updated", "profile": profile.to_dict()})
