import math
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.ip_rate_limit import IpRateLimit
from models.pending_code import PendingCode

def _client_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr) or "unknown"

def otp_cooldown_remaining(phone: str, now: datetime, cooldown_seconds: int) -> int:
    """
    Seconds until `phone` may receive another code, 0 if it may now.
    Any purpose counts: the cooldown is per phone.
    """
    window_start = now - timedelta(seconds=cooldown_seconds)
    recent = (
        PendingCode.query
        .filter(PendingCode.phone == phone, PendingCode.created_at > window_start)
        .order_by(PendingCode.created_at.desc())
        .first()
    )
    if not recent:
        return 0

    remaining = cooldown_seconds - (now - recent.created_at).total_seconds()
    return min(cooldown_seconds, max(1, math.ceil(remaining)))

def check_and_increment_verify_rate(scope: str) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Fixed window per (IP, scope), bounds code/PIN guessing from one client.
    """
    ip = _client_ip()
    now = datetime.utcnow()

    window_seconds = current_app.config.get("VERIFY_RATE_WINDOW_SECONDS", 60)
    max_requests = current_app.config.get("VERIFY_RATE_MAX_REQUESTS", 20)

    row = IpRateLimit.query.filter_by(ip=ip, scope=scope).first()
    if not row:
        row = IpRateLimit(ip=ip, scope=scope, window_start=now, count=0)
        db.session.add(row)

    window_end = row.window_start + timedelta(seconds=window_seconds)

    # Reset window if expired
    if now >= window_end:
        row.window_start = now
        row.count = 0
        window_end = row.window_start + timedelta(seconds=window_seconds)

    row.count += 1
    db.session.commit()

    if row.count > max_requests:
        retry_after = int((window_end - now).total_seconds())
        return False, max(retry_after, 1)

    return True, 0
