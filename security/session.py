import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import has_request_context, request

from models import db
from models.session import Session


@dataclass
class AuthSession:
    """Token pair handed back to the client. Never persisted as-is."""
    access_token: str
    refresh_token: str
    expires_at: datetime
    user_id: str
    token_type: str = "bearer"

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_at": int((self.expires_at - datetime(1970, 1, 1)).total_seconds()),
            "expires_in": max(0, int((self.expires_at - now).total_seconds())),
        }


def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: str, lifetime_seconds: int, refresh_lifetime_seconds: int,
                   now: Optional[datetime] = None) -> AuthSession:
    """
    Creates a server-side session and returns the RAW tokens.
    Only the hashes are stored in DB.
    """
    now = now or datetime.utcnow()
    access_token = secrets.token_urlsafe(32)
    refresh_token = secrets.token_urlsafe(32)
    expires_at = now + timedelta(seconds=lifetime_seconds)

    ip = user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = (request.headers.get("User-Agent") or "")[:255]

    row = Session(
        user_id=user_id,
        access_token_hash=_hash_token(access_token),
        refresh_token_hash=_hash_token(refresh_token),
        created_at=now,
        expires_at=expires_at,
        refresh_expires_at=now + timedelta(seconds=refresh_lifetime_seconds),
        ip=ip,
        user_agent=user_agent,
    )
    db.session.add(row)
    db.session.commit()
    return AuthSession(access_token, refresh_token, expires_at, user_id)

def get_session_for_token(access_token: str, now: Optional[datetime] = None) -> Optional[Session]:
    if not access_token:
        return None

    sess = (
        Session.query
        .filter_by(access_token_hash=_hash_token(access_token), revoked=False)
        .first()
    )
    if not sess:
        return None

    # Absolute expiry
    if sess.expires_at <= (now or datetime.utcnow()):
        return None
    return sess

def rotate_session(refresh_token: str, lifetime_seconds: int, refresh_lifetime_seconds: int,
                   now: Optional[datetime] = None) -> Optional[AuthSession]:
    """Single-use refresh: the old pair is revoked, a new one issued."""
    if not refresh_token:
        return None
    now = now or datetime.utcnow()

    # conditional update so two racing refreshes cannot both succeed
    sess = Session.query.filter_by(refresh_token_hash=_hash_token(refresh_token), revoked=False).first()
    if not sess or sess.refresh_expires_at <= now:
        return None
    claimed = (
        Session.query
        .filter_by(id=sess.id, revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )
    db.session.commit()
    if claimed != 1:
        return None

    return create_session(sess.user_id, lifetime_seconds, refresh_lifetime_seconds, now=now)

def revoke_session(access_token: str) -> bool:
    if not access_token:
        return False
    sess = Session.query.filter_by(access_token_hash=_hash_token(access_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True

def revoke_all_sessions(user_id: str) -> int:
    sessions = Session.query.filter_by(user_id=user_id, revoked=False).all()
    for s in sessions:
        s.revoked = True
    db.session.commit()
    return len(sessions)
