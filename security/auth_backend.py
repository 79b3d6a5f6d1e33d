import uuid
from datetime import datetime
from typing import Callable, Optional

from models import db
from models.auth_account import AuthAccount
from security.hashing import bcrypt_hash, bcrypt_verify
from security.session import (
    AuthSession,
    create_session,
    get_session_for_token,
    revoke_all_sessions,
    revoke_session,
    rotate_session,
)


class AuthBackendError(Exception):
    """The auth primitive refused or failed an operation."""


class AuthBackend:
    """
    Password-based identity/session primitive. The phone flows reach it only
    through the identity resolver and the session bridge.
    """

    def create_identity(self, phone: str, country: str) -> str:
        raise NotImplementedError

    def set_credentials(self, user_id: str, email: str, password: str) -> None:
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def user_id_for_token(self, access_token: str) -> Optional[str]:
        raise NotImplementedError

    def refresh(self, refresh_token: str) -> Optional[AuthSession]:
        raise NotImplementedError

    def sign_out(self, access_token: str, scope: str = "local") -> bool:
        raise NotImplementedError


class LocalAuthBackend(AuthBackend):
    """Auth primitive backed by our own tables (auth_accounts + sessions)."""

    def __init__(self, session_lifetime_seconds=3600, refresh_lifetime_seconds=30 * 24 * 3600,
                 password_rounds=10, clock: Callable[[], datetime] = datetime.utcnow):
        self.session_lifetime_seconds = session_lifetime_seconds
        self.refresh_lifetime_seconds = refresh_lifetime_seconds
        self.password_rounds = password_rounds
        self.clock = clock

    @classmethod
    def from_config(cls, config, clock=datetime.utcnow) -> "LocalAuthBackend":
        return cls(
            session_lifetime_seconds=config.get("SESSION_LIFETIME_SECONDS", 3600),
            refresh_lifetime_seconds=config.get("REFRESH_LIFETIME_SECONDS", 30 * 24 * 3600),
            password_rounds=config.get("AUTH_PASSWORD_ROUNDS", 10),
            clock=clock,
        )

    def create_identity(self, phone, country):
        return str(uuid.uuid4())

    def set_credentials(self, user_id, email, password):
        account = AuthAccount.query.filter_by(user_id=user_id).first()
        if account is None:
            account = AuthAccount(user_id=user_id, email=email, password_hash="")
            db.session.add(account)
        account.email = email
        account.password_hash = bcrypt_hash(password, rounds=self.password_rounds)
        account.password_changed_at = self.clock()
        db.session.commit()

    def sign_in(self, email, password):
        account = AuthAccount.query.filter_by(email=email).first()
        if account is None or not bcrypt_verify(password, account.password_hash):
            raise AuthBackendError("Invalid login credentials")
        return create_session(
            account.user_id,
            self.session_lifetime_seconds,
            self.refresh_lifetime_seconds,
            now=self.clock(),
        )

    def user_id_for_token(self, access_token):
        sess = get_session_for_token(access_token, now=self.clock())
        return sess.user_id if sess else None

    def refresh(self, refresh_token):
        return rotate_session(
            refresh_token,
            self.session_lifetime_seconds,
            self.refresh_lifetime_seconds,
            now=self.clock(),
        )

    def sign_out(self, access_token, scope="local"):
        if scope == "global":
            user_id = self.user_id_for_token(access_token)
            if not user_id:
                return False
            return revoke_all_sessions(user_id) > 0
        return revoke_session(access_token)
