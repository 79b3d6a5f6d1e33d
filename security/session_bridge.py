import logging
import secrets

from security.auth_backend import AuthBackend, AuthBackendError
from security.phone import phone_digits, mask_phone
from security.session import AuthSession
from utils.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class SessionBridge:
    """
    Turns a verified phone identity into a session from a password-only
    auth primitive.

    Each call binds a synthetic (email, password) pair to the identity and
    signs in with it once. The password is freshly random, never stored,
    never logged and never returned. The email lives under a reserved
    internal domain so no human-registered address can collide with it.
    """

    def __init__(self, auth_backend: AuthBackend, email_domain: str = "phone.auth.internal"):
        self.auth_backend = auth_backend
        self.email_domain = email_domain

    def synthetic_email(self, phone: str) -> str:
        return f"{phone_digits(phone)}@{self.email_domain}"

    def open_session(self, user_id: str, phone: str) -> AuthSession:
        email = self.synthetic_email(phone)
        password = secrets.token_urlsafe(32)
        try:
            self.auth_backend.set_credentials(user_id, email, password)
            return self.auth_backend.sign_in(email, password)
        except AuthBackendError as exc:
            logger.error("Session bridge failed for %s (%s): %s", user_id, mask_phone(phone), exc)
            raise UpstreamFailure("Failed to create session", code="SESSION_CREATE_FAILED") from exc
        finally:
            del password
