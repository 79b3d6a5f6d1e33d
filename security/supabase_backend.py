import logging
from datetime import datetime
from typing import Optional

from supabase import AuthError, Client, create_client

from security.auth_backend import AuthBackend, AuthBackendError
from security.session import AuthSession

logger = logging.getLogger(__name__)


class SupabaseAuthBackend(AuthBackend):
    """
    Auth primitive backed by Supabase GoTrue. Admin calls go through the
    service-role client; password sign-ins use a throwaway client so the
    service client never holds a user session.
    """

    def __init__(self, url: str, service_key: str, client: Optional[Client] = None, client_factory=None):
        if not url or not service_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        self.url = url
        self.service_key = service_key
        self.client_factory = client_factory or create_client
        self.client = client or self.client_factory(url, service_key)

    @classmethod
    def from_config(cls, config) -> "SupabaseAuthBackend":
        return cls(config.get("SUPABASE_URL"), config.get("SUPABASE_SERVICE_ROLE_KEY"))

    def _session_from(self, response) -> AuthSession:
        session = getattr(response, "session", None)
        if session is None or not session.access_token:
            raise AuthBackendError("No session returned")
        user_id = response.user.id if getattr(response, "user", None) else session.user.id
        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=datetime.utcfromtimestamp(session.expires_at),
            user_id=str(user_id),
            token_type=session.token_type or "bearer",
        )

    def create_identity(self, phone, country):
        try:
            response = self.client.auth.admin.create_user({
                "phone": phone,
                "phone_confirm": True,
                "user_metadata": {"country": country, "created_via": "phone_otp"},
            })
        except AuthError as exc:
            logger.error("Supabase create_user failed: %s", exc)
            raise AuthBackendError("Failed to create identity") from exc
        if not getattr(response, "user", None):
            raise AuthBackendError("Failed to create identity")
        return str(response.user.id)

    def set_credentials(self, user_id, email, password):
        try:
            self.client.auth.admin.update_user_by_id(user_id, {
                "email": email,
                "password": password,
                "email_confirm": True,
            })
        except AuthError as exc:
            logger.error("Supabase update_user_by_id failed for %s: %s", user_id, exc)
            raise AuthBackendError("Failed to set credentials") from exc

    def sign_in(self, email, password):
        client = self.client_factory(self.url, self.service_key)
        try:
            response = client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            logger.error("Supabase sign-in failed: %s", exc)
            raise AuthBackendError("Sign in failed") from exc
        return self._session_from(response)

    def user_id_for_token(self, access_token):
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError:
            return None
        user = getattr(response, "user", None) if response else None
        return str(user.id) if user else None

    def refresh(self, refresh_token):
        if not refresh_token:
            return None
        client = self.client_factory(self.url, self.service_key)
        try:
            return self._session_from(client.auth.refresh_session(refresh_token))
        except (AuthError, AuthBackendError):
            return None

    def sign_out(self, access_token, scope="local"):
        try:
            self.client.auth.admin.sign_out(access_token, scope)
        except AuthError as exc:
            logger.warning("Supabase sign_out failed: %s", exc)
            return False
        return True
