from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from security.auth_backend import AuthBackendError
from security.supabase_backend import SupabaseAuthBackend


def _auth_response(user_id: str = "uid-1", session: bool = True):
    sess = None
    if session:
        sess = SimpleNamespace(
            access_token="jwt-access",
            refresh_token="jwt-refresh",
            expires_at=1767600000,
            token_type="bearer",
            user=SimpleNamespace(id=user_id),
        )
    return SimpleNamespace(user=SimpleNamespace(id=user_id), session=sess)


@pytest.fixture
def admin_client() -> MagicMock:
    return MagicMock(name="service_client")


@pytest.fixture
def login_client() -> MagicMock:
    return MagicMock(name="login_client")


@pytest.fixture
def backend(admin_client, login_client) -> SupabaseAuthBackend:
    return SupabaseAuthBackend(
        "https://example.supabase.co",
        "service-key",
        client=admin_client,
        client_factory=lambda url, key: login_client,
    )


def test_requires_url_and_key() -> None:
    with pytest.raises(ValueError):
        SupabaseAuthBackend("", "")


def test_create_identity_confirms_phone(backend, admin_client) -> None:
    admin_client.auth.admin.create_user.return_value = SimpleNamespace(user=SimpleNamespace(id="uid-9"))

    assert backend.create_identity("+233241234567", "GH") == "uid-9"

    payload = admin_client.auth.admin.create_user.call_args.args[0]
    assert payload["phone"] == "+233241234567"
    assert payload["phone_confirm"] is True


def test_create_identity_without_user_fails(backend, admin_client) -> None:
    admin_client.auth.admin.create_user.return_value = SimpleNamespace(user=None)
    with pytest.raises(AuthBackendError):
        backend.create_identity("+233241234567", "GH")


def test_set_credentials_updates_user(backend, admin_client) -> None:
    backend.set_credentials("uid-1", "233241234567@phone.auth.internal", "pw")

    admin_client.auth.admin.update_user_by_id.assert_called_once_with(
        "uid-1",
        {"email": "233241234567@phone.auth.internal", "password": "pw", "email_confirm": True},
    )


def test_sign_in_uses_a_separate_client(backend, admin_client, login_client) -> None:
    login_client.auth.sign_in_with_password.return_value = _auth_response()

    session = backend.sign_in("233241234567@phone.auth.internal", "pw")

    assert session.access_token == "jwt-access"
    assert session.refresh_token == "jwt-refresh"
    assert session.user_id == "uid-1"
    admin_client.auth.sign_in_with_password.assert_not_called()


def test_sign_in_without_session_fails(backend, login_client) -> None:
    login_client.auth.sign_in_with_password.return_value = _auth_response(session=False)
    with pytest.raises(AuthBackendError):
        backend.sign_in("x@phone.auth.internal", "pw")


def test_user_id_for_token(backend, admin_client) -> None:
    admin_client.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="uid-3"))
    assert backend.user_id_for_token("jwt") == "uid-3"

    admin_client.auth.get_user.return_value = None
    assert backend.user_id_for_token("jwt") is None
    assert backend.user_id_for_token("") is None


def test_refresh_maps_the_new_session(backend, login_client) -> None:
    login_client.auth.refresh_session.return_value = _auth_response("uid-4")
    assert backend.refresh("jwt-refresh").user_id == "uid-4"
    assert backend.refresh("") is None
