"""
Tests for session tokens and admin credentials.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from supabase import AuthError, AuthRetryableError

from conftest import make_identity
from core.listings import TransientError, UserRole
from core.listings.schema import utcnow
from web.auth import (
    Session,
    SupabaseTokenResolver,
    admin_identity,
    authenticate_admin,
    create_session,
    hash_password,
    provider_identity,
    sign_session,
    verify_password,
    verify_session,
)


class TestPasswordHashing:
    def test_round_trip(self):
        stored = hash_password("correct horse")
        assert verify_password("correct horse", stored)
        assert not verify_password("wrong", stored)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash(self):
        assert not verify_password("x", "no-separator")


class TestSessionTokens:
    def test_verify_returns_identity(self):
        identity = make_identity("ana@x.com")
        session = verify_session(sign_session(create_session(identity), "k"), "k")
        assert session.identity == identity

    def test_wrong_secret(self):
        token = sign_session(create_session(make_identity("ana@x.com")), "k1")
        assert verify_session(token, "k2") is None

    def test_tampered_payload(self):
        token = sign_session(create_session(make_identity("ana@x.com")), "k")
        payload, signature = token.rsplit(".", 1)
        assert verify_session(payload[:-2] + "AA." + signature, "k") is None

    def test_expired(self):
        session = Session(
            identity=make_identity("ana@x.com"),
            expires_at=utcnow() - timedelta(minutes=1),
            session_id="s",
        )
        assert verify_session(sign_session(session, "k"), "k") is None

    def test_garbage(self):
        assert verify_session("not-a-token", "k") is None


class TestAdminLogin:
    def test_admin_id_stable_per_email(self):
        assert admin_identity("Boss@Example.ae").id == admin_identity("boss@example.ae").id
        assert admin_identity("boss@example.ae").role == UserRole.ADMIN

    def test_unknown_email(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.ae")
        monkeypatch.setenv("ADMIN_PASSWORD_HASH", hash_password("pw"))
        assert authenticate_admin("someone@example.ae", "pw") is None

    def test_valid_login(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.ae, deputy@example.ae")
        monkeypatch.setenv("ADMIN_PASSWORD_HASH", hash_password("pw"))
        session = authenticate_admin(" Deputy@Example.ae ", "pw")
        assert session.identity.email == "deputy@example.ae"
        assert session.identity.is_admin


class _Rejected(AuthError):
    def __init__(self):
        Exception.__init__(self, "invalid JWT")


class _Unreachable(AuthRetryableError):
    def __init__(self):
        Exception.__init__(self, "connection reset")


class FakeAuth:
    def __init__(self, users=None, error=None):
        self.users = users or {}
        self.error = error

    def get_user(self, jwt):
        if self.error is not None:
            raise self.error
        if jwt not in self.users:
            raise _Rejected()
        return SimpleNamespace(user=self.users[jwt])


def provider_user(email, app_metadata=None):
    return SimpleNamespace(id="0b7c9a4e-user", email=email, app_metadata=app_metadata or {})


class TestProviderTokens:
    def test_resolves_user(self, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAILS", raising=False)
        resolver = SupabaseTokenResolver(SimpleNamespace(auth=FakeAuth({"jwt-1": provider_user("Ana@X.com")})))

        identity = resolver("jwt-1")

        assert identity.id == "0b7c9a4e-user"
        assert identity.email == "ana@x.com"
        assert identity.role == UserRole.USER

    def test_rejected_token_is_anonymous(self):
        resolver = SupabaseTokenResolver(SimpleNamespace(auth=FakeAuth()))
        assert resolver("forged") is None

    def test_provider_outage_is_transient(self):
        resolver = SupabaseTokenResolver(SimpleNamespace(auth=FakeAuth(error=_Unreachable())))
        with pytest.raises(TransientError):
            resolver("jwt-1")

    def test_admin_from_email_list(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.ae")
        assert provider_identity("u-1", "Boss@Example.ae").is_admin
        assert not provider_identity("u-2", "ana@x.com").is_admin

    def test_admin_from_app_metadata(self, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAILS", raising=False)
        assert provider_identity("u-1", "ops@example.ae", {"role": "admin"}).is_admin
