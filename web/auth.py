"""
Authentication - Signed Session Tokens Carrying the Caller's Identity

Implements:
- Signed session tokens (cookie or Authorization: Bearer header)
- Access tokens issued by Supabase Auth, resolved when that backend is configured
- Admin login against environment-configured emails and password hash
- FastAPI dependencies for optional, signed-in and admin callers

Security:
- Passwords hashed with PBKDF2-HMAC-SHA256
- Tokens signed with HMAC-SHA256 using SESSION_SECRET
- Cookies are httponly and same-site lax
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Final, Optional

import httpx
from fastapi import Depends, HTTPException, Request, Response
from supabase import AuthError, AuthRetryableError

from core.listings.errors import TransientError
from core.listings.identity import Identity, UserRole
from core.listings.schema import utcnow
from core.listings.supabase_store import create_supabase_client
from utils.config import Config


logger = logging.getLogger(__name__)

TokenResolver = Callable[[str], Optional[Identity]]


# =============================================================================
# Configuration
# =============================================================================


def get_admin_emails() -> set[str]:
    """Get admin emails from ADMIN_EMAILS (comma-separated)."""
    emails = os.getenv("ADMIN_EMAILS", "")
    return {e.strip().lower() for e in emails.split(",") if e.strip()}


def get_admin_password_hash() -> Optional[str]:
    """Get pre-hashed admin password from environment."""
    return os.getenv("ADMIN_PASSWORD_HASH")


# Used only when SESSION_SECRET is unset; tokens then die with the process
_EPHEMERAL_SECRET: Final[str] = secrets.token_hex(32)


def get_session_secret() -> str:
    """Get session secret key from environment."""
    return os.getenv("SESSION_SECRET") or _EPHEMERAL_SECRET


SESSION_COOKIE_NAME: Final[str] = "listings_session"
SESSION_DURATION_HOURS: Final[int] = 8
PBKDF2_ITERATIONS: Final[int] = 100_000

# Stable user ids for admins who sign in by email
_ADMIN_NAMESPACE: Final = uuid.UUID("6f1c1a52-3c1e-4f0e-9a53-52d6e0c7d8a1")


# =============================================================================
# Password Hashing
# =============================================================================


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash a password using PBKDF2-HMAC-SHA256.

    Returns: salt$hash (both hex-encoded)
    """
    if salt is None:
        salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    )
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against a stored hash."""
    try:
        salt, _ = stored_hash.split("$", 1)
        return hmac.compare_digest(hash_password(password, salt), stored_hash)
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Session Tokens
# =============================================================================


@dataclass(frozen=True)
class Session:
    """An authenticated session for one identity."""

    identity: Identity
    expires_at: datetime
    session_id: str

    @property
    def is_expired(self) -> bool:
        return utcnow() > self.expires_at

    def to_dict(self) -> dict:
        return {
            "identity": self.identity.to_dict(),
            "expires_at": self.expires_at.isoformat(),
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            identity=Identity.from_dict(data["identity"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            session_id=data["session_id"],
        )


def create_session(identity: Identity, hours: int = SESSION_DURATION_HOURS) -> Session:
    return Session(
        identity=identity,
        expires_at=utcnow() + timedelta(hours=hours),
        session_id=secrets.token_hex(16),
    )


def _signature(payload_b64: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()


def sign_session(session: Session, secret: Optional[str] = None) -> str:
    """
    Sign and encode a session.

    Format: base64(json_payload).signature
    """
    payload = json.dumps(session.to_dict(), separators=(",", ":"))
    payload_b64 = base64.urlsafe_b64encode(payload.encode()).decode()
    return f"{payload_b64}.{_signature(payload_b64, secret or get_session_secret())}"


def verify_session(token: str, secret: Optional[str] = None) -> Optional[Session]:
    """Return the Session if the token is authentic and unexpired, else None."""
    try:
        payload_b64, signature = token.rsplit(".", 1)
        expected = _signature(payload_b64, secret or get_session_secret())
        if not hmac.compare_digest(signature, expected):
            return None

        data = json.loads(base64.urlsafe_b64decode(payload_b64.encode()).decode())
        session = Session.from_dict(data)
    except (ValueError, KeyError, TypeError, json.JSONDecodeError):
        return None

    return None if session.is_expired else session


def issue_token(identity: Identity, hours: int = SESSION_DURATION_HOURS) -> str:
    """Issue a bearer token for an identity vouched for by the auth provider."""
    return sign_session(create_session(identity, hours))


# =============================================================================
# Authentication Functions
# =============================================================================


def admin_identity(email: str) -> Identity:
    email = email.strip().lower()
    return Identity(
        id=str(uuid.uuid5(_ADMIN_NAMESPACE, email)),
        email=email,
        role=UserRole.ADMIN,
    )


def authenticate_admin(email: str, password: str) -> Optional[Session]:
    """
    Authenticate an admin user.

    Returns:
        Session if authentication succeeded, None otherwise
    """
    email = email.strip().lower()
    if email not in get_admin_emails():
        return None

    stored_hash = get_admin_password_hash()
    if not stored_hash or not verify_password(password, stored_hash):
        return None

    return create_session(admin_identity(email))


def get_current_identity(
    request: Request, resolve_provider_token: Optional[TokenResolver] = None
) -> Optional[Identity]:
    """
    Read the caller's identity from the bearer header or session cookie.

    A token that is not one of our signed sessions is handed to the auth
    provider's resolver, when one is configured.
    """
    token = None
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
    if not token:
        token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    session = verify_session(token)
    if session is not None:
        return session.identity
    if resolve_provider_token is not None:
        return resolve_provider_token(token)
    return None


# =============================================================================
# Provider Tokens
# =============================================================================


def provider_identity(user_id: str, email: str, app_metadata: Optional[dict] = None) -> Identity:
    """Map a provider account onto an Identity; admins come from ADMIN_EMAILS or app metadata."""
    email = email.strip().lower()
    is_admin = email in get_admin_emails() or (app_metadata or {}).get("role") == UserRole.ADMIN.value
    return Identity(id=str(user_id), email=email, role=UserRole.ADMIN if is_admin else UserRole.USER)


class SupabaseTokenResolver:
    """Resolve a Supabase Auth access token into the caller's Identity."""

    def __init__(self, client: Any):
        self._client = client

    def __call__(self, token: str) -> Optional[Identity]:
        try:
            response = self._client.auth.get_user(token)
        except AuthRetryableError as e:
            raise TransientError(f"Auth provider unreachable: {e}") from e
        except AuthError as e:
            logger.info("Provider token rejected: %s", e)
            return None
        except httpx.TransportError as e:
            raise TransientError(f"Auth provider unreachable: {e}") from e

        user = getattr(response, "user", None)
        if user is None or not user.email:
            return None
        return provider_identity(user.id, user.email, user.app_metadata)


_token_resolver: Optional[TokenResolver] = None


def get_token_resolver() -> Optional[TokenResolver]:
    """Get the provider token resolver, or None when Supabase is not configured."""
    global _token_resolver
    if _token_resolver is None:
        config = Config.load()
        if not config.uses_supabase:
            return None
        client = create_supabase_client(config.supabase_url, config.supabase_key)
        if client is None:
            return None
        _token_resolver = SupabaseTokenResolver(client)
    return _token_resolver


def reset_token_resolver() -> None:
    """Drop the cached resolver (for testing)."""
    global _token_resolver
    _token_resolver = None


def set_session_cookie(response: Response, session: Session) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=sign_session(session),
        max_age=SESSION_DURATION_HOURS * 3600,
        httponly=True,
        secure=os.getenv("PRODUCTION", "").lower() == "true",
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME)


def is_admin_configured() -> bool:
    """Check if admin authentication is properly configured."""
    return bool(get_admin_emails()) and bool(get_admin_password_hash())


# =============================================================================
# FastAPI Dependencies
# =============================================================================


def optional_identity(
    request: Request,
    resolve_provider_token: Optional[TokenResolver] = Depends(get_token_resolver),
) -> Optional[Identity]:
    return get_current_identity(request, resolve_provider_token)


def require_user(identity: Optional[Identity] = Depends(optional_identity)) -> Identity:
    """Dependency that requires a signed-in caller (401 otherwise)."""
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


def require_admin(identity: Identity = Depends(require_user)) -> Identity:
    """Dependency that requires an admin caller (403 otherwise)."""
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin authentication required")
    return identity
