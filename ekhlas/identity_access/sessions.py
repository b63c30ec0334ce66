"""
Session resolution against the identity service (Supabase Auth / GoTrue).

Why: The gatekeeper only needs "who is this token?". Sign-in and sign-out live
here too so the login routes and the gate talk to the same adapter.

Security:
- The session cookie carries the opaque access token only; nothing else about
  the user is trusted from the client.
- Tokens and passwords are never logged.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol
import logging

logger = logging.getLogger("ekhlas.identity_access")

SESSION_COOKIE_NAME = "ekhlas_session"

# GoTrue answers these for malformed, expired or revoked tokens.
_INVALID_TOKEN_STATUSES = frozenset({400, 401, 403, 404})


class InvalidCredentials(Exception):
    """Email/password combination rejected by the identity service."""


class EmailNotConfirmed(Exception):
    """Account exists but the email address was never confirmed."""


@dataclass(frozen=True)
class SignInResult:
    access_token: str
    expires_in: int
    user_id: str


class IdentityService(Protocol):
    def get_current_user(self, access_token: str) -> Optional[str]: ...

    def sign_in_with_password(self, email: str, password: str) -> SignInResult: ...

    def sign_out(self, access_token: str) -> None: ...


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class SupabaseIdentity:
    """Identity adapter over supabase-py.

    Parameters
    ----------
    service_client:
        Client created with the service-role key. Used for `get_user(jwt)` and
        admin sign-out; it never adopts a user session.
    anon_client_factory:
        Zero-arg callable returning a fresh anon-key client. Password sign-in
        stores the session on the client it runs on, so each sign-in gets its
        own throwaway client.
    """

    def __init__(self, service_client: Any, anon_client_factory):
        self._client = service_client
        self._anon_factory = anon_client_factory

    def get_current_user(self, access_token: str) -> Optional[str]:
        if not access_token:
            return None
        try:
            res = self._client.auth.get_user(access_token)
        except Exception as exc:
            if _status_of(exc) in _INVALID_TOKEN_STATUSES:
                return None
            raise
        user = getattr(res, "user", None) if res is not None else None
        user_id = getattr(user, "id", None)
        return str(user_id) if user_id else None

    def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        client = self._anon_factory()
        try:
            res = client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            message = str(getattr(exc, "message", "") or exc)
            if "email not confirmed" in message.lower():
                raise EmailNotConfirmed() from exc
            if _status_of(exc) in _INVALID_TOKEN_STATUSES:
                raise InvalidCredentials() from exc
            raise
        session = getattr(res, "session", None)
        user = getattr(res, "user", None)
        token = getattr(session, "access_token", None)
        if not token or user is None:
            raise InvalidCredentials()
        expires_in = int(getattr(session, "expires_in", None) or 3600)
        return SignInResult(access_token=str(token), expires_in=expires_in, user_id=str(user.id))

    def sign_out(self, access_token: str) -> None:
        if not access_token:
            return
        self._client.auth.admin.sign_out(access_token)


__all__ = [
    "SESSION_COOKIE_NAME",
    "InvalidCredentials",
    "EmailNotConfirmed",
    "SignInResult",
    "IdentityService",
    "SupabaseIdentity",
]
