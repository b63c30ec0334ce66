"""
In-memory identity + profile store for development and tests.

Why: Run the full app (login, gate, admin APIs) without a Supabase project.
The store implements the same contracts as the Supabase adapters:
`IdentityService` (sessions.py) and `ProfileDirectory` (profiles.py), plus
the account admin operations used by `schools.repo.InMemorySchoolRepo`.

Security: Dev only. Passwords are salted PBKDF2 hashes, tokens are opaque
random strings with an expiry. State lives in process memory.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional
import hashlib
import hmac
import secrets
import threading
import time
import uuid

from .domain import Profile
from .sessions import EmailNotConfirmed, InvalidCredentials, SignInResult


def _now() -> int:
    return int(time.time())


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000)


@dataclass
class AccountRecord:
    user_id: str
    email: str
    salt: bytes
    password_hash: bytes
    email_confirmed: bool = True


@dataclass
class TokenRecord:
    user_id: str
    expires_at: int


class InMemoryIdentityStore:
    def __init__(self, token_ttl_seconds: int = 3600):
        self._lock = threading.Lock()
        self._accounts: Dict[str, AccountRecord] = {}
        self._emails: Dict[str, str] = {}
        self._tokens: Dict[str, TokenRecord] = {}
        self._profiles: Dict[str, Profile] = {}
        self._ttl = token_ttl_seconds

    # --- Accounts (admin) ---------------------------------------------------------

    def create_user(self, *, email: str, password: str, email_confirm: bool = True) -> str:
        key = (email or "").strip().lower()
        if not key or not password:
            raise ValueError("email and password are required")
        with self._lock:
            if key in self._emails:
                raise ValueError("A user with this email address has already been registered")
            user_id = str(uuid.uuid4())
            salt = secrets.token_bytes(16)
            self._accounts[user_id] = AccountRecord(
                user_id=user_id,
                email=key,
                salt=salt,
                password_hash=_hash_password(password, salt),
                email_confirmed=email_confirm,
            )
            self._emails[key] = user_id
        return user_id

    def update_user(self, user_id: str, *, email: Optional[str] = None, password: Optional[str] = None) -> None:
        with self._lock:
            rec = self._accounts.get(user_id)
            if rec is None:
                raise ValueError("User not found")
            if email:
                key = email.strip().lower()
                owner = self._emails.get(key)
                if owner and owner != user_id:
                    raise ValueError("A user with this email address has already been registered")
                self._emails.pop(rec.email, None)
                rec.email = key
                self._emails[key] = user_id
            if password:
                rec.salt = secrets.token_bytes(16)
                rec.password_hash = _hash_password(password, rec.salt)

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            rec = self._accounts.pop(user_id, None)
            if rec is None:
                raise ValueError("User not found")
            self._emails.pop(rec.email, None)
            for token in [t for t, r in self._tokens.items() if r.user_id == user_id]:
                self._tokens.pop(token, None)

    # --- Profiles -----------------------------------------------------------------

    def put_profile(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.user_id] = profile

    def update_profile(self, user_id: str, **changes) -> Profile:
        with self._lock:
            current = self._profiles.get(user_id)
            if current is None:
                raise ValueError("Profile not found")
            updated = replace(current, **changes)
            self._profiles[user_id] = updated
            return updated

    def delete_profile(self, user_id: str) -> None:
        with self._lock:
            self._profiles.pop(user_id, None)

    def list_profiles(self) -> list[Profile]:
        with self._lock:
            return list(self._profiles.values())

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    # --- Sessions -----------------------------------------------------------------

    def issue_token(self, user_id: str, ttl_seconds: Optional[int] = None) -> str:
        token = secrets.token_urlsafe(32)
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        now = _now()
        with self._lock:
            for stale in [t for t, r in self._tokens.items() if r.expires_at < now]:
                del self._tokens[stale]
            self._tokens[token] = TokenRecord(user_id=user_id, expires_at=now + ttl)
        return token

    def get_current_user(self, access_token: str) -> Optional[str]:
        rec = self._tokens.get(access_token or "")
        if rec is None:
            return None
        if rec.expires_at < _now():
            with self._lock:
                self._tokens.pop(access_token, None)
            return None
        return rec.user_id

    def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        user_id = self._emails.get((email or "").strip().lower())
        rec = self._accounts.get(user_id) if user_id else None
        if rec is None or not hmac.compare_digest(rec.password_hash, _hash_password(password or "", rec.salt)):
            raise InvalidCredentials()
        if not rec.email_confirmed:
            raise EmailNotConfirmed()
        token = self.issue_token(rec.user_id)
        return SignInResult(access_token=token, expires_in=self._ttl, user_id=rec.user_id)

    def sign_out(self, access_token: str) -> None:
        with self._lock:
            self._tokens.pop(access_token or "", None)


__all__ = ["AccountRecord", "TokenRecord", "InMemoryIdentityStore"]
