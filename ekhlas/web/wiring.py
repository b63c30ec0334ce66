"""
Backend wiring for the web app: identity service, profile directory, school repo.

Why:
    `main` needs three collaborators. With SUPABASE_URL and
    SUPABASE_SERVICE_ROLE_KEY configured they talk to Supabase; without them
    the app runs on the in-memory dev store so login, gate and admin APIs
    work locally without a hosted project.

Security:
    The service-role client bypasses RLS and stays server-side. Password
    sign-in runs on throwaway anon-key clients so the shared client never
    adopts a user session.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import logging
import os

from ekhlas.identity_access.domain import Profile
from ekhlas.identity_access.profiles import ProfileDirectory, SupabaseProfileDirectory
from ekhlas.identity_access.sessions import IdentityService, SupabaseIdentity
from ekhlas.identity_access.stores import InMemoryIdentityStore
from ekhlas.schools.repo import InMemorySchoolRepo, SupabaseSchoolRepo

logger = logging.getLogger("ekhlas.web")


@dataclass
class Backends:
    identity: IdentityService
    profiles: ProfileDirectory
    school_repo: Any
    name: str


def supabase_configured() -> bool:
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    return bool(url and key)


def build_dev_backends(store: InMemoryIdentityStore | None = None) -> Backends:
    """In-memory backends sharing one store (accounts, tokens, profiles)."""
    store = store or InMemoryIdentityStore()
    return Backends(identity=store, profiles=store, school_repo=InMemorySchoolRepo(store), name="memory")


def seed_dev_admin(backends: Backends) -> None:
    """Create a platform admin in the dev store from EKHLAS_DEV_ADMIN_EMAIL/_PASSWORD."""
    email = (os.getenv("EKHLAS_DEV_ADMIN_EMAIL") or "").strip()
    password = os.getenv("EKHLAS_DEV_ADMIN_PASSWORD") or ""
    if not email or not password or backends.name != "memory":
        return
    store: InMemoryIdentityStore = backends.identity  # type: ignore[assignment]
    user_id = store.create_user(email=email, password=password)
    store.put_profile(Profile(user_id=user_id, role="platform_admin", full_name="Platform Admin"))
    logger.info("Dev platform admin seeded")


def build_supabase_backends() -> Backends:
    from supabase import ClientOptions, create_client

    url = os.environ["SUPABASE_URL"].strip()
    service_key = os.environ["SUPABASE_SERVICE_ROLE_KEY"].strip()
    anon_key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()

    def _options() -> ClientOptions:
        # Server-side clients never persist or refresh a user session.
        return ClientOptions(auto_refresh_token=False, persist_session=False)

    service_client = create_client(url, service_key, options=_options())

    def anon_client_factory():
        if not anon_key:
            raise RuntimeError("SUPABASE_ANON_KEY is required for password sign-in")
        return create_client(url, anon_key, options=_options())

    profiles: ProfileDirectory
    if (os.getenv("PROFILES_BACKEND", "supabase") or "").strip().lower() == "db":
        from ekhlas.identity_access.profiles_db import DBProfileDirectory

        profiles = DBProfileDirectory()
        name = "supabase+db"
    else:
        profiles = SupabaseProfileDirectory(service_client)
        name = "supabase"
    return Backends(
        identity=SupabaseIdentity(service_client, anon_client_factory),
        profiles=profiles,
        school_repo=SupabaseSchoolRepo(service_client),
        name=name,
    )


def build_backends() -> Backends:
    """Pick Supabase when configured, else the in-memory dev store."""
    if supabase_configured():
        backends = build_supabase_backends()
    else:
        backends = build_dev_backends()
        seed_dev_admin(backends)
    logger.info("Auth backends wired: %s", backends.name)
    return backends


__all__ = [
    "Backends",
    "supabase_configured",
    "build_dev_backends",
    "seed_dev_admin",
    "build_supabase_backends",
    "build_backends",
]
