"""
Pytest configuration for Ekhlas tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh
in-memory backend (identity store, profiles, school repo) wired into `main`,
so tests never depend on a Supabase project or on each other's state.
"""
from __future__ import annotations

from typing import Optional

import pytest

from ekhlas.identity_access.domain import Profile
from ekhlas.identity_access.routing import DEFAULT_ROUTE_TABLE
from ekhlas.identity_access.stores import InMemoryIdentityStore
from ekhlas.schools.repo import InMemorySchoolRepo


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Default to dev semantics; individual tests opt into prod explicitly."""
    for var in (
        "EKHLAS_ENV",
        "EKHLAS_ROLE_ROUTES_FILE",
        "AUTH_LOOKUP_TIMEOUT_SECONDS",
        "PROFILES_BACKEND",
        "EKHLAS_DEV_ADMIN_EMAIL",
        "EKHLAS_DEV_ADMIN_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def repo(store: InMemoryIdentityStore) -> InMemorySchoolRepo:
    return InMemorySchoolRepo(store)


@pytest.fixture(autouse=True)
def _wire_in_memory_backends(monkeypatch: pytest.MonkeyPatch, store: InMemoryIdentityStore, repo: InMemorySchoolRepo):
    """Swap fresh in-memory backends into `main` for every test."""
    from ekhlas.web import main

    monkeypatch.setattr(main, "IDENTITY", store)
    monkeypatch.setattr(main, "PROFILES", store)
    monkeypatch.setattr(main, "SCHOOL_REPO", repo)
    monkeypatch.setattr(main, "ROUTE_TABLE", DEFAULT_ROUTE_TABLE)
    monkeypatch.setattr(main, "LOOKUP_TIMEOUT", 3.0)
    main.SETTINGS.override_environment(None)
    yield
    main.SETTINGS.override_environment(None)


class Accounts:
    """Creates signed-in users with a profile and returns their session token."""

    def __init__(self, store: InMemoryIdentityStore, repo: InMemorySchoolRepo):
        self.store = store
        self.repo = repo
        self._n = 0

    def school(self, name: str = "مدرسة الإخلاص", code: Optional[str] = None) -> str:
        self._n += 1
        return self.repo.create_school(name=name, code=code or f"S{self._n}", address=None, phone=None)["id"]

    def user(
        self,
        role: Optional[str],
        *,
        tenant_id: Optional[str] = None,
        name: str = "مستخدم",
        is_active: bool = True,
        with_profile: bool = True,
    ) -> tuple[str, str]:
        """Return `(user_id, access_token)`."""
        self._n += 1
        user_id = self.store.create_user(email=f"user{self._n}@example.com", password="secret123")
        if with_profile:
            self.store.put_profile(
                Profile(user_id=user_id, role=role, tenant_id=tenant_id, full_name=name, is_active=is_active)
            )
        return user_id, self.store.issue_token(user_id)


@pytest.fixture
def accounts(store: InMemoryIdentityStore, repo: InMemorySchoolRepo) -> Accounts:
    return Accounts(store, repo)

