"""
Login/logout flow against the in-memory identity backend.
"""

import httpx
import pytest
from httpx import ASGITransport

from ekhlas.identity_access.domain import Profile
from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME
from ekhlas.web import main
from ekhlas.web.routes import auth as auth_routes


pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


def _session_cookie_header(resp: httpx.Response) -> str:
    for value in resp.headers.get_list("set-cookie"):
        if value.startswith(f"{SESSION_COOKIE_NAME}="):
            return value
    return ""


@pytest.fixture
def teacher(store, accounts):
    user_id = store.create_user(email="teacher@school.com", password="secret123")
    store.put_profile(Profile(user_id=user_id, role="teacher", tenant_id=accounts.school(), full_name="أ. محمد"))
    return user_id


@pytest.mark.anyio
async def test_login_page_renders_form():
    async with _client() as client:
        r = await client.get("/login")
    assert r.status_code == 200
    assert 'action="/login"' in r.text
    assert 'name="email"' in r.text and 'name="password"' in r.text
    assert 'dir="rtl"' in r.text
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_successful_login_sets_cookie_and_redirects_to_root(teacher):
    async with _client() as client:
        r = await client.post(
            "/login",
            data={"email": "teacher@school.com", "password": "secret123", "remember": "1"},
            follow_redirects=False,
        )
    assert r.status_code == 303
    assert r.headers.get("location") == "/"
    cookie = _session_cookie_header(r)
    assert cookie
    lowered = cookie.lower()
    assert "httponly" in lowered
    assert "secure" in lowered
    assert "samesite=lax" in lowered
    assert "max-age=3600" in lowered


@pytest.mark.anyio
async def test_login_without_remember_sets_session_cookie(teacher):
    async with _client() as client:
        r = await client.post(
            "/login", data={"email": "teacher@school.com", "password": "secret123"}, follow_redirects=False
        )
    assert r.status_code == 303
    assert "max-age" not in _session_cookie_header(r).lower()


@pytest.mark.anyio
async def test_issued_token_opens_role_home(teacher, store):
    token = store.sign_in_with_password("teacher@school.com", "secret123").access_token
    async with _client() as client:
        client.cookies.set(SESSION_COOKIE_NAME, token)
        r = await client.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers.get("location") == "/teacher"


@pytest.mark.anyio
async def test_wrong_password_shows_localized_error(teacher):
    async with _client() as client:
        r = await client.post("/login", data={"email": "teacher@school.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert auth_routes.ERROR_INVALID_CREDENTIALS in r.text
    assert not _session_cookie_header(r)
    # Email stays filled in; password never echoes back
    assert 'value="teacher@school.com"' in r.text
    assert "wrong-pass" not in r.text


@pytest.mark.anyio
@pytest.mark.parametrize(
    "email,password,expected",
    [
        ("not-an-email", "secret123", "البريد الإلكتروني غير صحيح"),
        ("teacher@school.com", "12345", "كلمة المرور لا تقل عن 6 أحرف"),
    ],
)
async def test_validation_errors_return_400(email, password, expected):
    async with _client() as client:
        r = await client.post("/login", data={"email": email, "password": password})
    assert r.status_code == 400
    assert expected in r.text


@pytest.mark.anyio
async def test_unconfirmed_email_message(store):
    store.create_user(email="new@school.com", password="secret123", email_confirm=False)
    async with _client() as client:
        r = await client.post("/login", data={"email": "new@school.com", "password": "secret123"})
    assert r.status_code == 401
    assert auth_routes.ERROR_EMAIL_NOT_CONFIRMED in r.text


@pytest.mark.anyio
async def test_identity_outage_shows_generic_error(monkeypatch: pytest.MonkeyPatch):
    class Down:
        def sign_in_with_password(self, email, password):
            raise ConnectionError("gotrue unreachable")

    monkeypatch.setattr(main, "IDENTITY", Down())
    async with _client() as client:
        r = await client.post("/login", data={"email": "a@b.com", "password": "secret123"})
    assert r.status_code == 400
    assert auth_routes.ERROR_GENERIC in r.text


@pytest.mark.anyio
async def test_logout_revokes_token_and_clears_cookie(teacher, store):
    token = store.sign_in_with_password("teacher@school.com", "secret123").access_token
    async with _client() as client:
        client.cookies.set(SESSION_COOKIE_NAME, token)
        r = await client.get("/auth/logout", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers.get("location") == "/login"
    assert r.headers.get("Cache-Control") == "private, no-store"
    cleared = _session_cookie_header(r).lower()
    assert "max-age=0" in cleared or "expires=" in cleared
    assert store.get_current_user(token) is None


@pytest.mark.anyio
async def test_logout_survives_sign_out_failure(monkeypatch: pytest.MonkeyPatch):
    class Flaky:
        def sign_out(self, token):
            raise RuntimeError("gotrue 500")

    monkeypatch.setattr(main, "IDENTITY", Flaky())
    async with _client() as client:
        client.cookies.set(SESSION_COOKIE_NAME, "tok")
        r = await client.get("/auth/logout", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers.get("location") == "/login"


def test_expired_tokens_are_swept_when_issuing(store, teacher):
    stale = store.issue_token(teacher, ttl_seconds=-1)
    fresh = store.issue_token(teacher)
    assert stale not in store._tokens
    assert store.get_current_user(stale) is None
    assert store.get_current_user(fresh) == teacher
