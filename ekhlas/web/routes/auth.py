"""
Authentication routes: password sign-in page and logout.

Notes:
    - Handlers import `ekhlas.web.main` inside functions to reach the shared
      identity backend and settings, so tests can swap `main.IDENTITY`.
    - `/login` and `/auth/*` are public prefixes; the gatekeeper never
      redirects them. A successful sign-in redirects to "/" and the gatekeeper
      then relocates the user to the home path of their role.
"""

from __future__ import annotations

import logging
import re

import anyio
from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME, EmailNotConfirmed, InvalidCredentials
from ekhlas.web.auth_utils import clear_session_cookie, set_session_cookie
from ekhlas.web.components import Layout, LoginForm
from ekhlas.web.components.login_form import FIELD_ERROR_EMAIL, FIELD_ERROR_PASSWORD

auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("ekhlas.web.auth")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6

ERROR_INVALID_CREDENTIALS = "بيانات الدخول غير صحيحة."
ERROR_EMAIL_NOT_CONFIRMED = "البريد الإلكتروني غير مُؤكد."
ERROR_GENERIC = "حدث خطأ أثناء تسجيل الدخول."

_NO_STORE = {"Cache-Control": "private, no-store"}


def _login_page(*, status_code: int = 200, **form_kwargs) -> HTMLResponse:
    layout = Layout(title="تسجيل الدخول", content=LoginForm(**form_kwargs).render(), show_nav=False, current_path="/login")
    return HTMLResponse(content=layout.render(), status_code=status_code, headers=_NO_STORE)


@auth_router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    """Render the sign-in form. Public."""
    return _login_page()


@auth_router.post("/login")
async def login_submit(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    remember: str | None = Form(default=None),
):
    """Password sign-in.

    Behavior:
        - Validates email shape and a minimum password length of 6.
        - On success sets the HttpOnly session cookie (persistent only with
          "remember me") and redirects 303 to "/".
        - On failure re-renders the form with a localized message:
          400 for validation/upstream errors, 401 for rejected credentials.
    """
    from ekhlas.web import main as mod

    email = (email or "").strip()
    remember_me = bool(remember)
    field_errors = {}
    if not EMAIL_PATTERN.match(email):
        field_errors["email"] = FIELD_ERROR_EMAIL
    if len(password or "") < MIN_PASSWORD_LENGTH:
        field_errors["password"] = FIELD_ERROR_PASSWORD
    if field_errors:
        return _login_page(status_code=400, email=email, field_errors=field_errors, remember=remember_me)

    try:
        with anyio.fail_after(mod.LOOKUP_TIMEOUT * 2):
            result = await anyio.to_thread.run_sync(
                mod.IDENTITY.sign_in_with_password, email, password, abandon_on_cancel=True
            )
    except InvalidCredentials:
        logger.info("Sign-in rejected")
        return _login_page(status_code=401, email=email, error=ERROR_INVALID_CREDENTIALS, remember=remember_me)
    except EmailNotConfirmed:
        return _login_page(status_code=401, email=email, error=ERROR_EMAIL_NOT_CONFIRMED, remember=remember_me)
    except Exception as exc:
        logger.warning("Sign-in failed: %s", exc.__class__.__name__)
        return _login_page(status_code=400, email=email, error=ERROR_GENERIC, remember=remember_me)

    logger.info("User %s signed in", result.user_id)
    resp = RedirectResponse(url="/", status_code=303, headers=_NO_STORE)
    set_session_cookie(
        resp,
        result.access_token,
        environment=mod.SETTINGS.environment,
        max_age=result.expires_in if remember_me else None,
    )
    return resp


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    """Sign out (best effort), clear the session cookie, redirect to /login.

    Security:
        Adds `Cache-Control: private, no-store` to the 302 response.
    """
    from ekhlas.web import main as mod

    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        try:
            with anyio.fail_after(mod.LOOKUP_TIMEOUT):
                await anyio.to_thread.run_sync(mod.IDENTITY.sign_out, token, abandon_on_cancel=True)
        except Exception as exc:
            # Logout must always succeed locally; the token expires on its own.
            logger.warning("Sign-out failed: %s", exc.__class__.__name__)
    resp = RedirectResponse(url="/login", status_code=302, headers=_NO_STORE)
    clear_session_cookie(resp, environment=mod.SETTINGS.environment)
    return resp
