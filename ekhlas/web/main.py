"Ekhlas school management"
from __future__ import annotations

from pathlib import Path
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from ekhlas.identity_access.gatekeeper import resolve_access
from ekhlas.identity_access.routing import REDIRECT_LOGIN, load_route_table
from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME
from ekhlas.web import config as _cfg
from ekhlas.web.wiring import build_backends, build_dev_backends


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via EKHLAS_ENABLE_DOTENV (default true outside pytest).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("EKHLAS_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    @property
    def is_prod_like(self) -> bool:
        return _cfg.is_prod_like(self.environment)

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("ekhlas.web")
SETTINGS = AuthSettings()

app = FastAPI(title="Ekhlas", description="إدارة مدارس الإخلاص", version="0.1.0")

# --- Static Files ---------------------------------------------------------------

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

# --- Backends -------------------------------------------------------------------
# Module globals so routes resolve them at call time and tests can swap them.

_BACKENDS = build_dev_backends() if _under_pytest() else build_backends()
IDENTITY = _BACKENDS.identity
PROFILES = _BACKENDS.profiles
SCHOOL_REPO = _BACKENDS.school_repo
ROUTE_TABLE = load_route_table()
LOOKUP_TIMEOUT = _cfg.lookup_timeout_seconds()

# --- Gatekeeper Middleware ------------------------------------------------------

_NO_STORE = {"Cache-Control": "private, no-store"}


def _is_exempt_path(path: str) -> bool:
    """Paths the gatekeeper never sees: static assets and the liveness probe."""
    return path.startswith("/static/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def gatekeeper(request: Request, call_next):
    path = request.url.path
    if _is_exempt_path(path):
        return await call_next(request)

    token = request.cookies.get(SESSION_COOKIE_NAME)
    result = await resolve_access(
        path,
        token,
        identity=IDENTITY,
        profiles=PROFILES,
        table=ROUTE_TABLE,
        timeout=LOOKUP_TIMEOUT,
    )
    decision = result.decision
    if not decision.allowed:
        if decision.kind == REDIRECT_LOGIN and token:
            logger.info("Session rejected for %s; redirecting to login", path)
        if "HX-Request" in request.headers:
            # Full-page navigation instead of swapping a redirect target into a fragment
            return Response(status_code=204, headers={"HX-Redirect": decision.location, "Vary": "HX-Request", **_NO_STORE})
        return RedirectResponse(url=decision.location, status_code=302, headers=_NO_STORE)

    profile = result.profile
    if profile is not None:
        # Read-only user context for page handlers; APIs re-derive it themselves.
        request.state.user = {
            "id": profile.user_id,
            "role": profile.role,
            "tenant_id": profile.tenant_id,
            "name": profile.full_name,
        }
    else:
        request.state.user = None
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    connect_src = "'self'"
    supabase_url = (os.getenv("SUPABASE_URL") or "").strip().rstrip("/")
    if supabase_url.startswith("https://"):
        connect_src += f" {supabase_url}"

    if SETTINGS.is_prod_like:
        # Harden CSP in production: avoid 'unsafe-inline' to reduce XSS surface.
        csp = (
            "default-src 'self'; script-src 'self'; style-src 'self'; "
            f"img-src 'self' data:; font-src 'self' data:; connect-src {connect_src};"
        )
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            f"img-src 'self' data:; font-src 'self' data:; connect-src {connect_src};"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.is_prod_like:
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routers --------------------------------------------------------------------

from ekhlas.web.routes.auth import auth_router  # noqa: E402
from ekhlas.web.routes.dashboards import dashboards_router  # noqa: E402
from ekhlas.web.routes.platform_api import platform_api_router  # noqa: E402
from ekhlas.web.routes.students_api import students_api_router  # noqa: E402
from ekhlas.web.routes.structure_api import structure_api_router  # noqa: E402

app.include_router(auth_router)
app.include_router(dashboards_router)
app.include_router(platform_api_router)
app.include_router(students_api_router)
app.include_router(structure_api_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers=_NO_STORE)
