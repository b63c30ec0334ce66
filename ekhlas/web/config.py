"""
Configuration and startup security checks for Ekhlas.

Why: A school platform holds minors' data. A production deployment with a
placeholder service key, plain-http Supabase URL or a broken route table must
not come up at all. Development stays permissive.

Permissions: The caller needs no special privileges. The functions read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import logging
import os

from ekhlas.identity_access.gatekeeper import DEFAULT_LOOKUP_TIMEOUT_SECONDS
from ekhlas.identity_access.routing import RouteTableError, load_route_table

logger = logging.getLogger("ekhlas.web")

_DUMMY_KEYS = {"DUMMY_DO_NOT_USE", "CHANGE_ME", "YOUR_SERVICE_ROLE_KEY"}


def is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("EKHLAS_ENV", "dev") or "dev").strip().lower()


def lookup_timeout_seconds() -> float:
    """Per-lookup timeout for the gatekeeper (AUTH_LOOKUP_TIMEOUT_SECONDS).

    Invalid or non-positive values fall back to the default.
    """
    raw = (os.getenv("AUTH_LOOKUP_TIMEOUT_SECONDS") or "").strip()
    if not raw:
        return DEFAULT_LOOKUP_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid AUTH_LOOKUP_TIMEOUT_SECONDS=%r", raw)
        return DEFAULT_LOOKUP_TIMEOUT_SECONDS
    if value <= 0:
        logger.warning("Ignoring non-positive AUTH_LOOKUP_TIMEOUT_SECONDS=%r", raw)
        return DEFAULT_LOOKUP_TIMEOUT_SECONDS
    return value


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - Supabase service-role key must be set and not a known placeholder.
    - Supabase anon key must be set (password sign-in uses it).
    - SUPABASE_URL must use https.
    - DATABASE_URL must not explicitly disable TLS.
    - A configured route-table file must load and cover every role.
    """

    if not is_prod_like(current_environment()):
        return  # dev/test remain permissive

    # 1) Supabase keys
    srole = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
    if not srole or srole.upper() in _DUMMY_KEYS:
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )
    anon = os.getenv("SUPABASE_ANON_KEY", "").strip()
    if not anon:
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset in production.")

    # 2) Supabase endpoint must use HTTPS
    url = (os.getenv("SUPABASE_URL", "") or "").strip().lower()
    if not url.startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    # 3) Postgres TLS: basic guard to avoid explicit disable
    dsn = os.getenv("DATABASE_URL", "")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 4) Route table must be total; a partial table would lock users out at runtime
    try:
        load_route_table()
    except RouteTableError as exc:
        raise SystemExit(f"Refusing to start: invalid route table: {exc}")


__all__ = ["current_environment", "lookup_timeout_seconds", "ensure_secure_config_on_startup"]
