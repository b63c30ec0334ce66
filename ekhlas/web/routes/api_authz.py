"""
Per-endpoint authorization for the data API (`/api/...`).

Why:
    `/api` is a public prefix for the page gatekeeper, so every API handler
    must establish the caller on its own. The caller's role and tenant are
    re-derived from the session cookie through the profile service on every
    call; nothing in the request body or in `request.state` is trusted.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, Iterable, Optional, Tuple

import anyio
from fastapi import Request
from fastapi.responses import JSONResponse

from ekhlas.identity_access.domain import Profile
from ekhlas.identity_access.gatekeeper import resolve_profile_for_token
from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME


def private_no_store() -> dict:
    return {"Cache-Control": "private, no-store"}


def private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=private_no_store())


def error_response(message: str, *, status_code: int = 400) -> JSONResponse:
    return private_response({"error": message}, status_code=status_code)


async def json_body(request: Request) -> Optional[Dict[str, Any]]:
    """Parsed JSON object body, or None for malformed or non-object input."""
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


async def run_blocking(func, *args, **kwargs):
    """Run a blocking repo call in a worker thread."""
    return await anyio.to_thread.run_sync(partial(func, *args, **kwargs))


async def require_role(
    request: Request, allowed: Iterable[str], *, need_tenant: bool = False
) -> Tuple[Optional[Profile], Optional[JSONResponse]]:
    """Return `(profile, None)` for an authorized caller, else `(None, error)`.

    - No valid session -> 401 `Unauthorized`
    - Missing/inactive profile, role outside `allowed`, or no tenant when
      `need_tenant` -> 403 `Forbidden`
    """
    from ekhlas.web import main as mod

    token = request.cookies.get(SESSION_COOKIE_NAME)
    user_id, profile = await resolve_profile_for_token(
        token, identity=mod.IDENTITY, profiles=mod.PROFILES, timeout=mod.LOOKUP_TIMEOUT
    )
    if not user_id:
        return None, error_response("Unauthorized", status_code=401)
    if profile is None or profile.role not in set(allowed):
        return None, error_response("Forbidden", status_code=403)
    if need_tenant and not profile.tenant_id:
        return None, error_response("Forbidden", status_code=403)
    return profile, None


__all__ = ["private_no_store", "private_response", "error_response", "json_body", "run_blocking", "require_role"]
