"""
Shared session-cookie utilities.

Why:
    The login route sets the session cookie, logout clears it, and the
    gatekeeper reads it. Cookie flags must be identical in all three places,
    so they are derived from one helper.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Response

from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # cookie still sent on the top-level redirect after login
    """
    return {"secure": True, "samesite": "lax"}


def set_session_cookie(response: Response, token: str, *, environment: str, max_age: Optional[int] = None) -> None:
    """Attach the access token as HttpOnly session cookie.

    `max_age=None` yields a browser-session cookie ("remember me" unchecked).
    """
    opts = cookie_opts(environment)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_session_cookie(response: Response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
