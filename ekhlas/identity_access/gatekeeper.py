"""
Gatekeeper entry point: session -> profile -> decision, per request.

Behavior:
- Public paths short-circuit before any lookup.
- Identity and profile lookups are blocking adapter calls; each runs in a
  worker thread under a fixed timeout. The profile lookup starts only after a
  user id was resolved.
- Any timeout or upstream error is logged and treated as "absent". The result
  is always a redirect in that case, never an allow.
- Nothing is cached between requests, so role changes and revoked sessions
  take effect on the next request.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar
import logging

import anyio

from .domain import Profile
from .profiles import ProfileDirectory
from .routing import DEFAULT_ROUTE_TABLE, AccessDecision, RouteTable, decide, is_public_path
from .sessions import IdentityService

logger = logging.getLogger("ekhlas.identity_access")

DEFAULT_LOOKUP_TIMEOUT_SECONDS = 3.0

T = TypeVar("T")


@dataclass(frozen=True)
class GateResult:
    decision: AccessDecision
    user_id: Optional[str] = None
    profile: Optional[Profile] = None


async def _bounded(what: str, func: Callable[..., T], *args, timeout: float) -> Optional[T]:
    """Run a blocking lookup with a timeout; return None on timeout or error."""
    try:
        with anyio.fail_after(timeout):
            return await anyio.to_thread.run_sync(func, *args, abandon_on_cancel=True)
    except TimeoutError:
        logger.warning("%s lookup timed out after %.1fs", what, timeout)
    except Exception as exc:
        logger.warning("%s lookup failed: %s", what, exc.__class__.__name__)
    return None


async def resolve_user_id(identity: IdentityService, access_token: Optional[str], *, timeout: float) -> Optional[str]:
    if not access_token:
        return None
    return await _bounded("Session", identity.get_current_user, access_token, timeout=timeout)


async def resolve_profile(profiles: ProfileDirectory, user_id: str, *, timeout: float) -> Optional[Profile]:
    profile = await _bounded("Profile", profiles.get_profile, user_id, timeout=timeout)
    if profile is None:
        logger.warning("No profile found for authenticated user %s", user_id)
        return None
    if not profile.is_active:
        logger.warning("Profile %s is inactive; treating as no role", user_id)
        return None
    return profile


async def resolve_profile_for_token(
    access_token: Optional[str],
    *,
    identity: IdentityService,
    profiles: ProfileDirectory,
    timeout: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
) -> tuple[Optional[str], Optional[Profile]]:
    """Re-derive (user_id, profile) from a session token.

    Used by the gate and, independently, by every data API endpoint: the
    caller's role is always read from the profile service, never from input.
    """
    user_id = await resolve_user_id(identity, access_token, timeout=timeout)
    if not user_id:
        return None, None
    return user_id, await resolve_profile(profiles, user_id, timeout=timeout)


async def resolve_access(
    path: str,
    access_token: Optional[str],
    *,
    identity: IdentityService,
    profiles: ProfileDirectory,
    table: RouteTable = DEFAULT_ROUTE_TABLE,
    timeout: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
) -> GateResult:
    if is_public_path(path):
        return GateResult(decision=AccessDecision.allow())
    user_id, profile = await resolve_profile_for_token(
        access_token, identity=identity, profiles=profiles, timeout=timeout
    )
    role = profile.role if profile is not None else None
    return GateResult(decision=decide(path, user_id, role, table), user_id=user_id, profile=profile)


__all__ = [
    "DEFAULT_LOOKUP_TIMEOUT_SECONDS",
    "GateResult",
    "resolve_user_id",
    "resolve_profile",
    "resolve_profile_for_token",
    "resolve_access",
]
