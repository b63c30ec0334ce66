"""
Profile (role) lookup.

The `profiles` table is the single authority for a user's role and tenant.
Adapters return `Profile` records; unknown role strings are mapped to
`role=None` so the gate fails closed instead of guessing.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol
import logging

from .domain import Profile, normalize_role

logger = logging.getLogger("ekhlas.identity_access")

PROFILE_COLUMNS = "id,role,school_id,full_name,is_active"


class ProfileDirectory(Protocol):
    def get_profile(self, user_id: str) -> Optional[Profile]: ...


def profile_from_row(row: Mapping[str, Any]) -> Profile:
    """Map a `profiles` row (dict-like) to a Profile."""
    user_id = str(row.get("id") or "")
    raw_role = row.get("role")
    role = normalize_role(raw_role)
    if role is None:
        logger.warning("Profile %s has unknown role %r", user_id, raw_role)
    tenant = row.get("school_id")
    is_active = row.get("is_active")
    return Profile(
        user_id=user_id,
        role=role,
        tenant_id=str(tenant) if tenant else None,
        full_name=str(row.get("full_name") or ""),
        is_active=True if is_active is None else bool(is_active),
    )


class SupabaseProfileDirectory:
    """Reads profiles through PostgREST with a service-role supabase client."""

    def __init__(self, client: Any, table: str = "profiles"):
        self._client = client
        self._table = table

    def get_profile(self, user_id: str) -> Optional[Profile]:
        if not user_id:
            return None
        res = (
            self._client.table(self._table)
            .select(PROFILE_COLUMNS)
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        rows = getattr(res, "data", None) or []
        if not rows:
            return None
        return profile_from_row(rows[0])


__all__ = ["PROFILE_COLUMNS", "ProfileDirectory", "profile_from_row", "SupabaseProfileDirectory"]
