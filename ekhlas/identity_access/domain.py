"""
Identity domain constants and simple helpers.

Why:
- Centralize the closed role enumeration so the route table, navigation,
  APIs and stores cannot drift apart.
- Keep the profile record small: authorization needs role and tenant only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Order matters for rendering (admin screens, role pickers).
ROLES: tuple[str, ...] = (
    "platform_admin",
    "school_admin",
    "hr",
    "teacher",
    "hod",
    "student",
    "parent",
)

# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(ROLES)

# Roles that may manage students of their own school.
STUDENT_MANAGER_ROLES = frozenset({"school_admin", "hr", "platform_admin"})


def normalize_role(value: object) -> Optional[str]:
    """Return the canonical role string or None when outside the enumeration."""
    if not isinstance(value, str):
        return None
    role = value.strip().lower()
    return role if role in ALLOWED_ROLES else None


@dataclass(frozen=True)
class Profile:
    """Authorization-relevant part of a `profiles` row.

    `role` is None when the stored value is not part of the enumeration; the
    gatekeeper treats that exactly like a missing profile.
    `tenant_id` maps to the `school_id` column and is None only for platform
    admins in a correctly provisioned system.
    """

    user_id: str
    role: Optional[str]
    tenant_id: Optional[str] = None
    full_name: str = ""
    is_active: bool = True


__all__ = ["ROLES", "ALLOWED_ROLES", "STUDENT_MANAGER_ROLES", "normalize_role", "Profile"]
