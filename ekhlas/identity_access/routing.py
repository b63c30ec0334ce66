"""
Route classification table and the access decision.

Why:
    Keep the role -> path policy as plain data consumed by a single pure
    function (`decide`). Adding or moving a role area means editing the table
    (or the YAML file named by EKHLAS_ROLE_ROUTES_FILE), never the decision
    logic.

Behavior summary (in order):
    1. public prefix (/login, /auth, /api)        -> allow, no session needed
    2. no session user                            -> redirect to /login
    3. no role, or role missing from the table    -> redirect to /login
    4. site root "/"                              -> redirect to the role home
    5. path outside the role's allowed prefix     -> redirect to the role home
    6. otherwise                                  -> allow

Prefix matching is exact-or-child: "/hr" and "/hr/x" match "/hr", "/hrx" does not.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional
import logging
import os

from .domain import ALLOWED_ROLES, ROLES

logger = logging.getLogger("ekhlas.identity_access")

LOGIN_PATH = "/login"

# The data API is excluded on purpose: every endpoint below /api re-derives the
# caller's role from the session itself (see gatekeeper.resolve_profile_for_token).
PUBLIC_PREFIXES: tuple[str, ...] = ("/login", "/auth", "/api")


def _is_absolute_path(value: object) -> bool:
    return isinstance(value, str) and value.startswith("/") and "//" not in value


def match_prefix(path: str, prefix: str) -> bool:
    """Exact-or-child match on a path segment boundary."""
    return path == prefix or path.startswith(prefix + "/")


class RouteTableError(ValueError):
    """Raised when a route table is partial or malformed (configuration error)."""


@dataclass(frozen=True)
class RoleRoute:
    role: str
    allowed_prefix: str
    home_path: str


class RouteTable:
    """Immutable, total mapping role -> (allowed prefix, home path)."""

    def __init__(self, routes: Iterable[RoleRoute]):
        by_role: dict[str, RoleRoute] = {}
        for route in routes:
            if route.role not in ALLOWED_ROLES:
                raise RouteTableError(f"unknown role in route table: {route.role!r}")
            if route.role in by_role:
                raise RouteTableError(f"duplicate role in route table: {route.role!r}")
            for value in (route.allowed_prefix, route.home_path):
                if not _is_absolute_path(value):
                    raise RouteTableError(f"route paths must be absolute: {value!r}")
            if route.allowed_prefix == "/":
                raise RouteTableError("allowed prefix must not be the site root")
            if not match_prefix(route.home_path, route.allowed_prefix):
                raise RouteTableError(
                    f"home path {route.home_path!r} for {route.role!r} lies outside its prefix {route.allowed_prefix!r}"
                )
            by_role[route.role] = route
        missing = [r for r in ROLES if r not in by_role]
        if missing:
            raise RouteTableError(f"route table does not cover roles: {', '.join(missing)}")
        self._routes = by_role

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, str]]) -> "RouteTable":
        """Build from `{role: {"prefix": "/x", "home": "/x"}}`; home defaults to prefix."""
        if not isinstance(data, Mapping):
            raise RouteTableError("route table must be a mapping of role -> {prefix, home}")
        routes = []
        for role, entry in data.items():
            if not isinstance(entry, Mapping) or not entry.get("prefix"):
                raise RouteTableError(f"route entry for {role!r} needs a 'prefix'")
            prefix = str(entry["prefix"]).rstrip("/") or "/"
            home = str(entry.get("home") or prefix)
            routes.append(RoleRoute(role=str(role), allowed_prefix=prefix, home_path=home))
        return cls(routes)

    def get(self, role: Optional[str]) -> Optional[RoleRoute]:
        if role is None:
            return None
        return self._routes.get(role)

    def home_path(self, role: str) -> str:
        return self._routes[role].home_path

    def allowed_prefix(self, role: str) -> str:
        return self._routes[role].allowed_prefix

    def __iter__(self):
        return iter(self._routes[r] for r in ROLES)

    def __len__(self) -> int:
        return len(self._routes)


DEFAULT_ROUTE_TABLE = RouteTable(
    [
        RoleRoute("platform_admin", "/platform", "/platform"),
        RoleRoute("school_admin", "/admin", "/admin"),
        RoleRoute("hr", "/hr", "/hr"),
        RoleRoute("teacher", "/teacher", "/teacher"),
        RoleRoute("hod", "/hod", "/hod"),
        RoleRoute("student", "/student", "/student"),
        RoleRoute("parent", "/parent", "/parent"),
    ]
)


def load_route_table(path: str | None = None) -> RouteTable:
    """Load the route table from YAML when configured, else return the default.

    The file is read from `path` or EKHLAS_ROLE_ROUTES_FILE. Any problem raises
    RouteTableError; callers decide whether that aborts startup.
    """
    source = path or (os.getenv("EKHLAS_ROLE_ROUTES_FILE") or "").strip()
    if not source:
        return DEFAULT_ROUTE_TABLE
    import yaml

    try:
        with open(source, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise RouteTableError(f"cannot read route table file {source}: {exc.__class__.__name__}") from exc
    return RouteTable.from_mapping(data or {})


def is_public_path(path: str) -> bool:
    return any(match_prefix(path, prefix) for prefix in PUBLIC_PREFIXES)


ALLOW = "allow"
REDIRECT_LOGIN = "redirect_login"
REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class AccessDecision:
    kind: str
    location: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.kind == ALLOW

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(ALLOW)

    @classmethod
    def redirect_login(cls) -> "AccessDecision":
        return cls(REDIRECT_LOGIN, LOGIN_PATH)

    @classmethod
    def redirect_home(cls, home_path: str) -> "AccessDecision":
        return cls(REDIRECT_HOME, home_path)


def decide(
    path: str,
    session_user: Optional[str],
    role: Optional[str],
    table: RouteTable = DEFAULT_ROUTE_TABLE,
) -> AccessDecision:
    """Return the access decision for one request. Pure; no I/O besides logging."""
    if is_public_path(path):
        return AccessDecision.allow()
    if not session_user:
        return AccessDecision.redirect_login()
    route = table.get(role)
    if route is None:
        if role is None:
            logger.warning("No role for authenticated user %s; denying %s", session_user, path)
        else:
            logger.error("Role %r is not mapped in the route table; denying %s", role, path)
        return AccessDecision.redirect_login()
    if path == "/":
        return AccessDecision.redirect_home(route.home_path)
    if not match_prefix(path, route.allowed_prefix):
        return AccessDecision.redirect_home(route.home_path)
    return AccessDecision.allow()


__all__ = [
    "LOGIN_PATH",
    "PUBLIC_PREFIXES",
    "RouteTableError",
    "RoleRoute",
    "RouteTable",
    "DEFAULT_ROUTE_TABLE",
    "load_route_table",
    "match_prefix",
    "is_public_path",
    "AccessDecision",
    "ALLOW",
    "REDIRECT_LOGIN",
    "REDIRECT_HOME",
    "decide",
]
