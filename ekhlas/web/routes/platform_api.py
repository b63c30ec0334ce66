"""
Platform administration API: schools and user accounts.

Permissions:
    Every endpoint re-derives the caller from the session cookie and requires
    role `platform_admin`. No session -> 401, any other role -> 403.
"""
from __future__ import annotations

from typing import Any, Dict
import logging

from fastapi import APIRouter, Request

from ekhlas.identity_access.domain import ALLOWED_ROLES
from ekhlas.schools.provisioning import clean, provision_user
from ekhlas.schools.repo import RepoError
from .api_authz import error_response, json_body, private_response, require_role, run_blocking

platform_api_router = APIRouter(tags=["Platform"])
logger = logging.getLogger("ekhlas.web")

_PLATFORM_ONLY = ("platform_admin",)


def _known_role(value) -> bool:
    return isinstance(value, str) and value in ALLOWED_ROLES


def _repo():
    from ekhlas.web import main as mod

    return mod.SCHOOL_REPO


@platform_api_router.post("/api/platform/schools")
async def create_school(request: Request):
    """Create a school. Body: `{name, code?, address?, phone?}`; `name` required."""
    _, error = await require_role(request, _PLATFORM_ONLY)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    name = body.get("name")
    if not name or not isinstance(name, str) or not name.strip():
        return error_response("name is required")
    try:
        school = await run_blocking(
            _repo().create_school,
            name=name.strip(),
            code=clean(body.get("code")),
            address=clean(body.get("address")),
            phone=clean(body.get("phone")),
        )
    except RepoError as exc:
        return error_response(exc.message)
    logger.info("School created: %s", school.get("id"))
    return private_response({"data": school})


@platform_api_router.post("/api/platform/users")
async def create_user(request: Request):
    """Create an auth account plus its profile.

    Body: `{email, password, full_name, role, school_id?, phone?}`.
    `school_id` is required unless the role is `platform_admin`, for which it
    is always stored as null. A failed profile insert deletes the new account.
    """
    _, error = await require_role(request, _PLATFORM_ONLY)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    email = clean(body.get("email"))
    password = body.get("password") or None
    full_name = clean(body.get("full_name"))
    role = body.get("role")
    school_id = clean(body.get("school_id"))
    if not email or not password or not full_name or not role:
        return error_response("Missing required fields")
    if not _known_role(role):
        return error_response("Invalid role")
    if role != "platform_admin" and not school_id:
        return error_response("school_id is required")
    try:
        data = await run_blocking(
            provision_user,
            _repo(),
            email=email,
            password=str(password),
            full_name=full_name,
            role=role,
            school_id=school_id,
            phone=clean(body.get("phone")),
        )
    except RepoError as exc:
        return error_response(exc.message)
    return private_response({"data": data})


@platform_api_router.patch("/api/platform/users")
async def update_user(request: Request):
    """Update a profile and optionally the auth email/password.

    Body: `{user_id, full_name?, phone?, role?, school_id?, email?, password?, is_active?}`.
    """
    _, error = await require_role(request, _PLATFORM_ONLY)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    user_id = clean(body.get("user_id"))
    if not user_id:
        return error_response("user_id is required")
    role = body.get("role")
    if role and not _known_role(role):
        return error_response("Invalid role")
    if role and role != "platform_admin" and "school_id" in body and body["school_id"] is None:
        return error_response("school_id is required for non platform_admin")

    changes: Dict[str, Any] = {}
    for key in ("full_name", "phone"):
        if body.get(key) is not None:
            changes[key] = str(body[key])
    if role:
        changes["role"] = role
    if role == "platform_admin":
        changes["school_id"] = None
    elif body.get("school_id") is not None:
        changes["school_id"] = clean(body["school_id"])
    if isinstance(body.get("is_active"), bool):
        changes["is_active"] = body["is_active"]

    repo = _repo()
    try:
        await run_blocking(repo.update_profile, user_id, changes)
        email = clean(body.get("email"))
        password = str(body["password"]) if clean(body.get("password")) else None
        if email or password:
            await run_blocking(repo.update_auth_user, user_id, email=email, password=password)
    except RepoError as exc:
        return error_response(exc.message)
    logger.info("User %s updated (%s)", user_id, ", ".join(sorted(changes)) or "auth only")
    return private_response({"ok": True})


@platform_api_router.delete("/api/platform/users")
async def delete_user(request: Request):
    """Delete the auth account, then its profile row. Body: `{user_id}`."""
    _, error = await require_role(request, _PLATFORM_ONLY)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    user_id = clean(body.get("user_id"))
    if not user_id:
        return error_response("user_id is required")
    repo = _repo()
    try:
        await run_blocking(repo.delete_auth_user, user_id)
    except RepoError as exc:
        return error_response(exc.message)
    try:
        await run_blocking(repo.delete_profile, user_id)
    except RepoError as exc:
        # Auth account is already gone; the orphaned row can no longer sign in.
        logger.warning("Profile delete failed for %s: %s", user_id, exc.message)
    logger.info("User %s deleted", user_id)
    return private_response({"ok": True})
