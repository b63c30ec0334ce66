"""
School structure API: grades and the classes inside them.

Permissions:
    Caller role must be `school_admin` with a school on the profile. Rows are
    always created in the caller's school; a class may only reference a grade
    of that same school.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from ekhlas.schools.provisioning import clean
from ekhlas.schools.repo import RepoError
from .api_authz import error_response, json_body, private_response, require_role, run_blocking

structure_api_router = APIRouter(tags=["Structure"])
logger = logging.getLogger("ekhlas.web")

_SCHOOL_ADMIN_ONLY = ("school_admin",)


def _repo():
    from ekhlas.web import main as mod

    return mod.SCHOOL_REPO


def _sort_order(value) -> int:
    # Blank or non-numeric input sorts first.
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@structure_api_router.post("/api/admin/grades")
async def create_grade(request: Request):
    """Body: `{name, sort_order?}`."""
    profile, error = await require_role(request, _SCHOOL_ADMIN_ONLY, need_tenant=True)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    name = clean(body.get("name"))
    if not name:
        return error_response("name is required")
    try:
        grade = await run_blocking(
            _repo().create_grade, profile.tenant_id, name=name, sort_order=_sort_order(body.get("sort_order"))
        )
    except RepoError as exc:
        return error_response(exc.message)
    logger.info("Grade created in school %s: %s", profile.tenant_id, grade.get("id"))
    return private_response({"data": grade})


@structure_api_router.post("/api/admin/classes")
async def create_class(request: Request):
    """Body: `{name, grade_id, sort_order?}`; the grade must belong to the caller's school."""
    profile, error = await require_role(request, _SCHOOL_ADMIN_ONLY, need_tenant=True)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    name = clean(body.get("name"))
    grade_id = clean(body.get("grade_id"))
    if not name or not grade_id:
        return error_response("name and grade_id are required")
    repo = _repo()
    try:
        grades = await run_blocking(repo.list_grades, profile.tenant_id)
        if grade_id not in {g["id"] for g in grades}:
            return error_response("grade not found")
        klass = await run_blocking(
            repo.create_class,
            profile.tenant_id,
            grade_id=grade_id,
            name=name,
            sort_order=_sort_order(body.get("sort_order")),
        )
    except RepoError as exc:
        return error_response(exc.message)
    logger.info("Class created in school %s: %s", profile.tenant_id, klass.get("id"))
    return private_response({"data": klass})
