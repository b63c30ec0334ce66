"""
School student administration API: single create, Excel import, Excel template.

Permissions:
    Caller role must be `school_admin`, `hr` or `platform_admin` and the
    caller's profile must carry a school. The school is always taken from the
    caller's profile, never from the request.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import Response

from ekhlas.identity_access.domain import STUDENT_MANAGER_ROLES
from ekhlas.schools.provisioning import (
    STUDENT_DETAIL_FIELDS,
    class_listing,
    class_lookup,
    clean,
    provision_student,
)
from ekhlas.schools.repo import RepoError
from ekhlas.schools.spreadsheets import (
    XLSX_MEDIA_TYPE,
    SpreadsheetError,
    build_students_template,
    read_sheet_rows,
)
from .api_authz import error_response, json_body, private_no_store, private_response, require_role, run_blocking

students_api_router = APIRouter(tags=["Students"])
logger = logging.getLogger("ekhlas.web")

TEMPLATE_FILENAME = "students_template.xlsx"


def _repo():
    from ekhlas.web import main as mod

    return mod.SCHOOL_REPO


@students_api_router.post("/api/admin/students")
async def create_student(request: Request):
    """Create one student account in the caller's school.

    Body: `{full_name, class_id, student_code?, email?, password?, phone?, status?, ...details}`.
    Without `email` a login address is generated; without `password` a random
    10-character one is issued and returned once as `temp_password`.
    """
    profile, error = await require_role(request, STUDENT_MANAGER_ROLES, need_tenant=True)
    if error:
        return error
    body = await json_body(request)
    if body is None:
        return error_response("Invalid request")
    full_name = clean(body.get("full_name"))
    class_id = clean(body.get("class_id"))
    if not full_name or not class_id:
        return error_response("full_name and class_id are required")
    try:
        account = await run_blocking(
            provision_student,
            _repo(),
            school_id=profile.tenant_id,
            class_id=class_id,
            full_name=full_name,
            student_code=clean(body.get("student_code")),
            email=clean(body.get("email")),
            password=str(body["password"]) if body.get("password") else None,
            phone=clean(body.get("phone")),
            status=clean(body.get("status")),
            details={field: body.get(field) for field in STUDENT_DETAIL_FIELDS},
        )
    except RepoError as exc:
        return error_response(exc.message)
    return private_response({"data": account.as_dict()})


def _import_rows(repo, school_id: str, rows: List[Dict[str, str]]) -> List[Dict[str, Any]]:
    lookup = class_lookup(repo.list_grades(school_id), repo.list_classes(school_id))
    results: List[Dict[str, Any]] = []
    for row in rows:
        full_name = row.get("full_name", "").strip()
        grade_name = row.get("grade_name", "").strip()
        class_name = row.get("class_name", "").strip()
        if not full_name or not grade_name or not class_name:
            results.append({"full_name": full_name, "status": "failed", "reason": "missing full_name/grade_name/class_name"})
            continue
        class_id = lookup.get((grade_name, class_name))
        if not class_id:
            results.append({"full_name": full_name, "status": "failed", "reason": "class not found"})
            continue
        email: Optional[str] = clean(row.get("email"))
        try:
            account = provision_student(
                repo,
                school_id=school_id,
                class_id=class_id,
                full_name=full_name,
                student_code=clean(row.get("student_code")),
                email=email,
                phone=clean(row.get("phone")),
                status=clean(row.get("status")),
                details=row,
            )
        except RepoError as exc:
            results.append({"full_name": full_name, "status": "failed", "reason": exc.message})
            continue
        results.append(
            {
                "full_name": full_name,
                "status": "ok",
                "login_email": account.login_email,
                "temp_password": account.temp_password,
                "email_is_generated": account.email_is_generated,
            }
        )
    return results


@students_api_router.post("/api/admin/students/import")
async def import_students(request: Request, file: Optional[UploadFile] = File(default=None)):
    """Bulk-create students from the `students` sheet of an uploaded .xlsx.

    Each row needs `full_name`, `grade_name` and `class_name`; the pair
    (grade_name, class_name) must name a class of the caller's school. Rows
    are processed independently and reported as `ok` or `failed` with a reason.
    """
    profile, error = await require_role(request, STUDENT_MANAGER_ROLES, need_tenant=True)
    if error:
        return error
    if file is None:
        return error_response("file is required")
    data = await file.read()
    try:
        rows = await run_blocking(read_sheet_rows, data)
    except SpreadsheetError as exc:
        return error_response(str(exc))
    if not rows:
        return error_response("No rows")
    try:
        results = await run_blocking(_import_rows, _repo(), profile.tenant_id, rows)
    except RepoError as exc:
        return error_response(exc.message)
    ok = sum(1 for r in results if r["status"] == "ok")
    logger.info("Student import for school %s: %d ok, %d failed", profile.tenant_id, ok, len(results) - ok)
    return private_response({"data": results})


@students_api_router.get("/api/admin/students/template")
async def students_template(request: Request):
    """Download the import workbook: example row plus the school's class list."""
    profile, error = await require_role(request, STUDENT_MANAGER_ROLES, need_tenant=True)
    if error:
        return error
    repo = _repo()
    try:
        grades = await run_blocking(repo.list_grades, profile.tenant_id)
        classes = await run_blocking(repo.list_classes, profile.tenant_id)
    except RepoError as exc:
        return error_response(exc.message)
    content = await run_blocking(build_students_template, class_listing(grades, classes))
    headers = {"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"', **private_no_store()}
    return Response(content=content, media_type=XLSX_MEDIA_TYPE, headers=headers)
