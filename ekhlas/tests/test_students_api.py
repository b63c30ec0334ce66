"""
Student administration API: single create, Excel import and template download.

The school is always the caller's own; the request can never pick another.
"""
from __future__ import annotations

from io import BytesIO

import httpx
import pytest
from httpx import ASGITransport
from openpyxl import Workbook, load_workbook

from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME, InvalidCredentials
from ekhlas.schools.provisioning import GENERATED_EMAIL_DOMAIN
from ekhlas.schools.spreadsheets import STUDENT_COLUMNS, XLSX_MEDIA_TYPE
from ekhlas.web import main


pytestmark = pytest.mark.anyio("asyncio")


def _client(token: str | None = None) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")
    if token:
        client.cookies.set(SESSION_COOKIE_NAME, token)
    return client


def _workbook(rows, *, sheet: str = "students", headers=("full_name", "student_code", "grade_name", "class_name")) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _upload(data: bytes) -> dict:
    return {"file": ("students.xlsx", data, XLSX_MEDIA_TYPE)}


@pytest.fixture
def school(accounts, repo):
    """School with one grade and class; returns (school_id, class_id, admin token)."""
    school_id = accounts.school()
    grade_id = repo.create_grade(school_id, name="أول ابتدائي")["id"]
    class_id = repo.create_class(school_id, grade_id=grade_id, name="1A")["id"]
    _, token = accounts.user("school_admin", tenant_id=school_id)
    return school_id, class_id, token


@pytest.mark.anyio
async def test_requires_session():
    async with _client() as client:
        r = await client.post("/api/admin/students", json={"full_name": "x", "class_id": "c"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.anyio
@pytest.mark.parametrize("role", ["teacher", "hod", "student", "parent"])
async def test_non_managers_are_forbidden(accounts, role: str):
    _, token = accounts.user(role, tenant_id=accounts.school())
    async with _client(token) as client:
        r = await client.post("/api/admin/students", json={"full_name": "x", "class_id": "c"})
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden"}


@pytest.mark.anyio
async def test_manager_without_school_is_forbidden(accounts):
    _, token = accounts.user("platform_admin")
    async with _client(token) as client:
        r = await client.get("/api/admin/students/template")
    assert r.status_code == 403


@pytest.mark.anyio
async def test_create_student_with_generated_credentials(school, repo, store):
    school_id, class_id, token = school
    async with _client(token) as client:
        r = await client.post(
            "/api/admin/students",
            json={"full_name": " سالم أحمد ", "class_id": class_id, "student_code": "1250", "gender": "male"},
        )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["full_name"] == "سالم أحمد"
    assert data["login_email"] == f"student.1250@{GENERATED_EMAIL_DOMAIN}"
    assert data["email_is_generated"] is True
    assert len(data["temp_password"]) == 10

    profile = store.get_profile(data["id"])
    assert profile.role == "student"
    assert profile.tenant_id == school_id
    [row] = repo.list_students(school_id)
    assert row["class_id"] == class_id
    assert row["status"] == "active"
    assert row["gender"] == "male"
    # Handed-out credentials work
    assert store.sign_in_with_password(data["login_email"], data["temp_password"]).user_id == data["id"]


@pytest.mark.anyio
async def test_school_in_body_is_ignored(school, accounts, repo):
    school_id, class_id, token = school
    other = accounts.school(name="أخرى")
    async with _client(token) as client:
        r = await client.post(
            "/api/admin/students", json={"full_name": "x", "class_id": class_id, "school_id": other}
        )
    assert r.status_code == 200
    assert repo.list_students(other) == []
    assert len(repo.list_students(school_id)) == 1


@pytest.mark.anyio
async def test_create_student_requires_name_and_class(school):
    _, _, token = school
    async with _client(token) as client:
        r = await client.post("/api/admin/students", json={"full_name": "x"})
    assert r.status_code == 400
    assert r.json() == {"error": "full_name and class_id are required"}


@pytest.mark.anyio
async def test_numeric_student_password_is_taken_as_text(school, store):
    _, class_id, token = school
    body = {"full_name": "x", "class_id": class_id, "email": "kid@school.com", "password": 20242025}
    async with _client(token) as client:
        r = await client.post("/api/admin/students", json=body)
    assert r.status_code == 200
    assert r.json()["data"]["temp_password"] == "20242025"
    assert store.sign_in_with_password("kid@school.com", "20242025").user_id == r.json()["data"]["id"]


@pytest.mark.anyio
async def test_unknown_class_rolls_back_account(school, store):
    _, _, token = school
    body = {"full_name": "x", "class_id": "missing", "email": "kid@school.com", "password": "secret123"}
    async with _client(token) as client:
        r = await client.post("/api/admin/students", json=body)
    assert r.status_code == 400
    assert "students_class_id_fkey" in r.json()["error"]
    assert store.list_profiles() and all(p.role != "student" for p in store.list_profiles())
    with pytest.raises(InvalidCredentials):
        store.sign_in_with_password("kid@school.com", "secret123")


@pytest.mark.anyio
async def test_import_reports_each_row(school, repo):
    school_id, class_id, token = school
    data = _workbook(
        [
            ("ليلى حسن", 1300, "أول ابتدائي", "1A"),
            ("مروان", None, "أول ابتدائي", "9Z"),
            (None, None, "أول ابتدائي", "1A"),
            (None, None, None, None),
        ]
    )
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", files=_upload(data))
    assert r.status_code == 200
    results = r.json()["data"]
    assert [row["status"] for row in results] == ["ok", "failed", "failed"]
    assert results[0]["login_email"] == f"student.1300@{GENERATED_EMAIL_DOMAIN}"
    assert results[0]["email_is_generated"] is True
    assert results[1]["reason"] == "class not found"
    assert results[2]["reason"] == "missing full_name/grade_name/class_name"

    [row] = repo.list_students(school_id)
    assert row["class_id"] == class_id
    assert row["student_code"] == "1300"


@pytest.mark.anyio
async def test_import_duplicate_email_fails_only_that_row(school):
    _, _, token = school
    data = _workbook(
        [("أ", "kid@school.com", "أول ابتدائي", "1A"), ("ب", "kid@school.com", "أول ابتدائي", "1A")],
        headers=("full_name", "email", "grade_name", "class_name"),
    )
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", files=_upload(data))
    results = r.json()["data"]
    # Second auth account with the same email is rejected
    assert [row["status"] for row in results] == ["ok", "failed"]
    assert "already been registered" in results[1]["reason"]


@pytest.mark.anyio
async def test_import_requires_file(school):
    _, _, token = school
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", data={"other": "x"})
    assert r.status_code == 400
    assert r.json() == {"error": "file is required"}


@pytest.mark.anyio
async def test_import_rejects_non_excel(school):
    _, _, token = school
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", files={"file": ("x.xlsx", b"plain text", "text/plain")})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid Excel file"}


@pytest.mark.anyio
async def test_import_requires_students_sheet(school):
    _, _, token = school
    data = _workbook([("x", "1", "أول ابتدائي", "1A")], sheet="Sheet1")
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", files=_upload(data))
    assert r.status_code == 400
    assert r.json() == {"error": "Sheet 'students' not found"}


@pytest.mark.anyio
async def test_import_with_header_only_has_no_rows(school):
    _, _, token = school
    async with _client(token) as client:
        r = await client.post("/api/admin/students/import", files=_upload(_workbook([])))
    assert r.status_code == 400
    assert r.json() == {"error": "No rows"}


@pytest.mark.anyio
async def test_template_lists_columns_and_school_classes(school, accounts, repo):
    school_id, class_id, token = school
    other = accounts.school(name="أخرى")
    repo.create_class(other, grade_id=repo.create_grade(other, name="ثاني")["id"], name="2B")["id"]
    async with _client(token) as client:
        r = await client.get("/api/admin/students/template")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith(XLSX_MEDIA_TYPE)
    assert r.headers["content-disposition"] == 'attachment; filename="students_template.xlsx"'
    assert r.headers.get("Cache-Control") == "private, no-store"

    wb = load_workbook(BytesIO(r.content), read_only=True)
    students = list(wb["students"].iter_rows(values_only=True))
    assert list(students[0]) == list(STUDENT_COLUMNS)
    assert len(students) == 2
    classes = list(wb["classes"].iter_rows(values_only=True))
    assert classes[1:] == [(class_id, "1A", "أول ابتدائي")]


@pytest.mark.anyio
async def test_students_page_lists_own_school_only(school, accounts, repo):
    school_id, class_id, token = school
    repo.insert_student({"student_id": "s-1", "school_id": school_id, "class_id": class_id, "student_code": "A1"})
    other = accounts.school(name="أخرى")
    other_class = repo.create_class(other, grade_id=repo.create_grade(other, name="ثاني")["id"], name="2B")["id"]
    repo.insert_student({"student_id": "s-2", "school_id": other, "class_id": other_class, "student_code": "B2"})
    async with _client(token) as client:
        r = await client.get("/admin/students")
    assert r.status_code == 200
    assert "A1" in r.text
    assert "B2" not in r.text
    assert 'href="/api/admin/students/template"' in r.text
