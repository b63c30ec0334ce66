"""
Role dashboards (server-rendered pages).

Trust boundary:
    These handlers perform no authorization of their own. Every path here
    lies under one role's allowed prefix, and the gatekeeper middleware only
    forwards a request after resolving the caller's role against that prefix.
    The resolved user is read from `request.state.user`.

Most pages are placeholders for features that are not built yet; the
platform listings and the school's student list are backed by the school repo.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from ekhlas.schools.repo import RepoError
from ekhlas.web.components import NAV, DataTable, KpiCard, Layout, PageHeader
from ekhlas.web.components.navigation import ROLE_LABELS, title_for_path
from .api_authz import run_blocking

dashboards_router = APIRouter(tags=["Dashboards"])
logger = logging.getLogger("ekhlas.web")

_NO_STORE = {"Cache-Control": "private, no-store"}


def _user(request: Request) -> Optional[Dict[str, Any]]:
    return getattr(request.state, "user", None)


def _repo():
    from ekhlas.web import main as mod

    return mod.SCHOOL_REPO


def _page(request: Request, title: str, content: str) -> HTMLResponse:
    layout = Layout(title=title, content=content, user=_user(request), current_path=request.url.path)
    return HTMLResponse(content=layout.render(), headers=_NO_STORE)


def _placeholder(title: str, subtitle: Optional[str] = None) -> str:
    return (
        PageHeader(title, subtitle).render()
        + '<div class="card empty-state">هذه الصفحة قيد الإنشاء.</div>'
    )


def _error_card(message: str) -> str:
    return f'<div class="alert alert-error" role="alert">تعذر تحميل البيانات: {PageHeader.escape(message)}</div>'


# --- Navigation pages -------------------------------------------------------------
# Every menu entry gets a page; entries with real content are registered below
# and skipped here.

_CUSTOM_PAGES = {"/platform", "/platform/schools", "/platform/users", "/admin/students", "/admin/structure"}


def _make_placeholder_handler(title: str, role: str):
    async def handler(request: Request):
        return _page(request, title, _placeholder(title, ROLE_LABELS.get(role)))

    return handler


for _role, _sections in NAV.items():
    for _section in _sections:
        for _item in _section.items:
            if _item.href in _CUSTOM_PAGES:
                continue
            dashboards_router.add_api_route(
                _item.href,
                _make_placeholder_handler(_item.title, _role),
                methods=["GET"],
                response_class=HTMLResponse,
                name=f"page:{_item.href}",
            )


@dashboards_router.get("/platform", response_class=HTMLResponse)
async def platform_home(request: Request):
    repo = _repo()
    try:
        schools = await run_blocking(repo.list_schools)
        profiles = await run_blocking(repo.list_profiles)
    except RepoError as exc:
        logger.warning("Platform overview failed: %s", exc.message)
        return _page(request, "لوحة المنصة", PageHeader("لوحة المنصة").render() + _error_card(exc.message))
    active = sum(1 for p in profiles if p.get("is_active", True))
    cards = "".join(
        [
            KpiCard("المدارس", len(schools)).render(),
            KpiCard("المستخدمين", len(profiles), hint=f"نشط: {active}").render(),
        ]
    )
    content = PageHeader("لوحة المنصة", "نظرة عامة على المدارس والحسابات").render() + f'<div class="kpi-grid">{cards}</div>'
    return _page(request, "لوحة المنصة", content)


@dashboards_router.get("/platform/schools", response_class=HTMLResponse)
async def platform_schools(request: Request):
    title = title_for_path("/platform/schools") or "المدارس"
    try:
        schools = await run_blocking(_repo().list_schools)
    except RepoError as exc:
        logger.warning("School listing failed: %s", exc.message)
        return _page(request, title, PageHeader(title).render() + _error_card(exc.message))
    table = DataTable(
        [("name", "الاسم"), ("code", "الكود"), ("address", "العنوان"), ("phone", "الهاتف")],
        schools,
        empty_text="لا توجد مدارس بعد",
    )
    return _page(request, title, PageHeader(title).render() + table.render())


@dashboards_router.get("/platform/users", response_class=HTMLResponse)
async def platform_users(request: Request):
    title = title_for_path("/platform/users") or "المستخدمين"
    try:
        profiles = await run_blocking(_repo().list_profiles)
    except RepoError as exc:
        logger.warning("User listing failed: %s", exc.message)
        return _page(request, title, PageHeader(title).render() + _error_card(exc.message))
    rows = [
        {
            **p,
            "role_label": ROLE_LABELS.get(p.get("role") or "", p.get("role") or "—"),
            "active_label": "نعم" if p.get("is_active", True) else "لا",
        }
        for p in profiles
    ]
    table = DataTable(
        [("full_name", "الاسم"), ("role_label", "الدور"), ("school_id", "المدرسة"), ("phone", "الهاتف"), ("active_label", "نشط")],
        rows,
        empty_text="لا يوجد مستخدمون",
    )
    return _page(request, title, PageHeader(title).render() + table.render())


@dashboards_router.get("/admin/students", response_class=HTMLResponse)
async def admin_students(request: Request):
    title = title_for_path("/admin/students") or "الطلاب"
    tenant = (_user(request) or {}).get("tenant_id")
    header = PageHeader(title, "إضافة الطلاب فرديًا أو عبر ملف Excel").render()
    actions = '<p class="page-actions"><a class="btn" href="/api/admin/students/template">تحميل قالب Excel</a></p>'
    if not tenant:
        return _page(request, title, header + '<div class="card empty-state">الحساب غير مرتبط بمدرسة.</div>')
    try:
        students = await run_blocking(_repo().list_students, tenant)
    except RepoError as exc:
        logger.warning("Student listing failed for %s: %s", tenant, exc.message)
        return _page(request, title, header + _error_card(exc.message))
    table = DataTable(
        [("student_code", "الكود"), ("first_name", "الاسم الأول"), ("last_name", "اسم العائلة"), ("status", "الحالة")],
        students,
        empty_text="لا يوجد طلاب بعد",
    )
    return _page(request, title, header + actions + table.render())


@dashboards_router.get("/admin/structure", response_class=HTMLResponse)
async def admin_structure(request: Request):
    title = title_for_path("/admin/structure") or "هيكل المدرسة"
    tenant = (_user(request) or {}).get("tenant_id")
    header = PageHeader(title, "المراحل والفصول").render()
    if not tenant:
        return _page(request, title, header + '<div class="card empty-state">الحساب غير مرتبط بمدرسة.</div>')
    repo = _repo()
    try:
        grades = await run_blocking(repo.list_grades, tenant)
        classes = await run_blocking(repo.list_classes, tenant)
    except RepoError as exc:
        logger.warning("Structure listing failed for %s: %s", tenant, exc.message)
        return _page(request, title, header + _error_card(exc.message))
    grade_names = {g["id"]: g.get("name") for g in grades}
    class_rows = [{**c, "grade_name": grade_names.get(c.get("grade_id"), "—")} for c in classes]
    content = (
        header
        + '<h2 class="section-title">المراحل / الصفوف</h2>'
        + DataTable([("name", "المرحلة"), ("sort_order", "الترتيب")], grades, empty_text="لا يوجد بيانات").render()
        + '<h2 class="section-title">الفصول</h2>'
        + DataTable(
            [("name", "الفصل"), ("grade_name", "المرحلة"), ("sort_order", "الترتيب")],
            class_rows,
            empty_text="لا يوجد بيانات",
        ).render()
    )
    return _page(request, title, content)


# --- Detail pages -----------------------------------------------------------------


@dashboards_router.get("/hr/teacher-efficiency/{teacher_id}", response_class=HTMLResponse)
async def hr_teacher_efficiency_detail(request: Request, teacher_id: str):
    return _page(request, "كفاءة المعلم", _placeholder("كفاءة المعلم", f"المعلم: {teacher_id}"))


@dashboards_router.get("/hr/student-reports/{student_id}", response_class=HTMLResponse)
async def hr_student_report_detail(request: Request, student_id: str):
    return _page(request, "تقرير الطالب", _placeholder("تقرير الطالب", f"الطالب: {student_id}"))


@dashboards_router.get("/hod/teacher/{teacher_id}", response_class=HTMLResponse)
async def hod_teacher_detail(request: Request, teacher_id: str):
    return _page(request, "ملف المعلم", _placeholder("ملف المعلم", f"المعلم: {teacher_id}"))


_SUBJECT_TABS = (
    ("", "المادة"),
    ("attendance", "الحضور"),
    ("behavior", "السلوك"),
    ("notes", "الملاحظات"),
)


def _subject_page(request: Request, class_id: str, subject_id: str, tab: str) -> HTMLResponse:
    base = f"/teacher/classes/{class_id}/subject/{subject_id}"
    links = "".join(
        f'<a class="tab{" active" if key == tab else ""}" href="{PageHeader.escape(base + ("/" + key if key else ""))}">'
        f"{PageHeader.escape(label)}</a>"
        for key, label in _SUBJECT_TABS
    )
    title = dict(_SUBJECT_TABS)[tab]
    content = f'<nav class="tabs" aria-label="أقسام المادة">{links}</nav>' + _placeholder(
        title, f"الفصل: {class_id} · المادة: {subject_id}"
    )
    return _page(request, title, content)


@dashboards_router.get("/teacher/classes/{class_id}/subject/{subject_id}", response_class=HTMLResponse)
async def teacher_subject(request: Request, class_id: str, subject_id: str):
    return _subject_page(request, class_id, subject_id, "")


@dashboards_router.get("/teacher/classes/{class_id}/subject/{subject_id}/attendance", response_class=HTMLResponse)
async def teacher_subject_attendance(request: Request, class_id: str, subject_id: str):
    return _subject_page(request, class_id, subject_id, "attendance")


@dashboards_router.get("/teacher/classes/{class_id}/subject/{subject_id}/behavior", response_class=HTMLResponse)
async def teacher_subject_behavior(request: Request, class_id: str, subject_id: str):
    return _subject_page(request, class_id, subject_id, "behavior")


@dashboards_router.get("/teacher/classes/{class_id}/subject/{subject_id}/notes", response_class=HTMLResponse)
async def teacher_subject_notes(request: Request, class_id: str, subject_id: str):
    return _subject_page(request, class_id, subject_id, "notes")
