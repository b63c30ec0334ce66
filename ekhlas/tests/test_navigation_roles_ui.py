"""
Sidebar navigation (role based).

Verifies that each role's menu stays inside its own allowed prefix, keeps its
order, highlights exactly one active link, and that unknown roles get no menu.
"""

import httpx
import pytest
from httpx import ASGITransport

from ekhlas.identity_access.domain import ROLES
from ekhlas.identity_access.routing import DEFAULT_ROUTE_TABLE, decide, match_prefix
from ekhlas.identity_access.sessions import SESSION_COOKIE_NAME
from ekhlas.web import main
from ekhlas.web.components.navigation import NAV, Navigation, active_href, nav_items_for


pytestmark = pytest.mark.anyio("asyncio")


def _pos(html: str, label: str) -> int:
    """Index of a sidebar label within its nav-text span."""
    return html.find(f'nav-text">{label}')


def test_every_role_has_a_menu():
    assert set(NAV) == set(ROLES)


@pytest.mark.parametrize("role", ROLES)
def test_menu_hrefs_lie_under_allowed_prefix(role: str):
    prefix = DEFAULT_ROUTE_TABLE.allowed_prefix(role)
    for item in nav_items_for(role):
        assert match_prefix(item.href, prefix), item.href
        assert decide(item.href, "u-1", role).allowed


@pytest.mark.parametrize("role", ROLES)
def test_menu_starts_with_role_home(role: str):
    assert nav_items_for(role)[0].href == DEFAULT_ROUTE_TABLE.home_path(role)


def test_unknown_or_missing_role_has_no_menu():
    assert nav_items_for(None) == []
    assert nav_items_for("janitor") == []
    html = Navigation({"role": "janitor", "name": "X"}, "/").render()
    assert "لا توجد قائمة" in html
    assert "sidebar-link active" not in html


def test_active_link_prefers_longest_match():
    items = nav_items_for("hr")
    assert active_href(items, "/hr/appointments/slots") == "/hr/appointments/slots"
    assert active_href(items, "/hr/appointments/2025") == "/hr/appointments"
    assert active_href(items, "/hr/teacher-efficiency/t-9") == "/hr/teacher-efficiency"
    assert active_href(items, "/hrx") is None


def test_navigation_escapes_user_name():
    html = Navigation({"role": "teacher", "name": "<script>x</script>"}, "/teacher").render()
    assert "<script>x</script>" not in html
    assert "&lt;script&gt;" in html


@pytest.mark.anyio
async def test_sidebar_for_hr_contains_expected_items_in_order(accounts):
    _, token = accounts.user("hr", tenant_id=accounts.school(), name="موظف HR")
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as c:
        c.cookies.set(SESSION_COOKIE_NAME, token)
        r = await c.get("/hr")

    assert r.status_code == 200
    html = r.text
    positions = [_pos(html, label) for label in ("لوحة HR", "إجراءات الطلاب", "كفاءة المعلمين", "مواعيد أولياء الأمور")]
    assert all(p != -1 for p in positions)
    assert positions == sorted(positions)

    # Other roles' areas never show up
    assert 'href="/admin' not in html
    assert 'href="/platform' not in html

    home_link = html.split('<a href="/hr"', 1)[1].split("</a>", 1)[0]
    assert 'aria-current="page"' in home_link
    assert "sidebar-link active" in home_link
    assert html.count('aria-current="page"') == 1


@pytest.mark.anyio
async def test_sidebar_marks_nested_page_active(accounts):
    _, token = accounts.user("teacher", tenant_id=accounts.school())
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as c:
        c.cookies.set(SESSION_COOKIE_NAME, token)
        r = await c.get("/teacher/classes/c-1/subject/s-1")
    assert r.status_code == 200
    link = r.text.split('<a href="/teacher/classes"', 1)[1].split("</a>", 1)[0]
    assert "sidebar-link active" in link


@pytest.mark.anyio
@pytest.mark.parametrize("role", ROLES)
async def test_every_menu_entry_renders(accounts, role: str):
    tenant = None if role == "platform_admin" else accounts.school()
    _, token = accounts.user(role, tenant_id=tenant)
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as c:
        c.cookies.set(SESSION_COOKIE_NAME, token)
        for item in nav_items_for(role):
            r = await c.get(item.href, follow_redirects=False)
            assert r.status_code == 200, item.href
            assert "تسجيل الخروج" in r.text
