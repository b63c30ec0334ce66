"""
Navigation component for Ekhlas.

Role-based sidebar: each role sees the grouped menu sections of its own area.
The menu is cosmetic only. Hiding a link does not protect its URL; the
gatekeeper middleware and the per-endpoint API checks do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ekhlas.identity_access.routing import match_prefix
from .base import Component


@dataclass(frozen=True)
class NavItem:
    title: str
    href: str
    icon: str = ""


@dataclass(frozen=True)
class NavSection:
    title: str
    items: tuple[NavItem, ...]


NAV: Mapping[str, tuple[NavSection, ...]] = {
    "platform_admin": (
        NavSection("المنصة", (
            NavItem("الرئيسية", "/platform", "🏠"),
            NavItem("المدارس", "/platform/schools", "🏫"),
            NavItem("المستخدمين", "/platform/users", "👤"),
        )),
    ),
    "school_admin": (
        NavSection("الإدارة", (
            NavItem("لوحة المدير", "/admin", "🏠"),
            NavItem("هيكل المدرسة", "/admin/structure", "🏗️"),
            NavItem("العام الدراسي", "/admin/academic", "📅"),
        )),
        NavSection("الطلاب والمعلمون", (
            NavItem("الطلاب", "/admin/students", "🎒"),
            NavItem("توزيع المعلمين", "/admin/assignments", "🧑‍🏫"),
            NavItem("مواد الفصول", "/admin/class-subjects", "📚"),
        )),
    ),
    "hr": (
        NavSection("الموارد البشرية", (
            NavItem("لوحة HR", "/hr", "🏠"),
        )),
        NavSection("الطلاب", (
            NavItem("إجراءات الطلاب", "/hr/student-actions", "📝"),
            NavItem("تقارير الطلاب", "/hr/student-reports", "📊"),
        )),
        NavSection("المعلمون", (
            NavItem("كفاءة المعلمين", "/hr/teacher-efficiency", "📈"),
            NavItem("إسناد المعلمين لمدير القسم", "/hr/hod-assignments", "🔗"),
        )),
        NavSection("أولياء الأمور", (
            NavItem("مواعيد أولياء الأمور", "/hr/appointments", "📆"),
            NavItem("إدارة Slots", "/hr/appointments/slots", "🕒"),
            NavItem("ربط ولي الأمر بالأبناء", "/hr/parent-links", "👪"),
        )),
    ),
    "hod": (
        NavSection("القسم", (
            NavItem("لوحة مدير القسم", "/hod", "🏠"),
            NavItem("فريق المعلمين", "/hod/team", "👥"),
            NavItem("غياب المعلمين (يومي)", "/hod/attendance", "🗓️"),
            NavItem("تقييمات المعلمين", "/hod/reviews", "⭐"),
        )),
    ),
    "teacher": (
        NavSection("التدريس", (
            NavItem("لوحة المعلم", "/teacher", "🏠"),
            NavItem("فصولي وموادي", "/teacher/classes", "📚"),
        )),
    ),
    "student": (
        NavSection("الطالب", (
            NavItem("لوحة الطالب", "/student", "🏠"),
            NavItem("درجاتي", "/student/grades", "📝"),
            NavItem("الحضور", "/student/attendance", "🗓️"),
            NavItem("السلوك والملاحظات", "/student/behavior", "💬"),
            NavItem("التقرير", "/student/report", "📄"),
        )),
    ),
    "parent": (
        NavSection("ولي الأمر", (
            NavItem("لوحة ولي الأمر", "/parent", "🏠"),
            NavItem("أبنائي", "/parent/children", "👪"),
            NavItem("تقارير الأبناء", "/parent/reports", "📊"),
            NavItem("حجز موعد HR", "/parent/appointments", "📆"),
        )),
    ),
}

ROLE_LABELS: Mapping[str, str] = {
    "platform_admin": "مدير المنصة",
    "school_admin": "مدير المدرسة",
    "hr": "الموارد البشرية",
    "teacher": "معلم",
    "hod": "مدير القسم",
    "student": "طالب",
    "parent": "ولي أمر",
}


def nav_sections_for(role: Optional[str]) -> tuple[NavSection, ...]:
    """Menu sections for a role; unknown or missing roles get no menu."""
    return NAV.get(role or "", ())


def nav_items_for(role: Optional[str]) -> List[NavItem]:
    return [item for section in nav_sections_for(role) for item in section.items]


def title_for_path(path: str) -> Optional[str]:
    for sections in NAV.values():
        for section in sections:
            for item in section.items:
                if item.href == path:
                    return item.title
    return None


def active_href(items: List[NavItem], current_path: str) -> Optional[str]:
    """Pick the single active href: exact match, else the longest exact-or-child match."""
    best: Optional[str] = None
    for item in items:
        if item.href == current_path:
            return item.href
        if match_prefix(current_path, item.href) and (best is None or len(item.href) > len(best)):
            best = item.href
    return best


class Navigation(Component):
    """Sidebar with the signed-in user's role menu."""

    def __init__(self, user: Optional[Dict[str, Any]] = None, current_path: str = "/"):
        """
        Args:
            user: dict with 'role' and 'name' keys (None for public pages)
            current_path: URL path used for active link highlighting
        """
        self.user = user
        self.current_path = current_path

    def render(self) -> str:
        return f"""
    <button class="sidebar-toggle" data-action="sidebar-toggle" aria-label="إظهار القائمة">
        <span class="sidebar-toggle-icon">☰</span>
    </button>
    {self.render_aside()}
    <div class="sidebar-overlay" data-action="sidebar-close"></div>"""

    def render_aside(self) -> str:
        """Render only the <aside> element."""
        data = self.user or {}
        role = data.get("role")
        sections = nav_sections_for(role)
        current = active_href(nav_items_for(role), self.current_path)
        if sections:
            body = "".join(self._render_section(section, current) for section in sections)
        else:
            body = '<div class="sidebar-empty">لا توجد قائمة</div>'
        footer = ""
        if self.user:
            body += self._render_logout()
            footer = f"""
            <div class="sidebar-footer">
                <div class="user-name">{self.escape(data.get("name", ""))}</div>
                <div class="user-role">{self.escape(ROLE_LABELS.get(role or "", "مستخدم"))}</div>
            </div>"""
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="القائمة الجانبية">
        <nav class="sidebar-nav" role="navigation" aria-label="القائمة الرئيسية">
            <div class="sidebar-header">
                <span class="sidebar-logo" aria-hidden="true">🏫</span>
                <div>
                    <div class="sidebar-title">إدارة مدارس الإخلاص</div>
                    <div class="sidebar-subtitle">School Management System</div>
                </div>
            </div>
            <div class="sidebar-items">{body}</div>{footer}
        </nav>
    </aside>"""

    def _render_section(self, section: NavSection, current: Optional[str]) -> str:
        links = "".join(self._create_nav_link(item, item.href == current) for item in section.items)
        return f"""
        <div class="sidebar-group">
            <div class="sidebar-group-title">{self.escape(section.title)}</div>
            {links}
        </div>"""

    def _create_nav_link(self, item: NavItem, is_active: bool) -> str:
        icon_html = f'<span class="nav-icon">{item.icon}</span>' if item.icon else ""
        css = self.classes("sidebar-link", active=is_active)
        aria_attr = ' aria-current="page"' if is_active else ""
        return f"""
            <a href="{self.escape(item.href)}"
               class="{css}"{aria_attr}>
                {icon_html}
                <span class="nav-text">{self.escape(item.title)}</span>
            </a>"""

    def _render_logout(self) -> str:
        """Logout link; GET /auth/logout clears the session cookie."""
        return """
            <a href="/auth/logout" class="sidebar-link sidebar-logout">
                <span class="nav-icon">🚪</span>
                <span class="nav-text">تسجيل الخروج</span>
            </a>"""
