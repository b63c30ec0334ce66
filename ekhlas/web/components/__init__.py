# Ekhlas component system
# Pure Python components for HTML generation

from .base import Component
from .layout import Layout
from .login_form import LoginForm
from .navigation import NAV, NavItem, NavSection, Navigation, nav_items_for, nav_sections_for
from .widgets import DataTable, KpiCard, PageHeader

__all__ = [
    "Component",
    "DataTable",
    "KpiCard",
    "Layout",
    "LoginForm",
    "NAV",
    "NavItem",
    "NavSection",
    "Navigation",
    "PageHeader",
    "nav_items_for",
    "nav_sections_for",
]
