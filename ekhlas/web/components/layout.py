"""
Layout component: assembles a complete RTL HTML page around pre-rendered content.
"""

from typing import Any, Dict, Optional

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Full page: head, optional sidebar, main content and footer."""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        show_nav: bool = True,
        current_path: str = "/",
    ):
        """
        Args:
            title: text for <title>, escaped
            content: already rendered HTML for <main>
            user: the gate-resolved user (`request.state.user`), None on public pages
            show_nav: render the role sidebar
            current_path: request path, selects the active menu entry
        """
        self.title = title
        self.content = content
        self.user = user
        self.show_nav = show_nav
        self.current_path = current_path

    def render(self) -> str:
        nav_html = Navigation(self.user, self.current_path).render() if self.show_nav else ""
        body_class = "with-sidebar" if self.show_nav else "no-sidebar"
        return f"""<!DOCTYPE html>
<html lang="ar" dir="rtl">
<head>
    {self._render_head()}
</head>
<body class="{body_class}">
    <a href="#main-content" class="skip-link">تخطي إلى المحتوى</a>

    {nav_html}

    <main id="main-content" class="main-content" role="main">
        {self.content}
        <footer class="content-footer" role="contentinfo">
            <p class="text-muted">© مدارس الإخلاص</p>
        </footer>
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="description" content="إدارة مدارس الإخلاص - منصة موحدة لإدارة المدارس">
    <title>{self.escape(self.title)} - إدارة مدارس الإخلاص</title>
    <link rel="stylesheet" href="/static/css/ekhlas.css?v=1">
    <script src="/static/js/ekhlas.js?v=1" defer></script>
    """
