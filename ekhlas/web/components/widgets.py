"""
Small page widgets shared by the dashboards: header, KPI card, data table.
"""
from typing import Any, Mapping, Optional, Sequence, Tuple

from .base import Component


class PageHeader(Component):
    def __init__(self, title: str, subtitle: Optional[str] = None):
        self.title = title
        self.subtitle = subtitle

    def render(self) -> str:
        subtitle = f'<p class="page-subtitle text-muted">{self.escape(self.subtitle)}</p>' if self.subtitle else ""
        return f"""
        <header class="page-header">
            <h1>{self.escape(self.title)}</h1>
            {subtitle}
        </header>"""


class KpiCard(Component):
    def __init__(self, label: str, value: Any, hint: Optional[str] = None):
        self.label = label
        self.value = value
        self.hint = hint

    def render(self) -> str:
        hint = f'<div class="kpi-hint">{self.escape(self.hint)}</div>' if self.hint else ""
        return f"""
            <div class="card kpi-card">
                <div class="kpi-label">{self.escape(self.label)}</div>
                <div class="kpi-value">{self.escape(self.value)}</div>
                {hint}
            </div>"""


class DataTable(Component):
    """Table over a list of row dicts.

    Args:
        columns: (row key, header label) pairs, rendered in order
        rows: row mappings; missing keys render empty
        empty_text: shown instead of the table when there are no rows
    """

    def __init__(
        self,
        columns: Sequence[Tuple[str, str]],
        rows: Sequence[Mapping[str, Any]],
        empty_text: str = "لا توجد بيانات",
    ):
        self.columns = columns
        self.rows = rows
        self.empty_text = empty_text

    def render(self) -> str:
        if not self.rows:
            return f'<div class="card empty-state">{self.escape(self.empty_text)}</div>'
        head = "".join(f'<th scope="col">{self.escape(label)}</th>' for _, label in self.columns)
        body = "".join(
            "<tr>" + "".join(f"<td>{self.escape(row.get(key))}</td>" for key, _ in self.columns) + "</tr>"
            for row in self.rows
        )
        return f"""
        <div class="table-wrap">
            <table class="data-table">
                <thead><tr>{head}</tr></thead>
                <tbody>{body}</tbody>
            </table>
        </div>"""
