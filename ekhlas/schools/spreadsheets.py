"""
Excel helpers for bulk student import/export (openpyxl).

- `build_students_template(classes)` returns xlsx bytes with a `students`
  sheet (header + one example row) and a `classes` sheet listing the school's
  grade/class names so admins can copy exact values.
- `read_sheet_rows(data, sheet)` returns one dict per non-blank row, keyed by
  the header row. Every value is a stripped string; blank cells become "".
"""
from __future__ import annotations

from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

STUDENTS_SHEET = "students"
CLASSES_SHEET = "classes"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Header order of the import template. grade_name + class_name locate the class.
STUDENT_COLUMNS: tuple[str, ...] = (
    "full_name",
    "first_name",
    "last_name",
    "student_code",
    "phone",
    "email",
    "gender",
    "date_of_birth",
    "nationality",
    "national_id",
    "governorate",
    "city",
    "address",
    "postal_code",
    "previous_school",
    "enrollment_date",
    "status",
    "emergency_contact_name",
    "emergency_contact_phone",
    "notes",
    "grade_name",
    "class_name",
)

EXAMPLE_ROW: Mapping[str, str] = {
    "full_name": "مثال: أحمد محمد",
    "first_name": "أحمد",
    "last_name": "محمد",
    "student_code": "1250",
    "phone": "010...",
    "email": "اختياري",
    "gender": "male/female",
    "date_of_birth": "2013-05-20",
    "nationality": "Egyptian",
    "national_id": "اختياري",
    "governorate": "القاهرة",
    "city": "مدينة نصر",
    "address": "العنوان بالتفصيل",
    "postal_code": "اختياري",
    "previous_school": "اختياري",
    "enrollment_date": "2025-09-01",
    "status": "active",
    "emergency_contact_name": "ولي أمر",
    "emergency_contact_phone": "010...",
    "notes": "اختياري",
    "grade_name": "مثال: أول ابتدائي",
    "class_name": "مثال: 1A",
}

CLASS_COLUMNS: tuple[str, ...] = ("class_id", "class_name", "grade_name")


class SpreadsheetError(ValueError):
    """The uploaded file is not a readable workbook or lacks the expected sheet."""


def _write_sheet(ws, headers: Iterable[str], rows: Iterable[Mapping[str, Any]]) -> None:
    headers = list(headers)
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([row.get(h, "") for h in headers])
    for idx, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = max(14, len(header) + 4)


def build_students_template(classes: Iterable[Mapping[str, Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = STUDENTS_SHEET
    _write_sheet(ws, STUDENT_COLUMNS, [EXAMPLE_ROW])
    _write_sheet(wb.create_sheet(CLASSES_SHEET), CLASS_COLUMNS, classes)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_sheet_rows(data: bytes, sheet: str = STUDENTS_SHEET) -> List[Dict[str, str]]:
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise SpreadsheetError("Invalid Excel file") from exc
    try:
        if sheet not in wb.sheetnames:
            raise SpreadsheetError(f"Sheet '{sheet}' not found")
        rows = wb[sheet].iter_rows(values_only=True)
        header_row = next(rows, None)
        if not header_row:
            return []
        headers = [cell_text(h) for h in header_row]
        result: List[Dict[str, str]] = []
        for raw in rows:
            values = [cell_text(v) for v in raw]
            if not any(values):
                continue
            record = {h: "" for h in headers if h}
            for header, value in zip(headers, values):
                if header:
                    record[header] = value
            result.append(record)
        return result
    finally:
        wb.close()


__all__ = [
    "STUDENTS_SHEET",
    "CLASSES_SHEET",
    "XLSX_MEDIA_TYPE",
    "STUDENT_COLUMNS",
    "CLASS_COLUMNS",
    "SpreadsheetError",
    "build_students_template",
    "cell_text",
    "read_sheet_rows",
]
