"""CSV / Excel export of a loaded fee report."""

import csv
import io
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

from fastapi import status
from openpyxl import Workbook
from openpyxl.styles import Font

from backoffice.core.config import settings
from backoffice.core.enums import ExportFormat, ReportShape
from backoffice.core.exceptions import ServiceError

from .schemas import ReportResult

CENT = Decimal("0.01")
MISSING = "N/A"

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class Column(NamedTuple):
    label: str
    getter: Callable[[Any], Any]
    numeric: bool = False


LINE_COLUMNS: Sequence[Column] = (
    Column("Roll No.", lambda r: r.roll_number),
    Column("Student Name", lambda r: r.student_name),
    Column("Father Name", lambda r: r.father_name),
    Column("Class", lambda r: r.class_name),
    Column("Section", lambda r: r.division),
    Column("Fee Head", lambda r: r.head),
    Column("Fee Type", lambda r: r.fee_type_name),
    Column("Installment", lambda r: r.installment_title),
    Column("Assigned Amount", lambda r: r.assigned_amount, True),
    Column("Paid Amount", lambda r: r.paid_amount, True),
    Column("Concession", lambda r: r.total_concession, True),
    Column("Due Amount", lambda r: r.due_amount, True),
    Column("Status", lambda r: r.status),
    Column("Due Date", lambda r: r.due_date),
    Column("Payment Date", lambda r: r.payment_date),
    Column("Payment Mode", lambda r: r.payment_mode),
)

STUDENT_COLUMNS: Sequence[Column] = (
    Column("Roll No.", lambda r: r.roll_number),
    Column("Student Name", lambda r: r.student_name),
    Column("Father Name", lambda r: r.father_name),
    Column("Class", lambda r: r.class_name),
    Column("Section", lambda r: r.division),
    Column("Mobile No.", lambda r: r.contact_number),
    Column("Total Assigned", lambda r: r.total_assigned, True),
    Column("Total Paid", lambda r: r.total_paid, True),
    Column("Total Concession", lambda r: r.total_concession, True),
    Column("Due Amount", lambda r: r.total_due, True),
)

CATEGORY_COLUMNS: Sequence[Column] = (
    Column("Fee Head", lambda r: r.head),
    Column("Total Payable", lambda r: r.total_payable, True),
    Column("Total Paid", lambda r: r.total_paid, True),
    Column("Total Concession", lambda r: r.total_concession, True),
    Column("Total Due", lambda r: r.total_due, True),
)


def money(value: Optional[Decimal]) -> Decimal:
    return (value if value is not None else Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)


def currency_format(symbol: Optional[str] = None) -> str:
    """Excel number format for amount cells, e.g. "₹"#,##0.00. Cell values stay plain numbers."""
    symbol = settings.currency_symbol if symbol is None else symbol
    return f'"{symbol}"#,##0.00' if symbol else "#,##0.00"


def _text(value: Any) -> str:
    if value is None or value == "":
        return MISSING
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _columns_and_rows(result: ReportResult) -> Tuple[Sequence[Column], List[Any]]:
    if result.shape == ReportShape.BY_STUDENT:
        return STUDENT_COLUMNS, list(result.students)
    if result.shape == ReportShape.BY_CATEGORY:
        return CATEGORY_COLUMNS, list(result.categories.heads) if result.categories else []
    return LINE_COLUMNS, list(result.lines)


def export_filename(mode: str, fmt: ExportFormat, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{mode.replace('-', '_')}_report_{today.isoformat()}.{fmt.value}"


def render_csv(columns: Sequence[Column], rows: Sequence[Any]) -> str:
    """
    Header of labels, then one line per row. Text cells are always double-quoted with
    embedded quotes doubled; amounts are unquoted with two decimals.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow([c.label for c in columns])
    for row in rows:
        writer.writerow([
            money(c.getter(row)) if c.numeric else _text(c.getter(row))
            for c in columns
        ])
    return buf.getvalue()


def render_xlsx(
    title: str,
    columns: Sequence[Column],
    rows: Sequence[Any],
    symbol: Optional[str] = None,
) -> bytes:
    number_format = currency_format(symbol)
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append([c.label for c in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([
            money(c.getter(row)) if c.numeric else _text(c.getter(row))
            for c in columns
        ])
    for idx, c in enumerate(columns, start=1):
        if c.numeric:
            for (cell,) in ws.iter_rows(min_row=2, min_col=idx, max_col=idx):
                cell.number_format = number_format
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_report(
    result: ReportResult,
    fmt: ExportFormat = ExportFormat.CSV,
    today: Optional[date] = None,
) -> Tuple[bytes, str, str]:
    """Returns (content, media type, filename). Empty reports are refused, never written header-only."""
    if not result.ok:
        raise ServiceError(result.message or "Report could not be loaded", result.status_code)
    columns, rows = _columns_and_rows(result)
    if not rows:
        raise ServiceError("No data to export", status.HTTP_400_BAD_REQUEST)
    if len(rows) > settings.export_max_rows:
        raise ServiceError(
            f"Report has {len(rows)} rows; narrow the filters to at most {settings.export_max_rows}",
            status.HTTP_400_BAD_REQUEST,
        )
    filename = export_filename(result.mode, fmt, today)
    if fmt == ExportFormat.XLSX:
        return render_xlsx(result.mode, columns, rows), XLSX_MEDIA_TYPE, filename
    return render_csv(columns, rows).encode("utf-8"), CSV_MEDIA_TYPE, filename
