from datetime import date
from decimal import Decimal
from io import BytesIO
from uuid import uuid4

import pytest
from openpyxl import load_workbook

from backoffice.api.v1.fee_reports.export import (
    STUDENT_COLUMNS,
    currency_format,
    export_filename,
    export_report,
    money,
    render_csv,
)
from backoffice.api.v1.fee_reports.schemas import ReportResult, StudentDueRow
from backoffice.core.enums import ExportFormat, ReportShape
from backoffice.core.exceptions import ServiceError


def _dues_result(*rows: StudentDueRow) -> ReportResult:
    return ReportResult(ok=True, mode="headwise-dues", shape=ReportShape.BY_STUDENT, students=list(rows))


def _row(**overrides) -> StudentDueRow:
    values = dict(
        student_id=uuid4(),
        student_name="Asha Verma",
        father_name="Ravi Verma",
        roll_number="1",
        class_name="10",
        division="A",
        total_assigned=Decimal("1000"),
        total_paid=Decimal("400"),
        total_concession=Decimal("150"),
        total_due=Decimal("450"),
    )
    values.update(overrides)
    return StudentDueRow(**values)


def test_filename_uses_mode_and_date() -> None:
    assert export_filename("headwise-dues", ExportFormat.CSV, date(2026, 4, 5)) == "headwise_dues_report_2026-04-05.csv"
    assert export_filename("collection", ExportFormat.XLSX, date(2026, 4, 5)) == "collection_report_2026-04-05.xlsx"


def test_money_rounds_half_up() -> None:
    assert money(Decimal("2.345")) == Decimal("2.35")
    assert money(None) == Decimal("0.00")


def test_currency_format() -> None:
    assert currency_format("₹") == '"₹"#,##0.00'
    assert currency_format("") == "#,##0.00"


def test_csv_quotes_text_and_leaves_amounts_bare() -> None:
    body = render_csv(STUDENT_COLUMNS, [_row(student_name='Asha "Ash" Verma')])
    header, line = body.strip().split("\n")
    assert header.startswith('"Roll No.","Student Name","Father Name"')
    assert line == '"1","Asha ""Ash"" Verma","Ravi Verma","10","A","N/A",1000.00,400.00,150.00,450.00'


def test_export_refuses_empty_report() -> None:
    with pytest.raises(ServiceError) as exc:
        export_report(_dues_result())
    assert exc.value.message == "No data to export"
    assert exc.value.status_code == 400


def test_export_refuses_failed_report() -> None:
    failed = ReportResult(ok=False, message="Admin not associated with a school.", mode="headwise-dues", status_code=403)
    with pytest.raises(ServiceError) as exc:
        export_report(failed)
    assert exc.value.status_code == 403


def test_export_csv() -> None:
    content, media_type, filename = export_report(_dues_result(_row()), ExportFormat.CSV, date(2026, 4, 5))
    assert media_type.startswith("text/csv")
    assert filename == "headwise_dues_report_2026-04-05.csv"
    assert b'"Asha Verma"' in content


def test_export_xlsx() -> None:
    content, _, filename = export_report(_dues_result(_row(), _row(student_name="Bala Kumar")), ExportFormat.XLSX)
    assert filename.endswith(".xlsx")
    ws = load_workbook(BytesIO(content)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][1] == "Student Name"
    assert [r[1] for r in rows[1:]] == ["Asha Verma", "Bala Kumar"]
    assert rows[1][-1] == pytest.approx(450)
    assert ws.cell(row=2, column=len(STUDENT_COLUMNS)).number_format == currency_format()
    assert ws.cell(row=2, column=2).number_format == "General"
