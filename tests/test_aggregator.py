from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from backoffice.api.v1.fee_reports.aggregator import (
    UNCATEGORIZED,
    aggregate_by_category,
    aggregate_by_student,
    compute_line_due,
    derive_status,
    head_label,
    outstanding,
    resolve_head_filter,
    summarize_lines,
)
from backoffice.core.enums import FeeHeadKind, PaymentStatus


def _line(student_id, assigned, paid, concessions=(), category=None):
    return SimpleNamespace(
        student_id=student_id,
        assigned_amount=Decimal(assigned),
        paid_amount=Decimal(paid),
        concessions=[SimpleNamespace(concession_amount=Decimal(c)) for c in concessions],
        fee_category=SimpleNamespace(name=category) if category else None,
    )


def test_line_due_subtracts_paid_and_concessions() -> None:
    line = _line(uuid4(), "1000", "400", ["150"])
    assert compute_line_due(line) == Decimal("450")
    assert compute_line_due(line, include_concessions=False) == Decimal("600")


def test_missing_amounts_count_as_zero() -> None:
    line = SimpleNamespace(student_id=uuid4(), assigned_amount=None, paid_amount=None, concessions=None)
    assert compute_line_due(line) == Decimal("0")


def test_overpaid_line_is_clamped_and_dropped_from_dues() -> None:
    student_id = uuid4()
    line = _line(student_id, "1000", "1000", ["150"])
    assert compute_line_due(line) == Decimal("-150")
    assert outstanding(compute_line_due(line)) == Decimal("0")
    assert aggregate_by_student([line]) == []


def test_student_rollup_sums_lines_in_first_seen_order() -> None:
    asha, bala = uuid4(), uuid4()
    lines = [
        _line(asha, "500", "0", category="Tuition"),
        _line(bala, "300", "100"),
        _line(asha, "200", "0", category="Transport"),
    ]
    rows = aggregate_by_student(lines)
    assert [r.student_id for r in rows] == [asha, bala]
    assert rows[0].total_due == Decimal("700")
    assert rows[0].line_count == 2
    assert rows[1].total_due == Decimal("200")


def test_student_rollup_total_due_is_consistent_with_totals() -> None:
    student_id = uuid4()
    lines = [
        _line(student_id, "1000", "1000", ["100"]),
        _line(student_id, "500", "100", ["50"]),
    ]
    (row,) = aggregate_by_student(lines)
    assert row.total_due == row.total_assigned - row.total_paid - row.total_concession
    assert row.total_due == Decimal("250")


def test_student_rollup_keeps_settled_students_when_not_dues_only() -> None:
    paid_up = uuid4()
    rows = aggregate_by_student([_line(paid_up, "300", "300")], dues_only=False)
    assert len(rows) == 1
    assert rows[0].total_due == Decimal("0")


def test_student_rollup_is_additive_over_partitions() -> None:
    a, b = uuid4(), uuid4()
    first = [_line(a, "100", "20"), _line(b, "50", "0")]
    second = [_line(a, "300", "100", ["10"])]

    combined = {r.student_id: r.total_due for r in aggregate_by_student(first + second)}
    split = {}
    for part in (first, second):
        for r in aggregate_by_student(part):
            split[r.student_id] = split.get(r.student_id, Decimal("0")) + r.total_due

    assert combined == split


def test_ignoring_concessions_raises_due() -> None:
    student_id = uuid4()
    (row,) = aggregate_by_student([_line(student_id, "1000", "400", ["150"])], include_concessions=False)
    assert row.total_due == Decimal("600")
    assert row.total_concession == Decimal("0")


def test_category_rollup_groups_by_head_label() -> None:
    student_id = uuid4()
    summary = aggregate_by_category([
        _line(student_id, "1000", "400", ["150"], category="Tuition"),
        _line(student_id, "200", "0", category="Transport"),
        _line(student_id, "50", "0"),
        _line(student_id, "500", "500", category="Tuition"),
    ])
    heads = {h.head: h for h in summary.heads}
    assert list(heads) == ["Tuition", "Transport", UNCATEGORIZED]
    assert heads["Tuition"].total_payable == Decimal("1500")
    assert heads["Tuition"].total_due == Decimal("450")
    assert summary.total_payable == Decimal("1750")
    assert summary.total_due == sum((h.total_due for h in summary.heads), Decimal("0"))


def test_head_label_falls_back_to_uncategorized() -> None:
    assert head_label(_line(uuid4(), "1", "0", category="Exam")) == "Exam"
    assert head_label(_line(uuid4(), "1", "0")) == UNCATEGORIZED


def test_summarize_lines_totals() -> None:
    student_id = uuid4()
    summary = summarize_lines([
        _line(student_id, "1000", "400", ["150"]),
        _line(student_id, "1000", "1000"),
    ])
    assert summary.record_count == 2
    assert summary.total_collection == Decimal("1400")
    assert summary.total_concession == Decimal("150")
    assert summary.total_due == Decimal("450")


def test_derive_status() -> None:
    assert derive_status(Decimal("1000"), Decimal("0")) == PaymentStatus.PENDING
    assert derive_status(Decimal("1000"), Decimal("400")) == PaymentStatus.PARTIALLY_PAID
    assert derive_status(Decimal("1000"), Decimal("1000")) == PaymentStatus.PAID
    assert derive_status(Decimal("0"), Decimal("0")) == PaymentStatus.PAID


def test_head_filter_accepts_head_of_selected_kind() -> None:
    head = uuid4()
    f = resolve_head_filter(FeeHeadKind.FEE_TYPE, head, [head, uuid4()])
    assert f.column == "fee_type_id"
    assert f.ids == frozenset({head})
    assert not f.match_nothing


def test_head_filter_rejects_head_of_another_kind() -> None:
    f = resolve_head_filter(FeeHeadKind.SPECIAL_FEE_TYPE, uuid4(), [uuid4()])
    assert f.match_nothing


def test_head_filter_without_head_uses_all_candidates() -> None:
    candidates = [uuid4(), uuid4()]
    f = resolve_head_filter(FeeHeadKind.FEE_TYPE, None, candidates)
    assert f.ids == frozenset(candidates)
    assert resolve_head_filter(FeeHeadKind.FEE_TYPE, None, []).match_nothing


def test_installment_kind_without_head_requires_any_installment() -> None:
    f = resolve_head_filter(FeeHeadKind.INSTALLMENT, None, [])
    assert f.column == "installment_id"
    assert f.ids is None
    assert not f.match_nothing


def test_two_heads_roll_up_per_student_and_category() -> None:
    student_id = uuid4()
    lines = [
        _line(student_id, "500", "0", category="Tuition"),
        _line(student_id, "200", "0", category="Transport"),
    ]
    (row,) = aggregate_by_student(lines)
    assert row.total_due == Decimal("700")

    summary = aggregate_by_category(lines)
    assert [(h.head, h.total_due) for h in summary.heads] == [
        ("Tuition", Decimal("500")),
        ("Transport", Decimal("200")),
    ]
    assert summary.total_due == Decimal("700")


def test_aggregation_is_repeatable() -> None:
    a, b = uuid4(), uuid4()
    lines = [_line(a, "1000", "400", ["150"], category="Tuition"), _line(b, "300", "0")]
    assert aggregate_by_student(lines) == aggregate_by_student(lines)
    assert aggregate_by_category(lines) == aggregate_by_category(lines)
    assert summarize_lines(lines) == summarize_lines(lines)
