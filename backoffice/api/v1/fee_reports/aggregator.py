"""Fee due aggregation over loaded fee payment rows. Pure functions, no database access.

A row is anything exposing ``assigned_amount``, ``paid_amount``, ``student_id``,
``concessions`` (rows with ``concession_amount``) and optionally ``fee_category``
(with ``name``). Missing numbers count as zero.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence
from uuid import UUID

from backoffice.core.enums import FeeHeadKind, PaymentStatus

from .schemas import CategorySummary, CategoryTotals, CollectionSummary, StudentDueTotals

ZERO = Decimal("0")
UNCATEGORIZED = "Uncategorized"


def to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def total_concession(payment) -> Decimal:
    concessions = getattr(payment, "concessions", None) or []
    return sum((to_decimal(getattr(c, "concession_amount", None)) for c in concessions), ZERO)


def compute_line_due(payment, include_concessions: bool = True) -> Decimal:
    """assigned - paid - concessions. May be negative on over-payment; see outstanding()."""
    due = to_decimal(getattr(payment, "assigned_amount", None)) - to_decimal(getattr(payment, "paid_amount", None))
    if include_concessions:
        due -= total_concession(payment)
    return due


def outstanding(due: Decimal) -> Decimal:
    return due if due > ZERO else ZERO


def derive_status(assigned_amount, paid_amount) -> PaymentStatus:
    assigned = to_decimal(assigned_amount)
    paid = to_decimal(paid_amount)
    if paid >= assigned:
        return PaymentStatus.PAID
    if paid > ZERO:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def head_label(payment) -> str:
    category = getattr(payment, "fee_category", None)
    name = getattr(category, "name", None) if category is not None else None
    return name or UNCATEGORIZED


def summarize_lines(payments: Iterable, include_concessions: bool = True) -> CollectionSummary:
    total_collection = ZERO
    total_conc = ZERO
    total_due = ZERO
    count = 0
    for p in payments:
        count += 1
        total_collection += to_decimal(getattr(p, "paid_amount", None))
        if include_concessions:
            total_conc += total_concession(p)
        total_due += outstanding(compute_line_due(p, include_concessions))
    return CollectionSummary(
        record_count=count,
        total_collection=total_collection,
        total_concession=total_conc,
        total_due=total_due,
    )


def aggregate_by_student(
    payments: Iterable,
    include_concessions: bool = True,
    dues_only: bool = True,
) -> List[StudentDueTotals]:
    """
    Roll fee lines up per student_id in first-seen order.

    total_due is the sum of raw line dues, so it always equals
    total_assigned - total_paid - total_concession. With dues_only, students whose
    total_due is not strictly positive are dropped.
    """
    groups: Dict[UUID, StudentDueTotals] = {}
    for p in payments:
        student_id = getattr(p, "student_id", None)
        group = groups.get(student_id)
        if group is None:
            group = StudentDueTotals(student_id=student_id)
            groups[student_id] = group
        group.line_count += 1
        group.total_assigned += to_decimal(getattr(p, "assigned_amount", None))
        group.total_paid += to_decimal(getattr(p, "paid_amount", None))
        if include_concessions:
            group.total_concession += total_concession(p)
        group.total_due += compute_line_due(p, include_concessions)

    rows = list(groups.values())
    if dues_only:
        rows = [r for r in rows if r.total_due > ZERO]
    return rows


def aggregate_by_category(payments: Iterable, include_concessions: bool = True) -> CategorySummary:
    heads: Dict[str, CategoryTotals] = {}
    for p in payments:
        label = head_label(p)
        totals = heads.get(label)
        if totals is None:
            totals = CategoryTotals(head=label)
            heads[label] = totals
        totals.total_payable += to_decimal(getattr(p, "assigned_amount", None))
        totals.total_paid += to_decimal(getattr(p, "paid_amount", None))
        if include_concessions:
            totals.total_concession += total_concession(p)
        totals.total_due += compute_line_due(p, include_concessions)

    rows = list(heads.values())
    return CategorySummary(
        heads=rows,
        total_payable=sum((r.total_payable for r in rows), ZERO),
        total_paid=sum((r.total_paid for r in rows), ZERO),
        total_concession=sum((r.total_concession for r in rows), ZERO),
        total_due=sum((r.total_due for r in rows), ZERO),
    )


# --- Fee head classification ---
@dataclass(frozen=True)
class HeadFilter:
    """
    Resolved fee-head classification filter.

    column: StudentFeePayment attribute to constrain ("fee_type_id" or "installment_id").
    ids: permitted values; None means "column is not null".
    match_nothing: the selection cannot match any row.
    """

    column: str
    ids: Optional[FrozenSet[UUID]] = None
    match_nothing: bool = False


def resolve_head_filter(
    kind: FeeHeadKind,
    head_id: Optional[UUID],
    candidate_ids: Sequence[UUID],
) -> HeadFilter:
    """
    candidate_ids are the heads that belong to ``kind`` in the caller's school
    (fee types of the matching installment_type, or installments).
    A head outside the classification yields match_nothing instead of being ignored.
    """
    column = "installment_id" if kind == FeeHeadKind.INSTALLMENT else "fee_type_id"
    candidates = frozenset(candidate_ids)
    if head_id is not None:
        if head_id in candidates:
            return HeadFilter(column=column, ids=frozenset({head_id}))
        return HeadFilter(column=column, match_nothing=True)
    if kind == FeeHeadKind.INSTALLMENT:
        return HeadFilter(column=column)
    if not candidates:
        return HeadFilter(column=column, match_nothing=True)
    return HeadFilter(column=column, ids=candidates)
