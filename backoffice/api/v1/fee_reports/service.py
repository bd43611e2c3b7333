"""Fee reports service: one parametrized query + aggregation path driven by the report mode table."""

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.sql import Select

from backoffice.auth.schemas import CurrentUser
from backoffice.core.enums import (
    DUES_STATUSES,
    DateWindow,
    FeeHeadKind,
    FeeTypeKind,
    HeadSelector,
    PaymentStatus,
    PaymentStatusFilter,
    ReportShape,
)
from backoffice.core.exceptions import ServiceError
from backoffice.core.models import (
    FeeCategory,
    FeeType,
    FeeTypeGroup,
    Installment,
    PaymentMethod,
    SchoolClass,
    Student,
    StudentFeePayment,
)
from backoffice.core.school_service import require_school

from . import aggregator
from .modes import ReportModeConfig, get_mode
from .schemas import (
    FeeLineRow,
    LookupItem,
    ReportFilters,
    ReportLookups,
    ReportResult,
    StudentDueRow,
    StudentDueTotals,
)

logger = logging.getLogger(__name__)


def _class_label(cl: Optional[SchoolClass]) -> Optional[str]:
    if cl is None:
        return None
    return f"{cl.name} - {cl.division}" if cl.division else cl.name


# --- Lookups ---
async def _load_lookups(db: AsyncSession, school_id: UUID, config: ReportModeConfig) -> ReportLookups:
    lookups = ReportLookups()

    classes = (
        await db.execute(
            select(SchoolClass)
            .where(SchoolClass.school_id == school_id)
            .order_by(SchoolClass.name, SchoolClass.division)
        )
    ).scalars().all()
    lookups.classes = [LookupItem(id=c.id, name=_class_label(c)) for c in classes]

    if config.head_selector == HeadSelector.CATEGORY:
        categories = (
            await db.execute(
                select(FeeCategory).where(FeeCategory.school_id == school_id).order_by(FeeCategory.name)
            )
        ).scalars().all()
        lookups.fee_categories = [LookupItem(id=c.id, name=c.name) for c in categories]

    if config.head_selector == HeadSelector.CLASSIFICATION:
        fee_types = (
            await db.execute(
                select(FeeType).where(FeeType.school_id == school_id).order_by(FeeType.name)
            )
        ).scalars().all()
        lookups.fee_types = [
            LookupItem(id=t.id, name=t.display_name or t.name, kind=t.installment_type) for t in fee_types
        ]

    if config.head_selector in (HeadSelector.CLASSIFICATION, HeadSelector.INSTALLMENT):
        installments = (
            await db.execute(
                select(Installment)
                .where(Installment.school_id == school_id)
                .order_by(Installment.due_date.nullslast(), Installment.title)
            )
        ).scalars().all()
        lookups.installments = [LookupItem(id=i.id, name=i.title) for i in installments]

    if config.head_selector == HeadSelector.GROUP:
        groups = (
            await db.execute(
                select(FeeTypeGroup).where(FeeTypeGroup.school_id == school_id).order_by(FeeTypeGroup.name)
            )
        ).scalars().all()
        lookups.fee_groups = [LookupItem(id=g.id, name=g.name) for g in groups]

    if config.payment_method_filter:
        methods = (
            await db.execute(
                select(PaymentMethod).where(PaymentMethod.school_id == school_id).order_by(PaymentMethod.name)
            )
        ).scalars().all()
        lookups.payment_methods = [LookupItem(id=m.id, name=m.name) for m in methods]

    return lookups


# --- Query construction ---
def _base_query(school_id: UUID) -> Select:
    return (
        select(StudentFeePayment)
        .join(Student, StudentFeePayment.student_id == Student.id)
        .where(StudentFeePayment.school_id == school_id)
        .options(
            selectinload(StudentFeePayment.concessions),
            joinedload(StudentFeePayment.student).joinedload(Student.school_class),
            joinedload(StudentFeePayment.fee_category),
            joinedload(StudentFeePayment.fee_type),
            joinedload(StudentFeePayment.installment),
        )
    )


def _apply_status(stmt: Select, config: ReportModeConfig, filters: ReportFilters) -> Select:
    if config.fixed_statuses:
        return stmt.where(StudentFeePayment.status.in_(config.fixed_statuses))
    if config.status_filter:
        if filters.payment_status == PaymentStatusFilter.PAID:
            return stmt.where(StudentFeePayment.status == PaymentStatus.PAID.value)
        if filters.payment_status == PaymentStatusFilter.DUES:
            return stmt.where(StudentFeePayment.status.in_(DUES_STATUSES))
    return stmt


def _year_bounds(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def _apply_date_window(stmt: Select, config: ReportModeConfig, filters: ReportFilters) -> Select:
    if config.date_window == DateWindow.NONE or not config.date_field:
        return stmt
    column = getattr(StudentFeePayment, config.date_field)
    if config.date_window == DateWindow.EXACT:
        if filters.on_date:
            stmt = stmt.where(column == filters.on_date)
    elif config.date_window == DateWindow.RANGE:
        if filters.start_date:
            stmt = stmt.where(column >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(column <= filters.end_date)
    elif config.date_window == DateWindow.YEAR:
        start, end = _year_bounds(filters.year or date.today().year)
        stmt = stmt.where(column >= start, column <= end)
    return stmt


def _apply_student_filters(stmt: Select, config: ReportModeConfig, filters: ReportFilters) -> Select:
    if filters.class_id is not None:
        stmt = stmt.where(Student.class_id == filters.class_id)
    term = (filters.search or "").strip()
    if term:
        pattern = f"%{term}%"
        if config.search_father_name:
            stmt = stmt.where(or_(Student.name.ilike(pattern), Student.father_name.ilike(pattern)))
        else:
            stmt = stmt.where(Student.name.ilike(pattern))
    if filters.student_id is not None:
        stmt = stmt.where(StudentFeePayment.student_id == filters.student_id)
    return stmt


def _apply_exclusions(stmt: Select, config: ReportModeConfig, filters: ReportFilters) -> Select:
    if config.exclude_installments:
        stmt = stmt.where(StudentFeePayment.installment_id.is_(None))
    if config.exclude_cash:
        # NULL payment modes drop out too
        stmt = stmt.where(func.lower(StudentFeePayment.payment_mode) != "cash")
    if config.payment_method_filter and filters.payment_method:
        stmt = stmt.where(StudentFeePayment.payment_mode == filters.payment_method)
    return stmt


async def _classification_candidates(db: AsyncSession, school_id: UUID, kind: FeeHeadKind) -> List[UUID]:
    if kind == FeeHeadKind.INSTALLMENT:
        stmt = select(Installment.id).where(Installment.school_id == school_id)
    else:
        installment_type = (
            FeeTypeKind.INSTALLMENTS.value if kind == FeeHeadKind.FEE_TYPE else FeeTypeKind.EXTRA_CHARGE.value
        )
        stmt = select(FeeType.id).where(
            FeeType.school_id == school_id,
            FeeType.installment_type == installment_type,
        )
    return list((await db.execute(stmt)).scalars().all())


def _default_head(items: List[LookupItem]) -> Optional[UUID]:
    return items[0].id if items else None


async def _apply_head_selector(
    db: AsyncSession,
    stmt: Select,
    school_id: UUID,
    config: ReportModeConfig,
    filters: ReportFilters,
    lookups: ReportLookups,
) -> Tuple[Optional[Select], Optional[UUID]]:
    """Returns (statement or None when nothing can match, selected head id)."""
    selector = config.head_selector
    if selector == HeadSelector.NONE:
        return stmt, None

    if selector == HeadSelector.CATEGORY:
        head_id = filters.fee_category_id
        if head_id is None and config.default_first_head:
            head_id = _default_head(lookups.fee_categories)
            if head_id is None:
                return None, None
        if head_id is not None:
            stmt = stmt.where(StudentFeePayment.fee_category_id == head_id)
        return stmt, head_id

    if selector == HeadSelector.INSTALLMENT:
        head_id = filters.installment_id
        if head_id is None and config.default_first_head:
            head_id = _default_head(lookups.installments)
        if head_id is None:
            return None, None
        return stmt.where(StudentFeePayment.installment_id == head_id), head_id

    if selector == HeadSelector.GROUP:
        if filters.fee_group_id is None:
            return None, None
        return stmt.where(StudentFeePayment.fee_type_group_id == filters.fee_group_id), filters.fee_group_id

    # CLASSIFICATION
    if filters.fee_kind is None:
        return stmt, None
    candidates = await _classification_candidates(db, school_id, filters.fee_kind)
    head_filter = aggregator.resolve_head_filter(filters.fee_kind, filters.fee_head_id, candidates)
    if head_filter.match_nothing:
        return None, filters.fee_head_id
    column = getattr(StudentFeePayment, head_filter.column)
    if head_filter.ids is None:
        stmt = stmt.where(column.is_not(None))
    else:
        stmt = stmt.where(column.in_(head_filter.ids))
    return stmt, filters.fee_head_id


# --- Row shaping ---
def _line_row(p: StudentFeePayment, include_concessions: bool) -> FeeLineRow:
    student = p.student
    cl = student.school_class if student else None
    return FeeLineRow(
        fee_payment_id=p.id,
        student_id=p.student_id,
        student_name=student.name if student else None,
        father_name=student.father_name if student else None,
        roll_number=student.roll_number if student else None,
        class_name=cl.name if cl else None,
        division=cl.division if cl else None,
        head=aggregator.head_label(p),
        fee_type_name=(p.fee_type.display_name or p.fee_type.name) if p.fee_type else None,
        installment_title=p.installment.title if p.installment else None,
        assigned_amount=aggregator.to_decimal(p.assigned_amount),
        paid_amount=aggregator.to_decimal(p.paid_amount),
        total_concession=aggregator.total_concession(p) if include_concessions else aggregator.ZERO,
        due_amount=aggregator.outstanding(aggregator.compute_line_due(p, include_concessions)),
        status=p.status,
        due_date=p.due_date,
        payment_date=p.payment_date,
        payment_mode=p.payment_mode,
    )


def _student_row(totals: StudentDueTotals, student: Optional[Student]) -> StudentDueRow:
    cl = student.school_class if student else None
    return StudentDueRow(
        **totals.model_dump(),
        student_name=student.name if student else None,
        father_name=student.father_name if student else None,
        roll_number=student.roll_number if student else None,
        contact_number=student.contact_number if student else None,
        class_name=cl.name if cl else None,
        division=cl.division if cl else None,
    )


def shape_result(
    config: ReportModeConfig,
    payments: List[StudentFeePayment],
    lookups: ReportLookups,
    selected_head_id: Optional[UUID] = None,
) -> ReportResult:
    result = ReportResult(
        ok=True,
        mode=config.mode,
        shape=config.shape,
        selected_head_id=selected_head_id,
        lookups=lookups,
    )
    if config.shape == ReportShape.LINES:
        result.lines = [_line_row(p, config.include_concessions) for p in payments]
        result.summary = aggregator.summarize_lines(payments, config.include_concessions)
    elif config.shape == ReportShape.BY_STUDENT:
        students = {p.student_id: p.student for p in payments}
        totals = aggregator.aggregate_by_student(
            payments,
            include_concessions=config.include_concessions,
            dues_only=config.dues_only,
        )
        rows = [_student_row(t, students.get(t.student_id)) for t in totals]
        rows.sort(key=lambda r: ((r.student_name or "").lower(), r.roll_number or ""))
        result.students = rows
        result.summary = aggregator.summarize_lines(payments, config.include_concessions)
        result.summary.total_due = sum((r.total_due for r in rows), aggregator.ZERO)
    else:
        result.categories = aggregator.aggregate_by_category(payments, config.include_concessions)
    return result


def _empty_result(config: ReportModeConfig, lookups: ReportLookups, selected_head_id: Optional[UUID]) -> ReportResult:
    return shape_result(config, [], lookups, selected_head_id)


async def _run_report(
    db: AsyncSession,
    ctx: CurrentUser,
    config: ReportModeConfig,
    filters: ReportFilters,
) -> ReportResult:
    school_id = require_school(ctx)
    if config.requires_student and filters.student_id is None:
        raise ServiceError("A student must be selected for this report", status.HTTP_400_BAD_REQUEST)

    lookups = await _load_lookups(db, school_id, config)

    stmt = _base_query(school_id)
    stmt = _apply_status(stmt, config, filters)
    stmt = _apply_student_filters(stmt, config, filters)
    stmt = _apply_date_window(stmt, config, filters)
    stmt, selected_head_id = await _apply_head_selector(db, stmt, school_id, config, filters, lookups)
    if stmt is None:
        logger.info("Fee report %s for school %s: head selection matches nothing", config.mode, school_id)
        return _empty_result(config, lookups, selected_head_id)
    stmt = _apply_exclusions(stmt, config, filters)
    stmt = stmt.order_by(StudentFeePayment.payment_date.desc().nullslast(), Student.name, StudentFeePayment.due_date)

    payments = list((await db.execute(stmt)).scalars().all())
    result = shape_result(config, payments, lookups, selected_head_id)
    logger.info(
        "Fee report %s for school %s: %d payment rows, %d students",
        config.mode, school_id, len(payments), len(result.students),
    )
    return result


async def build_report(
    db: AsyncSession,
    ctx: CurrentUser,
    mode: str,
    filters: ReportFilters,
) -> ReportResult:
    """
    Load one fee report. Never raises: every failure becomes ok=False with a message
    and no rows, so callers cannot mistake a failed load for "no dues".
    """
    try:
        config = get_mode(mode)
        return await _run_report(db, ctx, config, filters)
    except ServiceError as e:
        logger.warning("Fee report %s rejected: %s", mode, e.message)
        return ReportResult(ok=False, message=e.message, mode=mode, status_code=e.status_code)
    except SQLAlchemyError:
        logger.exception("Fee report %s failed while reading the database", mode)
        return ReportResult(
            ok=False,
            message="Failed to fetch report data",
            mode=mode,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
