"""Student fees service: assign fee lines, record payments, grant concessions, manage payment methods."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from backoffice.auth.schemas import CurrentUser
from backoffice.core.enums import PaymentStatus
from backoffice.core.exceptions import ServiceError
from backoffice.core.models import (
    FeeCategory,
    FeeType,
    FeeTypeGroup,
    Installment,
    PaymentMethod,
    StudentFeeConcession,
    StudentFeePayment,
)
from backoffice.core.school_service import get_school_student, require_school
from backoffice.api.v1.fee_reports.aggregator import (
    compute_line_due,
    derive_status,
    head_label,
    outstanding,
    to_decimal,
    total_concession,
)

from .schemas import (
    AssignFeeRequest,
    ConcessionCreate,
    ConcessionResponse,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentMethodUpdate,
    RecordPaymentRequest,
    StudentFeeResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_MODE = "Cash"


def _concession_to_response(c: StudentFeeConcession) -> ConcessionResponse:
    return ConcessionResponse(
        id=c.id,
        fee_payment_id=c.fee_payment_id,
        concession_amount=to_decimal(c.concession_amount),
        reason=c.reason,
        granted_by=c.granted_by,
        created_at=c.created_at,
    )


def _fee_to_response(p: StudentFeePayment) -> StudentFeeResponse:
    return StudentFeeResponse(
        id=p.id,
        school_id=p.school_id,
        student_id=p.student_id,
        fee_category_id=p.fee_category_id,
        fee_type_id=p.fee_type_id,
        fee_type_group_id=p.fee_type_group_id,
        installment_id=p.installment_id,
        head=head_label(p),
        assigned_amount=to_decimal(p.assigned_amount),
        paid_amount=to_decimal(p.paid_amount),
        total_concession=total_concession(p),
        due_amount=outstanding(compute_line_due(p)),
        status=p.status,
        due_date=p.due_date,
        payment_date=p.payment_date,
        payment_mode=p.payment_mode,
        notes=p.notes,
        concessions=[_concession_to_response(c) for c in p.concessions],
    )


async def _load_fee(db: AsyncSession, school_id: UUID, fee_payment_id: UUID) -> StudentFeePayment:
    """Fee line with concessions and head loaded; populate_existing refreshes rows already in the session."""
    p = (
        await db.execute(
            select(StudentFeePayment)
            .where(StudentFeePayment.id == fee_payment_id, StudentFeePayment.school_id == school_id)
            .options(
                selectinload(StudentFeePayment.concessions),
                joinedload(StudentFeePayment.fee_category),
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not p:
        raise ServiceError("Fee payment not found", status.HTTP_404_NOT_FOUND)
    return p


async def _lock_fee(db: AsyncSession, school_id: UUID, fee_payment_id: UUID) -> StudentFeePayment:
    p = (
        await db.execute(
            select(StudentFeePayment)
            .where(StudentFeePayment.id == fee_payment_id, StudentFeePayment.school_id == school_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if not p:
        raise ServiceError("Fee payment not found", status.HTTP_404_NOT_FOUND)
    return p


async def _validate_head(db: AsyncSession, school_id: UUID, payload: AssignFeeRequest) -> None:
    for model, head_id in (
        (FeeCategory, payload.fee_category_id),
        (FeeType, payload.fee_type_id),
        (FeeTypeGroup, payload.fee_type_group_id),
        (Installment, payload.installment_id),
    ):
        if head_id is None:
            continue
        head = await db.get(model, head_id)
        if not head or head.school_id != school_id:
            raise ServiceError("Invalid fee head", status.HTTP_400_BAD_REQUEST)


# --- Assignment ---
async def assign_fee(
    db: AsyncSession,
    ctx: CurrentUser,
    student_id: UUID,
    payload: AssignFeeRequest,
) -> StudentFeeResponse:
    school_id = require_school(ctx)
    await get_school_student(db, school_id, student_id)
    await _validate_head(db, school_id, payload)

    p = StudentFeePayment(
        school_id=school_id,
        student_id=student_id,
        fee_category_id=payload.fee_category_id,
        fee_type_id=payload.fee_type_id,
        fee_type_group_id=payload.fee_type_group_id,
        installment_id=payload.installment_id,
        assigned_amount=payload.assigned_amount,
        paid_amount=Decimal("0"),
        status=PaymentStatus.PENDING.value,
        due_date=payload.due_date,
        notes=(payload.notes or "").strip() or None,
    )
    db.add(p)
    await db.commit()
    logger.info("Assigned fee %s (%s) to student %s", p.id, payload.assigned_amount, student_id)
    return _fee_to_response(await _load_fee(db, school_id, p.id))


async def list_student_fees(
    db: AsyncSession,
    ctx: CurrentUser,
    student_id: UUID,
) -> List[StudentFeeResponse]:
    school_id = require_school(ctx)
    await get_school_student(db, school_id, student_id)
    rows = (
        await db.execute(
            select(StudentFeePayment)
            .where(StudentFeePayment.school_id == school_id, StudentFeePayment.student_id == student_id)
            .options(
                selectinload(StudentFeePayment.concessions),
                joinedload(StudentFeePayment.fee_category),
            )
            .order_by(StudentFeePayment.due_date.desc().nullslast(), StudentFeePayment.created_at)
        )
    ).scalars().all()
    return [_fee_to_response(p) for p in rows]


# --- Payment ---
def _append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    note = (note or "").strip()
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


async def record_payment(
    db: AsyncSession,
    ctx: CurrentUser,
    fee_payment_id: UUID,
    payload: RecordPaymentRequest,
) -> StudentFeeResponse:
    """
    Add a payment to a fee line. paid_amount only grows and is capped at assigned_amount;
    status is recomputed from the new totals.
    """
    school_id = require_school(ctx)
    p = await _lock_fee(db, school_id, fee_payment_id)
    assigned = to_decimal(p.assigned_amount)
    paid = to_decimal(p.paid_amount)
    if paid >= assigned:
        raise ServiceError("This fee is already fully paid", status.HTTP_400_BAD_REQUEST)

    new_paid = min(paid + payload.payment_amount, assigned)
    old_status = p.status
    p.paid_amount = new_paid
    p.status = derive_status(assigned, new_paid).value
    p.payment_date = payload.payment_date or date.today()
    p.payment_mode = (payload.payment_mode or "").strip() or DEFAULT_PAYMENT_MODE
    p.notes = _append_note(p.notes, payload.notes)
    await db.commit()
    logger.info(
        "Recorded payment of %s on fee %s: paid %s -> %s, status %s -> %s",
        payload.payment_amount, fee_payment_id, paid, new_paid, old_status, p.status,
    )
    return _fee_to_response(await _load_fee(db, school_id, fee_payment_id))


# --- Concession ---
async def add_concession(
    db: AsyncSession,
    ctx: CurrentUser,
    fee_payment_id: UUID,
    payload: ConcessionCreate,
) -> ConcessionResponse:
    school_id = require_school(ctx)
    p = await _lock_fee(db, school_id, fee_payment_id)
    existing = (
        await db.execute(
            select(func.coalesce(func.sum(StudentFeeConcession.concession_amount), 0)).where(
                StudentFeeConcession.fee_payment_id == fee_payment_id,
            )
        )
    ).scalar() or Decimal("0")
    remaining = to_decimal(p.assigned_amount) - to_decimal(p.paid_amount) - to_decimal(existing)
    if payload.concession_amount > remaining:
        raise ServiceError("Concession cannot exceed the outstanding amount", status.HTTP_400_BAD_REQUEST)

    c = StudentFeeConcession(
        school_id=school_id,
        fee_payment_id=fee_payment_id,
        concession_amount=payload.concession_amount,
        reason=(payload.reason or "").strip() or None,
        granted_by=ctx.id,
    )
    db.add(c)
    await db.commit()
    await db.refresh(c)
    logger.info("Concession %s of %s granted on fee %s by %s", c.id, payload.concession_amount, fee_payment_id, ctx.id)
    return _concession_to_response(c)


# --- Payment methods ---
async def list_payment_methods(db: AsyncSession, ctx: CurrentUser) -> List[PaymentMethodResponse]:
    school_id = require_school(ctx)
    rows = (
        await db.execute(
            select(PaymentMethod).where(PaymentMethod.school_id == school_id).order_by(PaymentMethod.name)
        )
    ).scalars().all()
    return [PaymentMethodResponse.model_validate(m) for m in rows]


async def create_payment_method(
    db: AsyncSession,
    ctx: CurrentUser,
    payload: PaymentMethodCreate,
) -> PaymentMethodResponse:
    school_id = require_school(ctx)
    method = PaymentMethod(
        school_id=school_id,
        name=payload.name.strip(),
        description=(payload.description or "").strip() or None,
    )
    db.add(method)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Payment method already exists for this school", status.HTTP_409_CONFLICT)
    logger.info("Payment method %s (%s) created for school %s", method.id, method.name, school_id)
    return PaymentMethodResponse.model_validate(method)


async def _get_payment_method(db: AsyncSession, school_id: UUID, method_id: UUID) -> Optional[PaymentMethod]:
    return (
        await db.execute(
            select(PaymentMethod).where(PaymentMethod.id == method_id, PaymentMethod.school_id == school_id)
        )
    ).scalar_one_or_none()


async def update_payment_method(
    db: AsyncSession,
    ctx: CurrentUser,
    method_id: UUID,
    payload: PaymentMethodUpdate,
) -> Optional[PaymentMethodResponse]:
    """Rename or re-describe a method. Fee lines keep the name they were paid with."""
    school_id = require_school(ctx)
    method = await _get_payment_method(db, school_id, method_id)
    if not method:
        return None
    if payload.name is not None:
        method.name = payload.name.strip()
    if payload.description is not None:
        method.description = payload.description.strip() or None
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Payment method already exists for this school", status.HTTP_409_CONFLICT)
    await db.refresh(method)
    return PaymentMethodResponse.model_validate(method)


async def delete_payment_method(db: AsyncSession, ctx: CurrentUser, method_id: UUID) -> bool:
    """Refused while any fee payment of the school was recorded with this method."""
    school_id = require_school(ctx)
    method = await _get_payment_method(db, school_id, method_id)
    if not method:
        return False
    used = (
        await db.execute(
            select(func.count(StudentFeePayment.id)).where(
                StudentFeePayment.school_id == school_id,
                StudentFeePayment.payment_mode == method.name,
            )
        )
    ).scalar() or 0
    if used:
        raise ServiceError(
            f'Cannot delete "{method.name}": this payment method is used in {used} transaction(s).',
            status.HTTP_400_BAD_REQUEST,
        )
    await db.delete(method)
    await db.commit()
    logger.info("Payment method %s (%s) deleted for school %s", method_id, method.name, school_id)
    return True
