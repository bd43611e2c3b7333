"""Student fees router: assign, list, pay, concession, payment methods."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import get_current_user
from backoffice.auth.rbac import check_permission
from backoffice.auth.schemas import CurrentUser
from backoffice.core.exceptions import ServiceError
from backoffice.db.session import get_db

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
from . import service

router = APIRouter(prefix="/api/v1/student-fees", tags=["student-fees"])


@router.post(
    "/assign/{student_id}",
    response_model=StudentFeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def assign_student_fee(
    student_id: UUID,
    payload: AssignFeeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeResponse:
    try:
        return await service.assign_fee(db, current_user, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/{student_id}",
    response_model=List[StudentFeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def read_student_fees(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentFeeResponse]:
    try:
        return await service.list_student_fees(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment ---
@router.post(
    "/pay/{fee_payment_id}",
    response_model=StudentFeeResponse,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def pay_student_fee(
    fee_payment_id: UUID,
    payload: RecordPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeResponse:
    try:
        return await service.record_payment(db, current_user, fee_payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Concession ---
@router.post(
    "/concession/{fee_payment_id}",
    response_model=ConcessionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def create_concession(
    fee_payment_id: UUID,
    payload: ConcessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ConcessionResponse:
    try:
        return await service.add_concession(db, current_user, fee_payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment methods ---
@router.get(
    "/payment-methods",
    response_model=List[PaymentMethodResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def read_payment_methods(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentMethodResponse]:
    try:
        return await service.list_payment_methods(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/payment-methods",
    response_model=PaymentMethodResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_payment_method(
    payload: PaymentMethodCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentMethodResponse:
    try:
        return await service.create_payment_method(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/payment-methods/{method_id}",
    response_model=PaymentMethodResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_payment_method(
    method_id: UUID,
    payload: PaymentMethodUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentMethodResponse:
    try:
        method = await service.update_payment_method(db, current_user, method_id, payload)
        if not method:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment method not found")
        return method
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/payment-methods/{method_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_payment_method(
    method_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        deleted = await service.delete_payment_method(db, current_user, method_id)
        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment method not found")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
