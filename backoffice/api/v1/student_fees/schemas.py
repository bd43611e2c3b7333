"""Student fee schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AssignFeeRequest(BaseModel):
    """Exactly one fee head reference classifies the line."""

    fee_category_id: Optional[UUID] = None
    fee_type_id: Optional[UUID] = None
    fee_type_group_id: Optional[UUID] = None
    installment_id: Optional[UUID] = None
    assigned_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_single_head(self) -> "AssignFeeRequest":
        heads = [self.fee_category_id, self.fee_type_id, self.fee_type_group_id, self.installment_id]
        if sum(1 for h in heads if h is not None) != 1:
            raise ValueError(
                "Exactly one of fee_category_id, fee_type_id, fee_type_group_id, installment_id is required"
            )
        return self


class RecordPaymentRequest(BaseModel):
    payment_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = Field(None, max_length=50, description="Cash, UPI, Card, Bank Transfer")
    notes: Optional[str] = None


class ConcessionCreate(BaseModel):
    concession_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = None


class ConcessionResponse(BaseModel):
    id: UUID
    fee_payment_id: UUID
    concession_amount: Decimal
    reason: Optional[str] = None
    granted_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudentFeeResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    fee_category_id: Optional[UUID] = None
    fee_type_id: Optional[UUID] = None
    fee_type_group_id: Optional[UUID] = None
    installment_id: Optional[UUID] = None
    head: str
    assigned_amount: Decimal
    paid_amount: Decimal
    total_concession: Decimal
    due_amount: Decimal
    status: str
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None
    notes: Optional[str] = None
    concessions: List[ConcessionResponse] = Field(default_factory=list)


# --- Payment methods ---
class PaymentMethodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None


class PaymentMethodResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
