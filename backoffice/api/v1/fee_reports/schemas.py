"""Fee report schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from backoffice.core.enums import (
    DateWindow,
    FeeHeadKind,
    HeadSelector,
    PaymentStatusFilter,
    ReportShape,
)


class ReportFilters(BaseModel):
    """Caller-selected filters. Each report mode uses the subset it understands."""

    class_id: Optional[UUID] = None
    payment_status: PaymentStatusFilter = PaymentStatusFilter.ALL
    on_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    year: Optional[int] = Field(None, ge=1900, le=9999)
    search: Optional[str] = Field(None, max_length=100)
    fee_category_id: Optional[UUID] = None
    fee_kind: Optional[FeeHeadKind] = None
    fee_head_id: Optional[UUID] = None
    installment_id: Optional[UUID] = None
    fee_group_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    payment_method: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def validate_date_range(self) -> "ReportFilters":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


# --- Aggregates ---
class StudentDueTotals(BaseModel):
    student_id: Optional[UUID] = None
    line_count: int = 0
    total_assigned: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_concession: Decimal = Decimal("0")
    total_due: Decimal = Decimal("0")


class StudentDueRow(StudentDueTotals):
    student_name: Optional[str] = None
    father_name: Optional[str] = None
    roll_number: Optional[str] = None
    contact_number: Optional[str] = None
    class_name: Optional[str] = None
    division: Optional[str] = None


class CategoryTotals(BaseModel):
    head: str
    total_payable: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_concession: Decimal = Decimal("0")
    total_due: Decimal = Decimal("0")


class CategorySummary(BaseModel):
    heads: List[CategoryTotals] = Field(default_factory=list)
    total_payable: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_concession: Decimal = Decimal("0")
    total_due: Decimal = Decimal("0")


class CollectionSummary(BaseModel):
    record_count: int = 0
    total_collection: Decimal = Decimal("0")
    total_concession: Decimal = Decimal("0")
    total_due: Decimal = Decimal("0")


class FeeLineRow(BaseModel):
    """One fee payment row with its computed due."""

    fee_payment_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    father_name: Optional[str] = None
    roll_number: Optional[str] = None
    class_name: Optional[str] = None
    division: Optional[str] = None
    head: str
    fee_type_name: Optional[str] = None
    installment_title: Optional[str] = None
    assigned_amount: Decimal
    paid_amount: Decimal
    total_concession: Decimal
    due_amount: Decimal
    status: str
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None


# --- Lookups for filter widgets ---
class LookupItem(BaseModel):
    id: UUID
    name: str
    kind: Optional[str] = None


class ReportLookups(BaseModel):
    classes: List[LookupItem] = Field(default_factory=list)
    fee_categories: List[LookupItem] = Field(default_factory=list)
    fee_types: List[LookupItem] = Field(default_factory=list)
    installments: List[LookupItem] = Field(default_factory=list)
    fee_groups: List[LookupItem] = Field(default_factory=list)
    payment_methods: List[LookupItem] = Field(default_factory=list)


# --- Envelope ---
class ReportResult(BaseModel):
    """
    Uniform report envelope. ok=False carries only a message; rows and lookups are
    left empty so a failed load never shows data from an earlier filter state.
    """

    ok: bool
    message: Optional[str] = None
    mode: str
    shape: Optional[ReportShape] = None
    selected_head_id: Optional[UUID] = None
    lines: List[FeeLineRow] = Field(default_factory=list)
    students: List[StudentDueRow] = Field(default_factory=list)
    categories: Optional[CategorySummary] = None
    summary: Optional[CollectionSummary] = None
    lookups: ReportLookups = Field(default_factory=ReportLookups)
    status_code: int = Field(200, exclude=True)


class ReportModeInfo(BaseModel):
    mode: str
    title: str
    shape: ReportShape
    date_field: Optional[str] = None
    date_window: DateWindow
    status_filter: bool
    fixed_statuses: List[str] = Field(default_factory=list)
    include_concessions: bool
    exclude_installments: bool
    exclude_cash: bool
    head_selector: HeadSelector
    default_first_head: bool
    dues_only: bool
    search_father_name: bool
    payment_method_filter: bool
    requires_student: bool
