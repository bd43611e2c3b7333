"""Named fee report modes.

Each mode is one row of configuration; the service has a single code path and
reads every difference between reports from here.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fastapi import status

from backoffice.core.enums import (
    DUES_STATUSES,
    DateWindow,
    HeadSelector,
    PaymentStatus,
    ReportShape,
)
from backoffice.core.exceptions import ServiceError

from .schemas import ReportModeInfo


@dataclass(frozen=True)
class ReportModeConfig:
    mode: str
    title: str
    shape: ReportShape
    date_field: Optional[str] = None  # "due_date" | "payment_date"
    date_window: DateWindow = DateWindow.NONE
    # Statuses the mode always restricts to; empty = no fixed restriction
    fixed_statuses: Tuple[str, ...] = ()
    # Caller may pick all / Paid / Dues
    status_filter: bool = False
    include_concessions: bool = True
    exclude_installments: bool = False
    exclude_cash: bool = False
    head_selector: HeadSelector = HeadSelector.NONE
    default_first_head: bool = False
    dues_only: bool = False
    search_father_name: bool = False
    payment_method_filter: bool = False
    requires_student: bool = False

    def to_info(self) -> ReportModeInfo:
        return ReportModeInfo(
            mode=self.mode,
            title=self.title,
            shape=self.shape,
            date_field=self.date_field,
            date_window=self.date_window,
            status_filter=self.status_filter,
            fixed_statuses=list(self.fixed_statuses),
            include_concessions=self.include_concessions,
            exclude_installments=self.exclude_installments,
            exclude_cash=self.exclude_cash,
            head_selector=self.head_selector,
            default_first_head=self.default_first_head,
            dues_only=self.dues_only,
            search_father_name=self.search_father_name,
            payment_method_filter=self.payment_method_filter,
            requires_student=self.requires_student,
        )


_MODES: List[ReportModeConfig] = [
    ReportModeConfig(
        mode="collection",
        title="Fee Collection Report",
        shape=ReportShape.LINES,
        date_field="payment_date",
        date_window=DateWindow.EXACT,
        status_filter=True,
    ),
    ReportModeConfig(
        mode="headwise-collection",
        title="Headwise Collection Report",
        shape=ReportShape.LINES,
        date_field="payment_date",
        date_window=DateWindow.RANGE,
        status_filter=True,
        exclude_installments=True,
        head_selector=HeadSelector.CATEGORY,
    ),
    ReportModeConfig(
        mode="complete-paid",
        title="Complete Paid Report",
        shape=ReportShape.LINES,
        date_field="payment_date",
        date_window=DateWindow.RANGE,
        fixed_statuses=(PaymentStatus.PAID.value,),
        include_concessions=False,
        head_selector=HeadSelector.CLASSIFICATION,
    ),
    ReportModeConfig(
        mode="year-wise-collection",
        title="Year Wise Collection Report",
        shape=ReportShape.LINES,
        date_field="due_date",
        date_window=DateWindow.YEAR,
        head_selector=HeadSelector.CLASSIFICATION,
    ),
    ReportModeConfig(
        mode="year-wise-paid",
        title="Year Wise Paid Report",
        shape=ReportShape.LINES,
        date_field="payment_date",
        date_window=DateWindow.YEAR,
        status_filter=True,
    ),
    ReportModeConfig(
        mode="online-transactions",
        title="Online Fee Transaction Report",
        shape=ReportShape.LINES,
        status_filter=True,
        include_concessions=False,
        exclude_cash=True,
        payment_method_filter=True,
    ),
    ReportModeConfig(
        mode="headwise-dues",
        title="Headwise Dues Report",
        shape=ReportShape.BY_STUDENT,
        fixed_statuses=DUES_STATUSES,
        head_selector=HeadSelector.CATEGORY,
        default_first_head=True,
        dues_only=True,
        search_father_name=True,
    ),
    ReportModeConfig(
        mode="installment-wise-dues",
        title="Installment Wise Dues Report",
        shape=ReportShape.BY_STUDENT,
        fixed_statuses=DUES_STATUSES,
        head_selector=HeadSelector.INSTALLMENT,
        default_first_head=True,
        dues_only=True,
        search_father_name=True,
    ),
    ReportModeConfig(
        mode="yearly-dues",
        title="Yearly Dues Report",
        shape=ReportShape.BY_STUDENT,
        date_field="due_date",
        date_window=DateWindow.YEAR,
        fixed_statuses=DUES_STATUSES,
        dues_only=True,
        search_father_name=True,
    ),
    ReportModeConfig(
        mode="group-wise",
        title="Group Wise Fees Report",
        shape=ReportShape.BY_STUDENT,
        include_concessions=False,
        head_selector=HeadSelector.GROUP,
    ),
    ReportModeConfig(
        mode="consolidated",
        title="Consolidated Fee Report",
        shape=ReportShape.BY_CATEGORY,
        include_concessions=False,
        requires_student=True,
    ),
]

REPORT_MODES: Dict[str, ReportModeConfig] = {m.mode: m for m in _MODES}


def get_mode(mode: str) -> ReportModeConfig:
    config = REPORT_MODES.get(mode)
    if config is None:
        raise ServiceError(f"Unknown report: {mode}", status.HTTP_404_NOT_FOUND)
    return config


def list_modes() -> List[ReportModeInfo]:
    return [m.to_info() for m in _MODES]
