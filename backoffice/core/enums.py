from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"


# Statuses that count as "dues" in report filters
DUES_STATUSES = (
    PaymentStatus.PENDING.value,
    PaymentStatus.PARTIALLY_PAID.value,
    PaymentStatus.OVERDUE.value,
)


class PaymentStatusFilter(str, Enum):
    ALL = "all"
    PAID = "Paid"
    DUES = "Dues"


class FeeTypeKind(str, Enum):
    """fee_types.installment_type values."""

    INSTALLMENTS = "installments"
    EXTRA_CHARGE = "extra_charge"


class FeeHeadKind(str, Enum):
    """Mutually exclusive fee-head classification selector."""

    FEE_TYPE = "fee_type"
    SPECIAL_FEE_TYPE = "special_fee_type"
    INSTALLMENT = "installment"


class ReportShape(str, Enum):
    LINES = "lines"
    BY_STUDENT = "by_student"
    BY_CATEGORY = "by_category"


class HeadSelector(str, Enum):
    NONE = "none"
    CATEGORY = "category"
    CLASSIFICATION = "classification"
    INSTALLMENT = "installment"
    GROUP = "group"


class DateWindow(str, Enum):
    NONE = "none"
    EXACT = "exact"
    RANGE = "range"
    YEAR = "year"


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
