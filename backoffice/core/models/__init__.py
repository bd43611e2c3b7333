from backoffice.core.models.school import School
from backoffice.core.models.class_model import SchoolClass
from backoffice.core.models.student import Student
from backoffice.core.models.fee_category import FeeCategory
from backoffice.core.models.fee_type import FeeType, FeeTypeGroup
from backoffice.core.models.installment import Installment
from backoffice.core.models.payment_method import PaymentMethod
from backoffice.core.models.student_fee_payment import StudentFeePayment
from backoffice.core.models.student_fee_concession import StudentFeeConcession

__all__ = [
    "School",
    "SchoolClass",
    "Student",
    "FeeCategory",
    "FeeType",
    "FeeTypeGroup",
    "Installment",
    "PaymentMethod",
    "StudentFeePayment",
    "StudentFeeConcession",
]
