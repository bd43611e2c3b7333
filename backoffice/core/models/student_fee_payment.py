"""Student fee payment: one fee obligation per student. Mutated only by recording a payment."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from backoffice.core.enums import PaymentStatus
from backoffice.db.session import Base


class StudentFeePayment(Base):
    """
    Fee line assigned to a student.

    The head is classified by at most one of fee_category_id, fee_type_id,
    fee_type_group_id or installment_id. paid_amount never decreases and never
    exceeds assigned_amount; status is recomputed on every payment.
    """

    __tablename__ = "student_fee_payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending','Partially Paid','Paid','Overdue')",
            name="chk_student_fee_payment_status",
        ),
        CheckConstraint("assigned_amount >= 0", name="chk_student_fee_payment_assigned"),
        CheckConstraint("paid_amount >= 0", name="chk_student_fee_payment_paid"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)

    fee_category_id = Column(UUID(as_uuid=True), ForeignKey("fee_categories.id", ondelete="SET NULL"), nullable=True)
    fee_type_id = Column(UUID(as_uuid=True), ForeignKey("fee_types.id", ondelete="SET NULL"), nullable=True)
    fee_type_group_id = Column(UUID(as_uuid=True), ForeignKey("fee_type_groups.id", ondelete="SET NULL"), nullable=True)
    installment_id = Column(UUID(as_uuid=True), ForeignKey("installments.id", ondelete="SET NULL"), nullable=True)

    assigned_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    due_date = Column(Date, nullable=True)
    payment_date = Column(Date, nullable=True)
    payment_mode = Column(String(50), nullable=True)  # Cash, UPI, Card, Bank Transfer, ...
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    fee_category = relationship("FeeCategory")
    fee_type = relationship("FeeType")
    fee_type_group = relationship("FeeTypeGroup")
    installment = relationship("Installment")
    concessions = relationship(
        "StudentFeeConcession",
        back_populates="fee_payment",
        cascade="all, delete-orphan",
        order_by="StudentFeeConcession.created_at",
    )
