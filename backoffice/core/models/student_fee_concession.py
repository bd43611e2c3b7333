"""Concession (discount) against one fee payment. Immutable once recorded."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from backoffice.db.session import Base


class StudentFeeConcession(Base):
    __tablename__ = "student_fee_concessions"
    __table_args__ = (
        CheckConstraint("concession_amount > 0", name="chk_student_fee_concession_amount"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_payment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fee_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    concession_amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(Text, nullable=True)
    granted_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    fee_payment = relationship("StudentFeePayment", back_populates="concessions")
