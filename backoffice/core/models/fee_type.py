"""Fee types and fee type groups. A fee type is either a regular installment fee or a special extra charge."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from backoffice.core.enums import FeeTypeKind
from backoffice.db.session import Base


class FeeType(Base):
    __tablename__ = "fee_types"
    __table_args__ = (
        CheckConstraint(
            "installment_type IN ('installments','extra_charge')",
            name="chk_fee_type_installment_type",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    display_name = Column(String(100), nullable=True)
    # installments = regular fee type, extra_charge = special fee type
    installment_type = Column(String(20), nullable=False, default=FeeTypeKind.INSTALLMENTS.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class FeeTypeGroup(Base):
    """Named bundle of fee types (e.g. "Day scholar", "Hostel"), reported together."""

    __tablename__ = "fee_type_groups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
