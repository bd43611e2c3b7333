"""Fee category (fee head) master: Tuition, Transport, Exam. School-scoped."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from backoffice.db.session import Base


class FeeCategory(Base):
    __tablename__ = "fee_categories"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_fee_category_school_name"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
