from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text

from gateway.db.base_class import Base
from gateway.utils import utcnow


class Refund(Base):
    __tablename__ = "refunds"

    id = Column(String(64), primary_key=True)
    payment_id = Column(String(64), ForeignKey("payments.id"), nullable=False)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False)

    amount = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")

    created_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'processed')", name="ck_refunds_status"),
        Index("ix_refunds_payment_status", "payment_id", "status"),
    )
