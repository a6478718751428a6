from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String

from gateway.db.base_class import Base
from gateway.utils import utcnow

PAYMENT_STATUSES = ("pending", "processing", "success", "failed")
TERMINAL_STATUSES = ("success", "failed")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True)
    order_id = Column(String(64), ForeignKey("orders.id"), nullable=False, index=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False)

    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    captured = Column(Boolean, nullable=False, default=False)

    # upi
    vpa = Column(String(255), nullable=True)
    # card: only the network and the last four digits are ever stored
    card_network = Column(String(20), nullable=True)
    card_last4 = Column(String(4), nullable=True)

    error_code = Column(String(50), nullable=True)
    error_description = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'success', 'failed')",
            name="ck_payments_status",
        ),
        CheckConstraint("method IN ('upi', 'card')", name="ck_payments_method"),
        Index("ix_payments_merchant_created", "merchant_id", "created_at"),
    )
