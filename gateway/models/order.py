from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from gateway.db.base_class import Base
from gateway.utils import utcnow


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)

    # Minor currency units (paise, cents)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    receipt = Column(String(255), nullable=True)
    notes = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="created")

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    merchant = relationship("Merchant", back_populates="orders")
