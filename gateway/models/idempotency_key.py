from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from gateway.db.base_class import Base
from gateway.utils import utcnow


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    key = Column(String(255), primary_key=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), primary_key=True)

    # Response body returned to the first caller, replayed verbatim
    response = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
