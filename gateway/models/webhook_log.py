import json
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from gateway.db.base_class import Base
from gateway.utils import utcnow


class WebhookLog(Base):
    """The whole delivery history of one event occurrence."""

    __tablename__ = "webhook_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False)
    event = Column(String(50), nullable=False)

    # Serialized envelope exactly as it is signed and sent
    payload = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime, nullable=True)
    next_retry_at = Column(DateTime, nullable=True)
    response_code = Column(Integer, nullable=True)
    response_body = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_webhook_logs_merchant_created", "merchant_id", "created_at"),
        Index("ix_webhook_logs_status_retry", "status", "next_retry_at"),
    )

    @property
    def envelope(self) -> dict:
        return json.loads(self.payload)
