import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from gateway.db.base_class import Base
from gateway.utils import utcnow


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    api_key = Column(String(64), unique=True, index=True, nullable=False)
    api_secret = Column(String(64), nullable=False)

    # No URL means no webhook is ever emitted for this merchant
    webhook_url = Column(String(512), nullable=True)
    webhook_secret = Column(String(64), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    orders = relationship("Order", back_populates="merchant", cascade="all, delete-orphan")
