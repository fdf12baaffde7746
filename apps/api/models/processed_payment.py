"""ProcessedPayment model: one row per settled provider payment."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from database import Base


class ProcessedPayment(Base):
    """Replay barrier for verified payment callbacks."""

    __tablename__ = "processed_payments"

    payment_id = Column(String, primary_key=True)
    order_id = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    tier = Column(String, nullable=False)
    coins_granted = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
