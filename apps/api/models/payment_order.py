"""PaymentOrder model correlating provider orders with later verification."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class PaymentOrder(Base):
    """Order created upstream at the payment provider."""

    __tablename__ = "payment_orders"

    order_id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False)
    receipt = Column(String, nullable=True)
    tier = Column(String, nullable=True)
    notes_json = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="created")  # created | paid
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="payment_orders")
