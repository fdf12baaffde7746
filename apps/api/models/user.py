"""User model."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid

from database import Base


class User(Base):
    """Account aggregate: profile, coin balance and subscription state."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("coin_balance >= 0", name="ck_users_coin_balance_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)

    # Mutated only through services.coins
    coin_balance = Column(Integer, nullable=False, default=0, server_default="0")

    subscription_tier = Column(String, nullable=False, default="free", server_default="free")
    subscription_start_date = Column(DateTime(timezone=True), nullable=True)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    payment_subscription_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    # Audit and order records outlive the account row; deletes never touch them.
    coin_transactions = relationship("CoinTransaction", back_populates="user", passive_deletes="all")
    payment_orders = relationship("PaymentOrder", back_populates="user", passive_deletes="all")
