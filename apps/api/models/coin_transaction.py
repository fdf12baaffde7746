"""CoinTransaction model for the coin audit trail."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CoinTransaction(Base):
    """Immutable coin ledger entry. Negative amounts are spends."""

    __tablename__ = "coin_transactions"

    # Integer key keeps insertion order for audit replay.
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    transaction_type = Column(String, nullable=False)
    description = Column(String, nullable=False)
    related_entity_id = Column(String, nullable=True)
    balance_after = Column(Integer, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True,
    )

    user = relationship("User", back_populates="coin_transactions")
