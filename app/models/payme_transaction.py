"""
PaymeTransaction — durable Payme transaction store.
id is the Payme-issued transaction id and the only lookup key; all *_time fields are epoch ms (0 = not reached).
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base


class PaymeTransaction(Base):
    __tablename__ = "payme_transactions"

    id = Column(String, primary_key=True)
    time = Column(BigInteger, nullable=False)                 # client timestamp, pass-through
    amount = Column(BigInteger, nullable=False)               # tiyin
    account = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    order_id = Column(String, nullable=True, index=True)
    state = Column(Integer, nullable=False)                   # TransactionState
    create_time = Column(BigInteger, nullable=False, index=True)
    perform_time = Column(BigInteger, nullable=False, default=0)
    cancel_time = Column(BigInteger, nullable=False, default=0)
    reason = Column(Integer, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
