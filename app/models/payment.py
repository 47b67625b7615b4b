"""
PaymentOrder — заказ на оплату (курс, событие, подписка) через Click или Payme.
id — order id, который уходит провайдеру (merchant_trans_id у Click, account.order_id у Payme).
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base


class PaymentOrder(Base):
    __tablename__ = "payment_orders"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    provider = Column(String, nullable=False)                 # click / payme
    payment_type = Column(String, nullable=False)             # course / event / subscription
    entity_id = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=False)               # UZS (sum), not tiyin
    status = Column(String, nullable=False, default="pending")
    provider_ref = Column(String, nullable=True)              # click prepare id / payme transaction id
    extra = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    access_granted_at = Column(DateTime(timezone=True), nullable=True)

    def is_payable(self) -> bool:
        return self.status in ("pending", "processing")
