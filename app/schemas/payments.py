from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.payments.enums import PaymentProvider, PaymentType


class PaymentCreate(BaseModel):
    provider: PaymentProvider
    type: PaymentType
    entity_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Amount in UZS")
    metadata: dict[str, Any] | None = None


class PaymentCreated(BaseModel):
    order_id: str
    provider: str
    amount: int
    payment_url: str
    status: str


class PaymentOut(BaseModel):
    order_id: str
    provider: str
    payment_type: str
    entity_id: str
    amount: int
    status: str
    created_at: datetime
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None


def payment_out(order) -> PaymentOut:
    return PaymentOut(
        order_id=order.id,
        provider=order.provider,
        payment_type=order.payment_type,
        entity_id=order.entity_id,
        amount=order.amount,
        status=order.status,
        created_at=order.created_at,
        paid_at=order.paid_at,
        cancelled_at=order.cancelled_at,
    )
