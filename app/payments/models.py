"""
DTO платёжных вебхуков: Click prepare/complete, Payme JSON-RPC, OrderInfo для проверки заказа.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ClickPrepareRequest(BaseModel):
    """
    Click prepare callback. amount and sign_time stay strings: the signature
    is computed over the values exactly as Click sent them.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    click_trans_id: int
    service_id: int
    click_paydoc_id: int | None = None
    merchant_trans_id: str
    amount: str
    action: int
    error: int = 0
    error_note: str = ""
    sign_time: str
    sign_string: str

    def amount_decimal(self) -> Decimal | None:
        try:
            return Decimal(self.amount)
        except (InvalidOperation, ValueError):
            return None


class ClickCompleteRequest(ClickPrepareRequest):
    merchant_prepare_id: str = ""


class PaymeRequest(BaseModel):
    """JSON-RPC 2.0 envelope from Payme."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = "2.0"
    id: int | str | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class OrderInfo(BaseModel):
    """What the gateways need to know about a payable order."""

    order_id: str
    amount: int  # base currency units (sum)
    payable: bool
    status: str
    provider: str
    provider_ref: str | None = None

    model_config = {"frozen": True}
