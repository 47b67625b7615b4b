"""
Click и Payme: проверка подписей, обработка вебхуков, ссылки на оплату.
Шлюзы работают с заказами только через OrderGateway.
"""
from app.payments.click import ClickGateway
from app.payments.config import ClickConfig, PaymeConfig
from app.payments.enums import (
    ClickErrorCode,
    PaymeErrorCode,
    PaymentStatus,
    TransactionState,
)
from app.payments.orders import OrderGateway
from app.payments.payme import PaymeGateway
from app.payments.signatures import verify_click_signature, verify_payme_authorization
from app.payments.store import TransactionStore
from app.payments.urls import click_payment_url, payme_payment_url

__all__ = [
    "ClickConfig",
    "ClickErrorCode",
    "ClickGateway",
    "OrderGateway",
    "PaymeConfig",
    "PaymeErrorCode",
    "PaymeGateway",
    "PaymentStatus",
    "TransactionState",
    "TransactionStore",
    "click_payment_url",
    "payme_payment_url",
    "verify_click_signature",
    "verify_payme_authorization",
]
