"""
Typed errors for the payment gateways.

Handlers raise these; the gateway entry point converts them to the provider
wire shape (JSON-RPC `error` for Payme, `error`/`error_note` for Click).
"""
from __future__ import annotations

from typing import Any

from app.payments.enums import ClickErrorCode, PaymeErrorCode, RpcErrorCode


class PaymeError(Exception):
    code: int = RpcErrorCode.INTERNAL_ERROR
    messages: dict[str, str] = {
        "ru": "Системная ошибка",
        "uz": "Tizim xatosi",
        "en": "Internal error",
    }

    def __init__(self, detail: str | None = None, data: Any = None) -> None:
        self.detail = detail
        self.data = data
        super().__init__(detail or self.messages["en"])

    @property
    def message(self) -> str:
        return self.detail or self.messages["en"]

    def to_rpc(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": int(self.code), "message": dict(self.messages)}
        if self.data is not None:
            error["data"] = self.data
        return error


class InvalidAmount(PaymeError):
    code = PaymeErrorCode.INVALID_AMOUNT
    messages = {
        "ru": "Неверная сумма",
        "uz": "Noto'g'ri summa",
        "en": "Invalid amount",
    }


class InvalidAccount(PaymeError):
    code = PaymeErrorCode.INVALID_ACCOUNT
    messages = {
        "ru": "Заказ не найден",
        "uz": "Buyurtma topilmadi",
        "en": "Invalid account",
    }

    def __init__(self, detail: str | None = None, field: str = "order_id") -> None:
        super().__init__(detail, data=field)


class TransactionNotFound(PaymeError):
    code = PaymeErrorCode.TRANSACTION_NOT_FOUND
    messages = {
        "ru": "Транзакция не найдена",
        "uz": "Tranzaksiya topilmadi",
        "en": "Transaction not found",
    }


class UnableToPerform(PaymeError):
    code = PaymeErrorCode.UNABLE_TO_PERFORM
    messages = {
        "ru": "Невозможно выполнить операцию",
        "uz": "Amalni bajarib bo'lmaydi",
        "en": "Unable to perform operation",
    }


class InsufficientPrivilege(PaymeError):
    code = RpcErrorCode.INSUFFICIENT_PRIVILEGE
    messages = {
        "ru": "Недостаточно привилегий",
        "uz": "Huquqlar yetarli emas",
        "en": "Insufficient privilege",
    }


class MethodNotFound(PaymeError):
    code = RpcErrorCode.METHOD_NOT_FOUND
    messages = {
        "ru": "Метод не найден",
        "uz": "Metod topilmadi",
        "en": "Method not found",
    }


class InvalidRequest(PaymeError):
    code = RpcErrorCode.INVALID_REQUEST
    messages = {
        "ru": "Неверный запрос",
        "uz": "Noto'g'ri so'rov",
        "en": "Invalid request",
    }


class ParseError(PaymeError):
    code = RpcErrorCode.PARSE_ERROR
    messages = {
        "ru": "Ошибка разбора JSON",
        "uz": "JSON tahlil xatosi",
        "en": "Parse error",
    }


class ClickError(Exception):
    """Click domain error; note is sent back as error_note."""

    def __init__(self, code: ClickErrorCode, note: str) -> None:
        self.code = code
        self.note = note
        super().__init__(note)
