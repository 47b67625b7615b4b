"""
ClickGateway — Click SHOP API, two-phase prepare/complete.

Both entry points always return a Click-shaped dict: Click expects HTTP 200
and reads the `error` field, retrying on its side when it isn't 0.
"""
from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.payments.config import ClickConfig
from app.payments.enums import ClickAction, ClickErrorCode, PaymentProvider, PaymentStatus
from app.payments.errors import ClickError
from app.payments.models import ClickCompleteRequest, ClickPrepareRequest, OrderInfo
from app.payments.orders import OrderGateway
from app.payments.signatures import verify_click_signature
from app.payments.store import now_ms
from app.payments.urls import click_payment_url
from app.utils.metrics import webhook_duration_seconds, webhook_requests_total

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = (
    PaymentStatus.CANCELLED.value,
    PaymentStatus.REFUNDED.value,
    PaymentStatus.FAILED.value,
)


class ClickGateway:
    def __init__(
        self,
        config: ClickConfig,
        orders: OrderGateway,
        db: Session,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.orders = orders
        self.db = db
        self.clock = clock

    def generate_payment_url(self, order_id: str, amount: int, return_url: str | None = None) -> str:
        return click_payment_url(self.config, order_id, amount, return_url)

    # ------------------------------------------------------------------
    # prepare (action = 0)
    # ------------------------------------------------------------------

    def prepare(self, payload: dict[str, Any] | ClickPrepareRequest) -> dict[str, Any]:
        started = time.monotonic()
        raw = _as_dict(payload)
        try:
            request = (
                payload
                if isinstance(payload, ClickPrepareRequest)
                else ClickPrepareRequest.model_validate(payload)
            )
        except ValidationError:
            logger.warning("click_prepare_bad_request", extra={"provider": "click"})
            self._count("prepare", ClickErrorCode.UNKNOWN_ERROR)
            return _prepare_response(raw, 0, ClickErrorCode.UNKNOWN_ERROR, "Error in request from click")
        raw = request.model_dump()

        try:
            if not self._signature_ok(request, merchant_prepare_id=""):
                logger.error(
                    "click_sign_check_failed",
                    extra={"order_id": request.merchant_trans_id, "method": "prepare"},
                )
                self._count("prepare", ClickErrorCode.SIGN_CHECK_FAILED)
                return _prepare_response(raw, 0, ClickErrorCode.SIGN_CHECK_FAILED, "Invalid signature")

            if request.action != ClickAction.PREPARE:
                raise ClickError(ClickErrorCode.ACTION_NOT_FOUND, "Action not found")

            order = self._payable_order(request)
            # Retried prepare: Click must keep the id it may already hold
            merchant_prepare_id = _issued_prepare_id(order)
            if merchant_prepare_id is None:
                merchant_prepare_id = self.clock()
                self.orders.mark_processing(order.order_id, str(merchant_prepare_id))
            self.db.commit()

            logger.info(
                "click_prepare_ok",
                extra={
                    "order_id": order.order_id,
                    "transaction_id": request.click_trans_id,
                    "amount": request.amount,
                },
            )
            self._count("prepare", ClickErrorCode.SUCCESS)
            return _prepare_response(raw, merchant_prepare_id, ClickErrorCode.SUCCESS, "Success")
        except ClickError as e:
            self._rollback()
            logger.warning(
                "click_prepare_rejected",
                extra={"order_id": request.merchant_trans_id, "code": int(e.code), "error": e.note},
            )
            self._count("prepare", e.code)
            return _prepare_response(raw, 0, e.code, e.note)
        except Exception:
            self._rollback()
            logger.exception("click_prepare_error", extra={"order_id": request.merchant_trans_id})
            self._count("prepare", ClickErrorCode.UNKNOWN_ERROR)
            return _prepare_response(raw, 0, ClickErrorCode.UNKNOWN_ERROR, "Unknown error")
        finally:
            webhook_duration_seconds.labels(provider="click", method="prepare").observe(
                time.monotonic() - started
            )

    # ------------------------------------------------------------------
    # complete (action = 1)
    # ------------------------------------------------------------------

    def complete(self, payload: dict[str, Any] | ClickCompleteRequest) -> dict[str, Any]:
        started = time.monotonic()
        raw = _as_dict(payload)
        try:
            request = (
                payload
                if isinstance(payload, ClickCompleteRequest)
                else ClickCompleteRequest.model_validate(payload)
            )
        except ValidationError:
            logger.warning("click_complete_bad_request", extra={"provider": "click"})
            self._count("complete", ClickErrorCode.UNKNOWN_ERROR)
            return _complete_response(raw, 0, ClickErrorCode.UNKNOWN_ERROR, "Error in request from click")
        raw = request.model_dump()

        try:
            if not self._signature_ok(request, merchant_prepare_id=request.merchant_prepare_id):
                logger.error(
                    "click_sign_check_failed",
                    extra={"order_id": request.merchant_trans_id, "method": "complete"},
                )
                self._count("complete", ClickErrorCode.SIGN_CHECK_FAILED)
                return _complete_response(raw, 0, ClickErrorCode.SIGN_CHECK_FAILED, "Invalid signature")

            if request.action != ClickAction.COMPLETE:
                raise ClickError(ClickErrorCode.ACTION_NOT_FOUND, "Action not found")

            order = self._click_order(request.merchant_trans_id)
            if order.provider_ref != str(request.merchant_prepare_id):
                raise ClickError(ClickErrorCode.TRANSACTION_NOT_FOUND, "Transaction not found")
            if order.status == PaymentStatus.COMPLETED.value:
                raise ClickError(ClickErrorCode.ALREADY_PAID, "Already paid")
            if order.status in CANCELLED_STATUSES:
                raise ClickError(ClickErrorCode.TRANSACTION_CANCELLED, "Transaction cancelled")

            if request.error < 0:
                # Click reports that the payment failed on its side
                self.orders.mark_cancelled(order.order_id, refunded=False)
                self.db.commit()
                raise ClickError(ClickErrorCode.TRANSACTION_CANCELLED, "Transaction cancelled")

            self._check_amount(request, order)

            merchant_confirm_id = self.clock()
            self.orders.mark_paid(order.order_id, order.provider_ref)
            self.orders.grant_access(order.order_id)
            self.db.commit()

            logger.info(
                "click_complete_ok",
                extra={
                    "order_id": order.order_id,
                    "transaction_id": request.click_trans_id,
                    "amount": request.amount,
                },
            )
            self._count("complete", ClickErrorCode.SUCCESS)
            return _complete_response(raw, merchant_confirm_id, ClickErrorCode.SUCCESS, "Success")
        except ClickError as e:
            self._rollback()
            logger.warning(
                "click_complete_rejected",
                extra={"order_id": request.merchant_trans_id, "code": int(e.code), "error": e.note},
            )
            self._count("complete", e.code)
            return _complete_response(raw, 0, e.code, e.note)
        except Exception:
            self._rollback()
            logger.exception("click_complete_error", extra={"order_id": request.merchant_trans_id})
            self._count("complete", ClickErrorCode.UNKNOWN_ERROR)
            return _complete_response(raw, 0, ClickErrorCode.UNKNOWN_ERROR, "Unknown error")
        finally:
            webhook_duration_seconds.labels(provider="click", method="complete").observe(
                time.monotonic() - started
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _signature_ok(self, request: ClickPrepareRequest, merchant_prepare_id: str) -> bool:
        return verify_click_signature(
            click_trans_id=request.click_trans_id,
            service_id=request.service_id,
            secret_key=self.config.secret_key,
            merchant_trans_id=request.merchant_trans_id,
            merchant_prepare_id=merchant_prepare_id,
            amount=request.amount,
            action=request.action,
            sign_time=request.sign_time,
            sign_string=request.sign_string,
        )

    def _click_order(self, order_id: str) -> OrderInfo:
        order = self.orders.lookup(order_id, for_update=True)
        if order is None or order.provider != PaymentProvider.CLICK.value:
            raise ClickError(ClickErrorCode.USER_NOT_FOUND, "Order not found")
        return order

    def _payable_order(self, request: ClickPrepareRequest) -> OrderInfo:
        order = self._click_order(request.merchant_trans_id)
        if order.status == PaymentStatus.COMPLETED.value:
            raise ClickError(ClickErrorCode.ALREADY_PAID, "Already paid")
        if not order.payable:
            raise ClickError(ClickErrorCode.TRANSACTION_CANCELLED, "Transaction cancelled")
        self._check_amount(request, order)
        return order

    @staticmethod
    def _check_amount(request: ClickPrepareRequest, order: OrderInfo) -> None:
        amount = request.amount_decimal()
        if amount is None or amount != Decimal(order.amount):
            raise ClickError(ClickErrorCode.INVALID_AMOUNT, "Incorrect parameter amount")

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("click_rollback_failed")

    @staticmethod
    def _count(method: str, code: ClickErrorCode) -> None:
        outcome = "ok" if code == ClickErrorCode.SUCCESS else str(int(code))
        webhook_requests_total.labels(provider="click", method=method, outcome=outcome).inc()


def _issued_prepare_id(order: OrderInfo) -> int | None:
    """Prepare id already handed to Click for this order, if any."""
    if order.status != PaymentStatus.PROCESSING.value or not order.provider_ref:
        return None
    if not order.provider_ref.isdigit():
        return None
    return int(order.provider_ref)


def _as_dict(payload: Any) -> dict[str, Any]:
    if isinstance(payload, ClickPrepareRequest):
        return payload.model_dump()
    return payload if isinstance(payload, dict) else {}


def _prepare_response(raw: dict[str, Any], prepare_id: int, code: ClickErrorCode, note: str) -> dict[str, Any]:
    return {
        "click_trans_id": raw.get("click_trans_id"),
        "merchant_trans_id": raw.get("merchant_trans_id"),
        "merchant_prepare_id": prepare_id,
        "error": int(code),
        "error_note": note,
    }


def _complete_response(raw: dict[str, Any], confirm_id: int, code: ClickErrorCode, note: str) -> dict[str, Any]:
    return {
        "click_trans_id": raw.get("click_trans_id"),
        "merchant_trans_id": raw.get("merchant_trans_id"),
        "merchant_confirm_id": confirm_id,
        "error": int(code),
        "error_note": note,
    }
