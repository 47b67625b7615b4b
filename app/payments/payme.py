"""
PaymeGateway — Payme merchant API (JSON-RPC 2.0).

States: CREATED -> COMPLETED, CREATED -> CANCELLED, COMPLETED -> CANCELLED_AFTER_COMPLETE.
Nothing leaves the cancelled states.

handle() always returns a JSON-RPC envelope: Payme expects HTTP 200 with
an `error` object, never a transport-level error.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.models.payme_transaction import PaymeTransaction
from app.payments.config import PaymeConfig
from app.payments.enums import PaymentProvider, TransactionState
from app.payments.errors import (
    InsufficientPrivilege,
    InvalidAccount,
    InvalidAmount,
    InvalidRequest,
    MethodNotFound,
    PaymeError,
    TransactionNotFound,
    UnableToPerform,
)
from app.payments.models import OrderInfo, PaymeRequest
from app.payments.orders import OrderGateway
from app.payments.signatures import verify_payme_authorization
from app.payments.store import TransactionStore, now_ms
from app.payments.urls import payme_payment_url, to_minor_units
from app.utils.metrics import (
    transaction_transitions_total,
    webhook_duration_seconds,
    webhook_requests_total,
)

logger = logging.getLogger(__name__)


# ----- params (amount is always tiyin) -----


class _Params(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CheckPerformParams(_Params):
    amount: int
    account: dict[str, Any] = Field(default_factory=dict)


class CreateParams(_Params):
    id: str
    time: int
    amount: int
    account: dict[str, Any] = Field(default_factory=dict)


class TransactionParams(_Params):
    id: str


class CancelParams(_Params):
    id: str
    reason: int | None = None


class StatementParams(_Params):
    from_: int = Field(alias="from")
    to: int


class PaymeGateway:
    def __init__(
        self,
        config: PaymeConfig,
        store: TransactionStore,
        orders: OrderGateway,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.store = store
        self.orders = orders
        self.clock = clock
        self._methods: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            "CheckPerformTransaction": self.check_perform_transaction,
            "CreateTransaction": self.create_transaction,
            "PerformTransaction": self.perform_transaction,
            "CancelTransaction": self.cancel_transaction,
            "CheckTransaction": self.check_transaction,
            "GetStatement": self.get_statement,
        }

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def handle(self, payload: dict[str, Any] | PaymeRequest, auth_header: str | None) -> dict[str, Any]:
        started = time.monotonic()
        request_id = _request_id(payload)
        method = "unknown"
        try:
            if not verify_payme_authorization(auth_header, self.config.secret_key):
                raise InsufficientPrivilege("Invalid credentials")
            request = self._parse(payload)
            handler = self._methods.get(request.method)
            if handler is None:
                raise MethodNotFound(f"Method not found: {request.method}")
            method = request.method
            result = handler(request.params)
            webhook_requests_total.labels(provider="payme", method=method, outcome="ok").inc()
            return {"jsonrpc": "2.0", "id": request_id, "result": result}
        except PaymeError as e:
            self._rollback()
            logger.warning(
                "payme_request_rejected",
                extra={"rpc_method": method, "code": int(e.code), "error": e.message},
            )
            webhook_requests_total.labels(provider="payme", method=method, outcome=str(int(e.code))).inc()
            return self.error_response(request_id, e)
        except Exception:
            self._rollback()
            logger.exception("payme_request_failed", extra={"rpc_method": method})
            webhook_requests_total.labels(provider="payme", method=method, outcome="internal").inc()
            return self.error_response(request_id, PaymeError())
        finally:
            webhook_duration_seconds.labels(provider="payme", method=method).observe(
                time.monotonic() - started
            )

    @staticmethod
    def error_response(request_id: Any, error: PaymeError) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "error": error.to_rpc()}

    def generate_payment_url(self, order_id: str, amount: int, return_url: str | None = None) -> str:
        return payme_payment_url(self.config, order_id, amount, return_url)

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def check_perform_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(CheckPerformParams, params)
        order = self._validate_order(p.amount, p.account)
        logger.info("payme_check_perform", extra={"order_id": order.order_id, "amount": p.amount})
        return {"allow": True}

    def create_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(CreateParams, params)

        existing = self.store.get_for_update(p.id)
        if existing is not None:
            if existing.state != TransactionState.CREATED:
                raise UnableToPerform("Transaction already processed")
            return _create_result(existing)

        order = self._validate_order(p.amount, p.account, for_update=True)
        others = [tx for tx in self.store.find_active_for_order(order.order_id) if tx.id != p.id]
        if others:
            raise UnableToPerform("Order already has an active transaction")

        tx = self.store.create(
            transaction_id=p.id,
            time=p.time,
            amount=p.amount,
            account=p.account,
            create_time=self.clock(),
        )
        if tx.state != TransactionState.CREATED:
            raise UnableToPerform("Transaction already processed")
        self.orders.mark_processing(order.order_id, tx.id)
        self.store.commit()

        transaction_transitions_total.labels(new_state=TransactionState.CREATED.name).inc()
        logger.info(
            "payme_transaction_created",
            extra={"transaction_id": tx.id, "order_id": order.order_id, "amount": p.amount},
        )
        return _create_result(tx)

    def perform_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(TransactionParams, params)

        tx = self.store.get_for_update(p.id)
        if tx is None:
            raise TransactionNotFound()

        if tx.state == TransactionState.COMPLETED:
            return _perform_result(tx)
        if tx.state != TransactionState.CREATED:
            raise UnableToPerform("Transaction cannot be performed")

        if tx.order_id:
            # The order may have been cancelled or paid another way since CreateTransaction
            order = self.orders.lookup(tx.order_id, for_update=True)
            if order is None or not order.payable or order.provider_ref != tx.id:
                logger.warning(
                    "payme_perform_order_not_payable",
                    extra={
                        "transaction_id": tx.id,
                        "order_id": tx.order_id,
                        "state": order.status if order else None,
                    },
                )
                raise UnableToPerform("Order is no longer payable")

        tx.state = int(TransactionState.COMPLETED)
        tx.perform_time = self.clock()
        self.store.save(tx)
        if tx.order_id:
            self.orders.mark_paid(tx.order_id, tx.id)
            self.orders.grant_access(tx.order_id)
        self.store.commit()

        transaction_transitions_total.labels(new_state=TransactionState.COMPLETED.name).inc()
        logger.info(
            "payme_transaction_performed",
            extra={"transaction_id": tx.id, "order_id": tx.order_id},
        )
        return _perform_result(tx)

    def cancel_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(CancelParams, params)

        tx = self.store.get_for_update(p.id)
        if tx is None:
            raise TransactionNotFound()

        old_state = TransactionState(tx.state)
        if old_state == TransactionState.CREATED:
            new_state = TransactionState.CANCELLED
        elif old_state == TransactionState.COMPLETED:
            # Refund itself is handled outside (orchestrator gets refunded=True)
            new_state = TransactionState.CANCELLED_AFTER_COMPLETE
        else:
            # Already cancelled: Payme retries get the stored result
            return _cancel_result(tx)

        tx.state = int(new_state)
        tx.cancel_time = self.clock()
        tx.reason = p.reason
        self.store.save(tx)
        if self._owns_order(tx):
            self.orders.mark_cancelled(
                tx.order_id,
                refunded=new_state == TransactionState.CANCELLED_AFTER_COMPLETE,
            )
        else:
            logger.warning(
                "payme_cancel_order_untouched",
                extra={"transaction_id": tx.id, "order_id": tx.order_id},
            )
        self.store.commit()

        transaction_transitions_total.labels(new_state=new_state.name).inc()
        logger.info(
            "payme_transaction_cancelled",
            extra={
                "transaction_id": tx.id,
                "order_id": tx.order_id,
                "old_state": old_state.name,
                "new_state": new_state.name,
                "reason": p.reason,
            },
        )
        return _cancel_result(tx)

    def check_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(TransactionParams, params)
        tx = self.store.get(p.id)
        if tx is None:
            raise TransactionNotFound()
        return _check_result(tx)

    def get_statement(self, params: dict[str, Any]) -> dict[str, Any]:
        p = _validate(StatementParams, params)
        transactions = self.store.list_created_between(p.from_, p.to)
        return {"transactions": [format_transaction(tx) for tx in transactions]}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_order(self, amount: int, account: dict[str, Any], for_update: bool = False) -> OrderInfo:
        order_id = account.get("order_id")
        if not order_id:
            raise InvalidAccount("Invalid account")
        order = self.orders.lookup(str(order_id), for_update=for_update)
        if order is None or order.provider != PaymentProvider.PAYME.value:
            raise InvalidAccount("Order not found")
        if not order.payable:
            raise InvalidAccount("Order is not payable")
        expected = to_minor_units(order.amount, self.config.amount_multiplier)
        if amount != expected:
            raise InvalidAmount(f"Amount mismatch: expected {expected}, got {amount}")
        return order

    def _owns_order(self, tx: PaymeTransaction) -> bool:
        """The order still points at this transaction (nobody else reserved or paid it)."""
        if not tx.order_id:
            return False
        order = self.orders.lookup(tx.order_id, for_update=True)
        return order is not None and order.provider_ref == tx.id

    @staticmethod
    def _parse(payload: dict[str, Any] | PaymeRequest) -> PaymeRequest:
        if isinstance(payload, PaymeRequest):
            return payload
        if not isinstance(payload, dict):
            raise InvalidRequest("Request body must be a JSON object")
        return _validate(PaymeRequest, payload)

    def _rollback(self) -> None:
        try:
            self.store.rollback()
        except SQLAlchemyError:
            logger.exception("payme_rollback_failed")


def _request_id(payload: Any) -> Any:
    if isinstance(payload, PaymeRequest):
        return payload.id
    if isinstance(payload, dict):
        return payload.get("id")
    return None


def _validate(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidRequest(f"Invalid params: {e.error_count()} error(s)") from e


def format_transaction(tx: PaymeTransaction) -> dict[str, Any]:
    """Full record, as returned by GetStatement."""
    return {
        "id": tx.id,
        "time": tx.time,
        "amount": tx.amount,
        "account": tx.account,
        "create_time": tx.create_time,
        "perform_time": tx.perform_time or 0,
        "cancel_time": tx.cancel_time or 0,
        "transaction": tx.id,
        "state": tx.state,
        "reason": tx.reason,
    }


def _create_result(tx: PaymeTransaction) -> dict[str, Any]:
    return {"create_time": tx.create_time, "transaction": tx.id, "state": tx.state}


def _perform_result(tx: PaymeTransaction) -> dict[str, Any]:
    return {"transaction": tx.id, "perform_time": tx.perform_time or 0, "state": tx.state}


def _cancel_result(tx: PaymeTransaction) -> dict[str, Any]:
    return {"transaction": tx.id, "cancel_time": tx.cancel_time or 0, "state": tx.state}


def _check_result(tx: PaymeTransaction) -> dict[str, Any]:
    return {
        "create_time": tx.create_time,
        "perform_time": tx.perform_time or 0,
        "cancel_time": tx.cancel_time or 0,
        "transaction": tx.id,
        "state": tx.state,
        "reason": tx.reason,
    }
