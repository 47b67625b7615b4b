"""
TransactionStore — Payme transactions in PostgreSQL, keyed by Payme transaction id.

State transitions are done on rows taken with SELECT ... FOR UPDATE and
committed in one unit, so Create/Perform/Cancel are atomic per transaction
id across workers and replicas.
"""
from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.payme_transaction import PaymeTransaction
from app.payments.enums import TransactionState

logger = logging.getLogger(__name__)

ACTIVE_STATES = (TransactionState.CREATED, TransactionState.COMPLETED)


def now_ms() -> int:
    return int(time.time() * 1000)


class TransactionStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: str) -> PaymeTransaction | None:
        return (
            self.db.query(PaymeTransaction)
            .filter(PaymeTransaction.id == transaction_id)
            .one_or_none()
        )

    def get_for_update(self, transaction_id: str) -> PaymeTransaction | None:
        return (
            self.db.query(PaymeTransaction)
            .filter(PaymeTransaction.id == transaction_id)
            .with_for_update()
            .one_or_none()
        )

    def create(
        self,
        transaction_id: str,
        time: int,
        amount: int,
        account: dict[str, Any],
        create_time: int,
    ) -> PaymeTransaction:
        """
        Insert a CREATED transaction.
        Idempotent: if a concurrent request already inserted this id, returns the stored row.
        """
        tx = PaymeTransaction(
            id=transaction_id,
            time=time,
            amount=amount,
            account=dict(account),
            order_id=_order_id(account),
            state=int(TransactionState.CREATED),
            create_time=create_time,
            perform_time=0,
            cancel_time=0,
        )
        try:
            self.db.add(tx)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "payme_transaction_duplicate",
                extra={"transaction_id": transaction_id},
            )
            existing = self.get_for_update(transaction_id)
            if existing is None:
                raise
            return existing
        return tx

    def find_active_for_order(self, order_id: str) -> list[PaymeTransaction]:
        return (
            self.db.query(PaymeTransaction)
            .filter(
                PaymeTransaction.order_id == order_id,
                PaymeTransaction.state.in_([int(s) for s in ACTIVE_STATES]),
            )
            .all()
        )

    def list_created_between(self, from_ms: int, to_ms: int) -> list[PaymeTransaction]:
        """Transactions with from_ms <= create_time <= to_ms, oldest first."""
        return (
            self.db.query(PaymeTransaction)
            .filter(
                PaymeTransaction.create_time >= from_ms,
                PaymeTransaction.create_time <= to_ms,
            )
            .order_by(PaymeTransaction.create_time)
            .all()
        )

    def save(self, tx: PaymeTransaction) -> PaymeTransaction:
        self.db.add(tx)
        self.db.flush()
        return tx

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


def _order_id(account: dict[str, Any]) -> str | None:
    value = account.get("order_id")
    return str(value) if value not in (None, "") else None
