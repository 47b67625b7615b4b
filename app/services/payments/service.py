"""
PaymentService — заказы на оплату через Click / Payme.

Ответственности:
- Создание заказа и ссылки на оплату у провайдера
- Статус, отмена и история платежей пользователя
- Реализация OrderGateway для вебхуков: проверка заказа, оплата, выдача доступа, отмена

Методы OrderGateway только делают flush, коммит делает шлюз, в одной транзакции
с изменением состояния транзакции провайдера.
"""
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.models.payment import PaymentOrder
from app.payments.config import ClickConfig, PaymeConfig, get_click_config, get_payme_config
from app.payments.enums import PaymentProvider, PaymentStatus, PaymentType
from app.payments.models import OrderInfo
from app.payments.orders import OrderGateway
from app.payments.urls import click_payment_url, payme_payment_url
from app.services.audit.service import AuditService
from app.utils.metrics import payments_created_total

logger = logging.getLogger(__name__)

ACTOR_SYSTEM = "system"
ACTOR_USER = "user"


class PaymentNotFound(Exception):
    pass


class PaymentForbidden(Exception):
    pass


class PaymentStateError(Exception):
    pass


class PaymentService(OrderGateway):
    def __init__(
        self,
        db: Session,
        click_config: ClickConfig | None = None,
        payme_config: PaymeConfig | None = None,
    ):
        self.db = db
        self.click_config = click_config or get_click_config()
        self.payme_config = payme_config or get_payme_config()
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # User-facing
    # ------------------------------------------------------------------

    def create_payment(
        self,
        user_id: str,
        provider: str,
        payment_type: str,
        entity_id: str,
        amount: int | Decimal,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Создаёт заказ в статусе pending и ссылку на оплату.
        Raises ValueError на неизвестный provider / payment_type / неположительную сумму.
        """
        provider_enum = PaymentProvider(provider)
        type_enum = PaymentType(payment_type)
        if amount <= 0:
            raise ValueError("amount must be positive")

        order_id = f"{type_enum.value}_{entity_id}_{user_id}_{int(time.time() * 1000)}"

        if provider_enum is PaymentProvider.CLICK:
            payment_url = click_payment_url(
                self.click_config,
                order_id,
                amount,
                return_url=f"{self.click_config.return_url}/payments/success",
            )
        else:
            payment_url = payme_payment_url(self.payme_config, order_id, amount)

        order = PaymentOrder(
            id=order_id,
            user_id=user_id,
            provider=provider_enum.value,
            payment_type=type_enum.value,
            entity_id=entity_id,
            amount=int(amount),
            status=PaymentStatus.PENDING.value,
            extra=metadata or {},
        )
        self.db.add(order)
        self.db.flush()
        self.audit.log(
            ACTOR_USER, user_id, "payment_created", "payment_order", order_id,
            {"provider": provider_enum.value, "amount": int(amount)},
            commit=False,
        )
        self.db.commit()

        payments_created_total.labels(provider=provider_enum.value, payment_type=type_enum.value).inc()
        logger.info(
            "payment_created",
            extra={"order_id": order_id, "provider": provider_enum.value, "user_id": user_id},
        )
        return {
            "order_id": order_id,
            "provider": provider_enum.value,
            "amount": int(amount),
            "payment_url": payment_url,
            "status": PaymentStatus.PENDING.value,
        }

    def get_payment_status(self, order_id: str, user_id: str) -> PaymentOrder:
        return self._get_own(order_id, user_id)

    def cancel_payment(self, order_id: str, user_id: str) -> PaymentOrder:
        """Пользователь может отменить только свой заказ, пока провайдер его не взял в работу."""
        order = self._get_own(order_id, user_id, for_update=True)
        if order.status != PaymentStatus.PENDING.value:
            raise PaymentStateError(f"Payment in status '{order.status}' cannot be cancelled")
        order.status = PaymentStatus.CANCELLED.value
        order.cancelled_at = datetime.now(timezone.utc)
        self.db.add(order)
        self.audit.log(ACTOR_USER, user_id, "payment_cancelled", "payment_order", order_id, commit=False)
        self.db.commit()
        logger.info("payment_cancelled_by_user", extra={"order_id": order_id, "user_id": user_id})
        return order

    def get_user_payments(self, user_id: str, limit: int = 50) -> list[PaymentOrder]:
        """Последние заказы пользователя."""
        return (
            self.db.query(PaymentOrder)
            .filter(PaymentOrder.user_id == user_id)
            .order_by(PaymentOrder.created_at.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # OrderGateway (called by Click / Payme gateways)
    # ------------------------------------------------------------------

    def lookup(self, order_id: str, for_update: bool = False) -> OrderInfo | None:
        order = self._get(order_id, for_update=for_update)
        if order is None:
            return None
        return OrderInfo(
            order_id=order.id,
            amount=order.amount,
            payable=order.is_payable(),
            status=order.status,
            provider=order.provider,
            provider_ref=order.provider_ref,
        )

    def mark_processing(self, order_id: str, provider_ref: str) -> None:
        order = self._get(order_id, for_update=True)
        if order is None:
            logger.warning("payment_order_missing", extra={"order_id": order_id, "state": "processing"})
            return
        order.status = PaymentStatus.PROCESSING.value
        order.provider_ref = provider_ref
        self.db.add(order)
        self.audit.log(
            ACTOR_SYSTEM, order.provider, "payment_processing", "payment_order", order_id,
            {"provider_ref": provider_ref},
            commit=False,
        )

    def mark_paid(self, order_id: str, provider_ref: str) -> None:
        order = self._get(order_id, for_update=True)
        if order is None:
            logger.warning("payment_order_missing", extra={"order_id": order_id, "state": "completed"})
            return
        order.status = PaymentStatus.COMPLETED.value
        order.provider_ref = provider_ref
        order.paid_at = datetime.now(timezone.utc)
        self.db.add(order)
        self.audit.log(
            ACTOR_SYSTEM, order.provider, "payment_completed", "payment_order", order_id,
            {"provider_ref": provider_ref, "amount": order.amount},
            commit=False,
        )
        logger.info(
            "payment_completed",
            extra={"order_id": order_id, "provider": order.provider, "user_id": order.user_id},
        )

    def grant_access(self, order_id: str) -> None:
        order = self._get(order_id, for_update=True)
        if order is None:
            logger.warning("payment_order_missing", extra={"order_id": order_id, "state": "access"})
            return
        if order.access_granted_at is not None:
            return
        order.access_granted_at = datetime.now(timezone.utc)
        self.db.add(order)
        self.audit.log(
            ACTOR_SYSTEM, order.provider, "access_granted", order.payment_type, order.entity_id,
            {"order_id": order_id, "user_id": order.user_id},
            commit=False,
        )
        logger.info(
            "payment_access_granted",
            extra={"order_id": order_id, "user_id": order.user_id},
        )

    def mark_cancelled(self, order_id: str, refunded: bool = False) -> None:
        order = self._get(order_id, for_update=True)
        if order is None:
            logger.warning("payment_order_missing", extra={"order_id": order_id, "state": "cancelled"})
            return
        order.status = PaymentStatus.REFUNDED.value if refunded else PaymentStatus.CANCELLED.value
        order.cancelled_at = datetime.now(timezone.utc)
        self.db.add(order)
        self.audit.log(
            ACTOR_SYSTEM, order.provider, "payment_refunded" if refunded else "payment_cancelled",
            "payment_order", order_id,
            commit=False,
        )
        if refunded and order.access_granted_at is not None:
            # Доступ не отзываем автоматически, решает поддержка
            logger.warning(
                "payment_refunded_access_kept",
                extra={"order_id": order_id, "user_id": order.user_id},
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, order_id: str, for_update: bool = False) -> PaymentOrder | None:
        q = self.db.query(PaymentOrder).filter(PaymentOrder.id == order_id)
        if for_update:
            q = q.with_for_update()
        return q.one_or_none()

    def _get_own(self, order_id: str, user_id: str, for_update: bool = False) -> PaymentOrder:
        order = self._get(order_id, for_update=for_update)
        if order is None:
            raise PaymentNotFound(order_id)
        if order.user_id != user_id:
            raise PaymentForbidden(order_id)
        return order
