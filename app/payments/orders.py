"""
Интерфейс заказов, который вызывают шлюзы Click/Payme.
Реализация — app.services.payments.service.PaymentService.
"""
from abc import ABC, abstractmethod

from app.payments.models import OrderInfo


class OrderGateway(ABC):
    @abstractmethod
    def lookup(self, order_id: str, for_update: bool = False) -> OrderInfo | None:
        """Order amount, provider and payability, None if unknown.
        for_update locks the order row until the gateway commits."""

    @abstractmethod
    def mark_processing(self, order_id: str, provider_ref: str) -> None:
        """Provider reserved the payment (Click prepare, Payme CreateTransaction)."""

    @abstractmethod
    def mark_paid(self, order_id: str, provider_ref: str) -> None:
        ...

    @abstractmethod
    def grant_access(self, order_id: str) -> None:
        """Unlock the purchased course/event/subscription."""

    @abstractmethod
    def mark_cancelled(self, order_id: str, refunded: bool = False) -> None:
        ...
