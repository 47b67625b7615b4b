"""Tests for PaymentService — orders, ownership, OrderGateway side effects, audit."""
import pytest

from app.models.audit_log import AuditLog
from app.models.payment import PaymentOrder
from app.payments.config import ClickConfig, PaymeConfig
from app.services.audit.service import AuditService
from app.services.payments.service import (
    PaymentForbidden,
    PaymentNotFound,
    PaymentService,
    PaymentStateError,
)

CLICK = ClickConfig(service_id="1001", merchant_id="2002", secret_key="s", return_url="https://talabahub.uz")
PAYME = PaymeConfig(merchant_id="pm-1", secret_key="s", return_url="https://talabahub.uz")


@pytest.fixture
def service(db):
    return PaymentService(db, click_config=CLICK, payme_config=PAYME)


def _create(service, provider="payme", user_id="u1", amount=5000):
    return service.create_payment(
        user_id=user_id,
        provider=provider,
        payment_type="course",
        entity_id="c1",
        amount=amount,
    )


class TestCreatePayment:
    def test_payme(self, service, db):
        result = _create(service)
        assert result["status"] == "pending"
        assert result["order_id"].startswith("course_c1_u1_")
        assert result["payment_url"].startswith("https://checkout.paycom.uz/")
        order = db.query(PaymentOrder).filter_by(id=result["order_id"]).one()
        assert order.amount == 5000
        assert order.status == "pending"
        assert db.query(AuditLog).filter_by(action="payment_created").count() == 1

    def test_click_return_url(self, service):
        result = _create(service, provider="click")
        assert result["payment_url"].startswith("https://my.click.uz/services/pay?")
        assert "payments%2Fsuccess" in result["payment_url"]

    def test_unknown_provider(self, service):
        with pytest.raises(ValueError):
            _create(service, provider="paypal")

    def test_non_positive_amount(self, service):
        with pytest.raises(ValueError):
            _create(service, amount=0)


class TestUserOperations:
    def test_status_own_payment(self, service):
        order_id = _create(service)["order_id"]
        assert service.get_payment_status(order_id, "u1").id == order_id

    def test_status_not_found(self, service):
        with pytest.raises(PaymentNotFound):
            service.get_payment_status("missing", "u1")

    def test_status_foreign_payment(self, service):
        order_id = _create(service)["order_id"]
        with pytest.raises(PaymentForbidden):
            service.get_payment_status(order_id, "u2")

    def test_cancel_pending(self, service):
        order_id = _create(service)["order_id"]
        order = service.cancel_payment(order_id, "u1")
        assert order.status == "cancelled"
        assert order.cancelled_at is not None

    def test_cancel_processing_rejected(self, service, db):
        order_id = _create(service)["order_id"]
        service.mark_processing(order_id, "t1")
        db.commit()
        with pytest.raises(PaymentStateError):
            service.cancel_payment(order_id, "u1")

    def test_user_payments_only_own(self, service):
        _create(service, user_id="u1")
        _create(service, user_id="u2")
        payments = service.get_user_payments("u1")
        assert len(payments) == 1
        assert payments[0].user_id == "u1"


class TestOrderGateway:
    def test_lookup(self, service):
        order_id = _create(service)["order_id"]
        info = service.lookup(order_id)
        assert info.amount == 5000
        assert info.payable is True
        assert info.status == "pending"
        assert info.provider == "payme"
        assert service.lookup("missing") is None

    def test_paid_and_access(self, service, db):
        order_id = _create(service)["order_id"]
        service.mark_processing(order_id, "t1")
        service.mark_paid(order_id, "t1")
        service.grant_access(order_id)
        db.commit()
        order = db.query(PaymentOrder).filter_by(id=order_id).one()
        assert order.status == "completed"
        assert order.paid_at is not None
        assert order.access_granted_at is not None
        assert service.lookup(order_id).payable is False
        assert db.query(AuditLog).filter_by(action="access_granted", entity_id="c1").count() == 1

    def test_audit_trail_for_order(self, service, db):
        order_id = _create(service)["order_id"]
        service.mark_processing(order_id, "t1")
        service.mark_paid(order_id, "t1")
        db.commit()
        actions = [e.action for e in AuditService(db).list_for_entity("payment_order", order_id)]
        assert sorted(actions) == ["payment_completed", "payment_created", "payment_processing"]
        assert AuditService(db).list_for_entity("payment_order", "missing") == []

    def test_grant_access_once(self, service, db):
        order_id = _create(service)["order_id"]
        service.grant_access(order_id)
        service.grant_access(order_id)
        db.commit()
        assert db.query(AuditLog).filter_by(action="access_granted").count() == 1

    def test_refund_marks_refunded(self, service, db):
        order_id = _create(service)["order_id"]
        service.mark_paid(order_id, "t1")
        service.mark_cancelled(order_id, refunded=True)
        db.commit()
        order = db.query(PaymentOrder).filter_by(id=order_id).one()
        assert order.status == "refunded"
        assert order.cancelled_at is not None

    def test_missing_order_is_noop(self, service):
        service.mark_paid("missing", "t1")
        service.grant_access("missing")
        service.mark_cancelled("missing")
