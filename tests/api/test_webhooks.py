"""HTTP-level tests: webhooks always answer 200, user endpoints need a Bearer JWT."""
import base64
import json

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.session import get_db
from app.main import app
from app.payments.signatures import click_signature


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _token(user_id="u1"):
    return jwt.encode({"sub": user_id}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _auth(user_id="u1"):
    return {"Authorization": f"Bearer {_token(user_id)}"}


def _payme_auth(secret):
    return "Basic " + base64.b64encode(f"Paycom:{secret}".encode()).decode()


def _create_order(client, provider="payme", amount=5000):
    resp = client.post(
        "/payment",
        json={"provider": provider, "type": "course", "entity_id": "c1", "amount": amount},
        headers=_auth(),
    )
    assert resp.status_code == 201
    return resp.json()


class TestUserEndpoints:
    def test_requires_token(self, client):
        assert client.get("/payment").status_code == 401
        assert client.get("/payment", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_create_list_status_cancel(self, client):
        created = _create_order(client)
        order_id = created["order_id"]

        listed = client.get("/payment", headers=_auth()).json()
        assert [p["order_id"] for p in listed] == [order_id]

        status = client.get(f"/payment/{order_id}", headers=_auth()).json()
        assert status["status"] == "pending"

        assert client.get(f"/payment/{order_id}", headers=_auth("u2")).status_code == 403
        assert client.get("/payment/missing", headers=_auth()).status_code == 404

        cancelled = client.post(f"/payment/{order_id}/cancel", headers=_auth())
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert client.post(f"/payment/{order_id}/cancel", headers=_auth()).status_code == 409

    def test_invalid_provider(self, client):
        resp = client.post(
            "/payment",
            json={"provider": "paypal", "type": "course", "entity_id": "c1", "amount": 100},
            headers=_auth(),
        )
        assert resp.status_code == 422


class TestPaymeWebhook:
    def _rpc(self, client, method, params, auth=None):
        return client.post(
            "/payment/payme",
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            headers={"Authorization": auth or _payme_auth(settings.payme_secret_key)},
        )

    def test_full_flow(self, client):
        order_id = _create_order(client)["order_id"]
        account = {"order_id": order_id}

        resp = self._rpc(client, "CheckPerformTransaction", {"amount": 500000, "account": account})
        assert resp.status_code == 200
        assert resp.json()["result"] == {"allow": True}

        resp = self._rpc(client, "CreateTransaction", {"id": "pm-1", "time": 1000, "amount": 500000, "account": account})
        assert resp.json()["result"]["state"] == 1

        resp = self._rpc(client, "PerformTransaction", {"id": "pm-1"})
        assert resp.json()["result"]["state"] == 2

        status = client.get(f"/payment/{order_id}", headers=_auth()).json()
        assert status["status"] == "completed"

    def test_bad_auth_is_200_with_error(self, client):
        resp = self._rpc(client, "CheckTransaction", {"id": "x"}, auth="Basic " + base64.b64encode(b"Paycom:bad").decode())
        assert resp.status_code == 200
        assert resp.json()["error"]["code"] == -32504

    def test_malformed_json(self, client):
        resp = client.post(
            "/payment/payme",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200
        assert resp.json()["error"]["code"] == -32700


class TestClickWebhook:
    def _signed(self, data):
        data["sign_string"] = click_signature(
            data["click_trans_id"], data["service_id"], settings.click_secret_key,
            data["merchant_trans_id"], data.get("merchant_prepare_id", ""),
            data["amount"], data["action"], data["sign_time"],
        )
        return data

    def test_prepare_and_complete_form(self, client):
        order_id = _create_order(client, provider="click", amount=15000)["order_id"]
        base = {
            "click_trans_id": "111",
            "service_id": settings.click_service_id,
            "click_paydoc_id": "222",
            "merchant_trans_id": order_id,
            "amount": "15000",
            "error": "0",
            "error_note": "Success",
            "sign_time": "2024-01-01 12:00:00",
        }
        prepare = client.post("/payment/click/prepare", data=self._signed({**base, "action": "0"}))
        assert prepare.status_code == 200
        body = prepare.json()
        assert body["error"] == 0
        prepare_id = body["merchant_prepare_id"]
        assert prepare_id > 0

        complete = client.post(
            "/payment/click/complete",
            data=self._signed({**base, "action": "1", "merchant_prepare_id": str(prepare_id)}),
        )
        assert complete.status_code == 200
        assert complete.json()["error"] == 0
        assert complete.json()["merchant_confirm_id"] > 0

        status = client.get(f"/payment/{order_id}", headers=_auth()).json()
        assert status["status"] == "completed"

    def test_prepare_bad_sign_json(self, client):
        resp = client.post(
            "/payment/click/prepare",
            json={
                "click_trans_id": 1, "service_id": 1001, "merchant_trans_id": "o1",
                "amount": 100, "action": 0, "sign_time": "t", "sign_string": "bad",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["error"] == -1
        assert resp.json()["merchant_prepare_id"] == 0


def test_health_and_request_id(client):
    resp = client.get("/health", headers={"X-Request-Id": "req-1"})
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-Id"] == "req-1"


def test_metrics(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "payment_webhook_duration_seconds" in resp.text
