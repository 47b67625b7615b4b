"""Tests for checkout URL builders."""
import base64
import json
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

from app.payments.config import ClickConfig, PaymeConfig
from app.payments.urls import click_payment_url, payme_payment_url, to_minor_units

CLICK = ClickConfig(service_id="1001", merchant_id="2002", secret_key="s", return_url="https://talabahub.uz")
PAYME = PaymeConfig(merchant_id="pm-1", secret_key="s", return_url="https://talabahub.uz")


def test_click_url_params():
    url = click_payment_url(CLICK, "event_e1_u1_1", 15000, return_url="https://talabahub.uz/payments/success")
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://my.click.uz/services/pay"
    assert parse_qs(parsed.query) == {
        "service_id": ["1001"],
        "merchant_id": ["2002"],
        "amount": ["15000"],
        "transaction_param": ["event_e1_u1_1"],
        "return_url": ["https://talabahub.uz/payments/success"],
    }


def test_click_url_default_return_url():
    query = parse_qs(urlparse(click_payment_url(CLICK, "o1", 100)).query)
    assert query["return_url"] == ["https://talabahub.uz"]


def test_payme_url_encodes_params_in_tiyin():
    url = payme_payment_url(PAYME, "course_c1_u1_1", 5000)
    assert url.startswith("https://checkout.paycom.uz/")
    encoded = url[len("https://checkout.paycom.uz/"):]
    params = json.loads(base64.b64decode(encoded))
    assert params == {
        "m": "pm-1",
        "ac": {"order_id": "course_c1_u1_1"},
        "a": 500000,
        "c": "https://talabahub.uz",
    }


def test_to_minor_units():
    assert to_minor_units(5000, 100) == 500000
    assert to_minor_units(Decimal("10.01"), 100) == 1001
    assert to_minor_units(0.29, 100) == 29
