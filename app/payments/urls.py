"""Checkout URLs for Click and Payme. Pure formatting, no state."""
from __future__ import annotations

import base64
import json
from decimal import Decimal
from urllib.parse import urlencode

from app.payments.config import ClickConfig, PaymeConfig


def to_minor_units(amount: int | float | Decimal | str, multiplier: int) -> int:
    """Sum -> tiyin (or any provider minor unit) without float rounding drift."""
    return int((Decimal(str(amount)) * multiplier).to_integral_value())


def click_payment_url(
    config: ClickConfig,
    order_id: str,
    amount: int | float | Decimal,
    return_url: str | None = None,
) -> str:
    params = {
        "service_id": config.service_id,
        "merchant_id": config.merchant_id,
        "amount": str(amount),
        "transaction_param": order_id,
        "return_url": return_url or config.return_url,
    }
    return f"{config.checkout_url}?{urlencode(params)}"


def payme_payment_url(
    config: PaymeConfig,
    order_id: str,
    amount: int | float | Decimal,
    return_url: str | None = None,
) -> str:
    params = {
        "m": config.merchant_id,
        "ac": {"order_id": order_id},
        "a": to_minor_units(amount, config.amount_multiplier),
        "c": return_url or config.return_url,
    }
    encoded = base64.b64encode(json.dumps(params).encode("utf-8")).decode("ascii")
    return f"{config.checkout_url.rstrip('/')}/{encoded}"

