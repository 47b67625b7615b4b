"""
Signature checks for inbound provider webhooks.
Click: MD5 over a fixed field order. Payme: HTTP Basic with login "Paycom".
Pure functions, no I/O.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

PAYME_LOGIN = "Paycom"


def click_signature(
    click_trans_id: int | str,
    service_id: int | str,
    secret_key: str,
    merchant_trans_id: str,
    merchant_prepare_id: int | str | None,
    amount: int | float | str,
    action: int | str,
    sign_time: str,
) -> str:
    """Lowercase hex MD5 of the fields concatenated in Click's documented order."""
    prepare_id = "" if merchant_prepare_id is None else merchant_prepare_id
    raw = (
        f"{click_trans_id}{service_id}{secret_key}{merchant_trans_id}"
        f"{prepare_id}{amount}{action}{sign_time}"
    )
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def verify_click_signature(
    click_trans_id: int | str,
    service_id: int | str,
    secret_key: str,
    merchant_trans_id: str,
    merchant_prepare_id: int | str | None,
    amount: int | float | str,
    action: int | str,
    sign_time: str,
    sign_string: str | None,
) -> bool:
    if not sign_string:
        return False
    expected = click_signature(
        click_trans_id,
        service_id,
        secret_key,
        merchant_trans_id,
        merchant_prepare_id,
        amount,
        action,
        sign_time,
    )
    return hmac.compare_digest(expected.encode("utf-8"), sign_string.encode("utf-8"))


def verify_payme_authorization(auth_header: str | None, secret_key: str) -> bool:
    """Header must be exactly 'Basic ' + base64('Paycom:<secret_key>')."""
    if not auth_header or not auth_header.startswith("Basic "):
        return False
    if not secret_key:
        return False
    try:
        decoded = base64.b64decode(auth_header[6:].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    expected = f"{PAYME_LOGIN}:{secret_key}"
    return hmac.compare_digest(decoded.encode("utf-8"), expected.encode("utf-8"))
