"""
Frozen provider configs: snapshots of app.core.config taken once at startup
and passed into the gateway constructors.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel

from app.core.config import Settings, settings as app_settings


class ClickConfig(BaseModel):
    service_id: str
    merchant_id: str
    secret_key: str
    checkout_url: str = "https://my.click.uz/services/pay"
    return_url: str = ""

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ClickConfig":
        s = settings or app_settings
        return cls(
            service_id=s.click_service_id,
            merchant_id=s.click_merchant_id,
            secret_key=s.click_secret_key,
            checkout_url=s.click_checkout_url,
            return_url=s.frontend_url,
        )


class PaymeConfig(BaseModel):
    merchant_id: str
    secret_key: str
    checkout_url: str = "https://checkout.paycom.uz/"
    return_url: str = ""
    amount_multiplier: int = 100

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PaymeConfig":
        s = settings or app_settings
        return cls(
            merchant_id=s.payme_merchant_id,
            secret_key=s.payme_secret_key,
            checkout_url=s.payme_checkout_url,
            return_url=s.frontend_url,
            amount_multiplier=s.payme_amount_multiplier,
        )


@lru_cache
def get_click_config() -> ClickConfig:
    return ClickConfig.from_settings()


@lru_cache
def get_payme_config() -> PaymeConfig:
    return PaymeConfig.from_settings()
