"""
Provider webhooks: Click prepare/complete and Payme JSON-RPC.
No session auth here: Click is checked by sign_string, Payme by Basic auth.
Always HTTP 200, errors go in the provider-shaped body.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.db.session import get_db
from app.payments.click import ClickGateway
from app.payments.config import get_click_config, get_payme_config
from app.payments.errors import ParseError
from app.payments.payme import PaymeGateway
from app.payments.store import TransactionStore
from app.services.payments.service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment-webhooks"])


def get_click_gateway(db: Session = Depends(get_db)) -> ClickGateway:
    return ClickGateway(get_click_config(), PaymentService(db), db)


def get_payme_gateway(db: Session = Depends(get_db)) -> PaymeGateway:
    return PaymeGateway(get_payme_config(), TransactionStore(db), PaymentService(db))


async def _read_click_payload(request: Request) -> dict[str, Any]:
    """Click posts application/x-www-form-urlencoded; JSON is accepted too."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items()}


@router.post("/click/prepare")
async def click_prepare(request: Request, gateway: ClickGateway = Depends(get_click_gateway)) -> dict:
    payload = await _read_click_payload(request)
    return await run_in_threadpool(gateway.prepare, payload)


@router.post("/click/complete")
async def click_complete(request: Request, gateway: ClickGateway = Depends(get_click_gateway)) -> dict:
    payload = await _read_click_payload(request)
    return await run_in_threadpool(gateway.complete, payload)


@router.post("/payme")
async def payme_webhook(request: Request, gateway: PaymeGateway = Depends(get_payme_gateway)) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("payme_parse_error", extra={"provider": "payme"})
        return PaymeGateway.error_response(None, ParseError())
    return await run_in_threadpool(gateway.handle, payload, request.headers.get("Authorization"))
