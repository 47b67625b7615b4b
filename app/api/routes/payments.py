"""
User-facing payments: create (checkout link), list, status, cancel. Bearer JWT required.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.payments import PaymentCreate, PaymentCreated, PaymentOut, payment_out
from app.services.auth.jwt import get_current_user
from app.services.payments.service import (
    PaymentForbidden,
    PaymentNotFound,
    PaymentService,
    PaymentStateError,
)

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("", response_model=PaymentCreated, status_code=status.HTTP_201_CREATED)
def create_payment(
    body: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    service = PaymentService(db)
    try:
        return service.create_payment(
            user_id=current_user["id"],
            provider=body.provider.value,
            payment_type=body.type.value,
            entity_id=body.entity_id,
            amount=body.amount,
            metadata=body.metadata,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=list[PaymentOut])
def list_payments(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    orders = PaymentService(db).get_user_payments(current_user["id"], limit=limit)
    return [payment_out(o) for o in orders]


@router.get("/{order_id}", response_model=PaymentOut)
def get_payment_status(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    try:
        order = PaymentService(db).get_payment_status(order_id, current_user["id"])
    except PaymentNotFound:
        raise HTTPException(status_code=404, detail="Payment not found")
    except PaymentForbidden:
        raise HTTPException(status_code=403, detail="Forbidden")
    return payment_out(order)


@router.post("/{order_id}/cancel", response_model=PaymentOut)
def cancel_payment(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    try:
        order = PaymentService(db).cancel_payment(order_id, current_user["id"])
    except PaymentNotFound:
        raise HTTPException(status_code=404, detail="Payment not found")
    except PaymentForbidden:
        raise HTTPException(status_code=403, detail="Forbidden")
    except PaymentStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return payment_out(order)
