# slotpay/routers/payments.py
from __future__ import annotations
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import Settings
from ..deps import get_app_settings, get_db, get_gateway
from .. import schemas
from ..services.booking import record_verified_payment
from ..services.payments import create_order, fetch_payment_details
from ..services.signatures import verify_payment_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/create-order", response_model=schemas.PaymentOrder)
def create_order_endpoint(
    req: schemas.CreateOrderRequest,
    settings: Settings = Depends(get_app_settings),
    gateway=Depends(get_gateway),
):
    return create_order(gateway, req.amount, req.currency, default_currency=settings.DEFAULT_CURRENCY)


@router.post("/verify-payment", response_model=schemas.VerifyPaymentResponse)
def verify_payment(
    req: schemas.VerifyPaymentRequest,
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    verified = verify_payment_signature(
        req.razorpay_order_id,
        req.razorpay_payment_id,
        req.razorpay_signature,
        settings.RAZORPAY_KEY_SECRET,
    )
    if not verified:
        logger.warning("Firma inválida: order_id=%s payment_id=%s", req.razorpay_order_id, req.razorpay_payment_id)
        return JSONResponse(
            status_code=400,
            content={"verified": False, "message": "Invalid payment signature"},
        )

    record_verified_payment(db, req.razorpay_order_id, req.razorpay_payment_id)
    logger.info("Pago verificado: order_id=%s payment_id=%s", req.razorpay_order_id, req.razorpay_payment_id)
    return schemas.VerifyPaymentResponse(verified=True)


@router.get("/payment/{payment_id}")
def payment_details(payment_id: str, gateway=Depends(get_gateway)):
    return fetch_payment_details(gateway, payment_id)
