# slotpay/services/payments.py
from __future__ import annotations
import logging
import time
import uuid
from typing import Any, Optional, Protocol

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from ..config import Settings
from ..errors import ConfigurationError, UpstreamGatewayError, ValidationError
from ..schemas import PaymentOrder

logger = logging.getLogger(__name__)

# Todo lo que puede fallar al hablar con Razorpay: 4xx/5xx del API y red/timeout
_GATEWAY_ERRORS = (BadRequestError, GatewayError, ServerError, requests.RequestException)


class PaymentGateway(Protocol):
    def create_order(self, options: dict) -> dict: ...

    def fetch_payment(self, payment_id: str) -> dict: ...


class RazorpayGateway:
    """
    Envoltura mínima del SDK de Razorpay. Se construye una vez en el arranque
    y se inyecta; en tests se reemplaza por un doble con los mismos métodos.
    """

    def __init__(self, key_id: str, key_secret: str, timeout: float = 10.0, client: Any = None):
        self._client = client or razorpay.Client(auth=(key_id, key_secret))
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            raise ConfigurationError("Faltan RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET")
        return cls(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET, timeout=settings.RAZORPAY_TIMEOUT)

    def create_order(self, options: dict) -> dict:
        try:
            return self._client.order.create(data=options, timeout=self._timeout)
        except _GATEWAY_ERRORS as e:
            logger.warning("Razorpay order.create falló: %s", e)
            raise UpstreamGatewayError(f"Failed to create order: {e}") from e

    def fetch_payment(self, payment_id: str) -> dict:
        try:
            return self._client.payment.fetch(payment_id, timeout=self._timeout)
        except _GATEWAY_ERRORS as e:
            logger.warning("Razorpay payment.fetch falló: payment_id=%s err=%s", payment_id, e)
            raise UpstreamGatewayError(f"Failed to fetch payment details: {e}") from e


class UnconfiguredGateway:
    """Se usa cuando faltan credenciales: el servicio arranca, pero cada llamada falla con claridad."""

    def create_order(self, options: dict) -> dict:
        raise ConfigurationError("Razorpay no está configurado")

    def fetch_payment(self, payment_id: str) -> dict:
        raise ConfigurationError("Razorpay no está configurado")


def new_receipt() -> str:
    # Razorpay limita el receipt a 40 caracteres; reloj de alta resolución + sufijo aleatorio
    return f"receipt_{time.time_ns()}_{uuid.uuid4().hex[:6]}"


def _validate_amount(amount: Any) -> int:
    if amount is None:
        raise ValidationError({"amount": "required"})
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError({"amount": "must be an integer in minor currency units"})
    if amount <= 0:
        raise ValidationError({"amount": "must be positive"})
    return amount


def create_order(
    gateway: PaymentGateway,
    amount: Any,
    currency: Optional[str] = None,
    default_currency: str = "INR",
) -> PaymentOrder:
    """
    Crea una orden en el gateway con captura automática.
    Una sola llamada saliente; si falla, UpstreamGatewayError sin reintentos.
    """
    amount = _validate_amount(amount)
    currency = (currency or "").strip().upper() or default_currency

    options = {
        "amount": amount,
        "currency": currency,
        "receipt": new_receipt(),
        "payment_capture": 1,
    }
    order = gateway.create_order(options)
    logger.info("Orden creada: order_id=%s amount=%s currency=%s receipt=%s",
                order.get("id"), amount, currency, options["receipt"])

    return PaymentOrder(
        id=order["id"],
        amount=order.get("amount", amount),
        currency=order.get("currency", currency),
        receipt=order.get("receipt", options["receipt"]),
        status=order.get("status"),
        payment_capture=1,
    )


def fetch_payment_details(gateway: PaymentGateway, payment_id: str) -> dict:
    """Passthrough al gateway."""
    if not payment_id or not payment_id.strip():
        raise ValidationError({"payment_id": "required"})
    return gateway.fetch_payment(payment_id.strip())
