# slotpay/services/signatures.py
"""
Verificación de la firma que Razorpay entrega al completar un pago.

Razorpay firma `order_id|payment_id` con HMAC-SHA256 usando el key secret de la
cuenta; el checkout devuelve esa firma en hex minúsculas. Aquí se recalcula y se
compara en tiempo constante. Funciones puras: sin I/O, y el secreto nunca se loguea.
"""
from __future__ import annotations
import hashlib
import hmac
from typing import Any

from ..errors import ConfigurationError, ValidationError

SIGNATURE_DELIMITER = "|"


def canonical_message(order_id: str, payment_id: str) -> str:
    return f"{order_id}{SIGNATURE_DELIMITER}{payment_id}"


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 de `order_id|payment_id` en hex minúsculas."""
    message = canonical_message(order_id, payment_id)
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _require_fields(**fields: Any) -> None:
    missing = {
        name: "required"
        for name, value in fields.items()
        if not isinstance(value, str) or not value.strip()
    }
    if missing:
        raise ValidationError(missing, detail="Missing payment verification fields")


def verify_payment_signature(order_id: Any, payment_id: Any, signature: Any, secret: str | None) -> bool:
    """
    True solo si `signature` coincide exactamente con la firma esperada.

    - Campos faltantes o no-string → ValidationError (no es lo mismo que "no verificado").
    - Firma bien formada pero distinta → False.
    """
    _require_fields(
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=signature,
    )
    if not secret:
        raise ConfigurationError("RAZORPAY_KEY_SECRET no configurado")

    expected = compute_signature(order_id, payment_id, secret)
    # compare_digest sobre bytes: acepta cualquier entrada sin TypeError por no-ASCII
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
