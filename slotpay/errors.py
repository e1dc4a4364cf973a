# slotpay/errors.py
from __future__ import annotations
from typing import Optional


class SlotpayError(Exception):
    """Base de los errores de dominio. main.py los traduce a respuestas JSON."""

    status_code = 500
    public_message = "Something went wrong!"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message


class ValidationError(SlotpayError):
    """Entrada faltante o mal formada. `fields` mapea campo → causa."""

    status_code = 400
    public_message = "All required fields must be provided, including payment details"

    def __init__(self, fields: dict[str, str], detail: Optional[str] = None):
        super().__init__(detail)
        self.fields = dict(fields)

    def __str__(self) -> str:
        causes = ", ".join(f"{k}: {v}" for k, v in self.fields.items())
        return f"{self.detail} ({causes})" if causes else self.detail


class SlotConflictError(SlotpayError):
    status_code = 409
    public_message = "This time slot is already booked"


class UpstreamGatewayError(SlotpayError):
    """El gateway de pagos no respondió o rechazó la llamada. No se reintenta."""

    status_code = 502
    public_message = "Payment gateway request failed"


class PersistenceError(SlotpayError):
    """Fallo de almacenamiento. Distinto de SlotConflictError: el sistema está degradado."""

    status_code = 500
    public_message = "Error booking appointment"


class ConfigurationError(SlotpayError):
    status_code = 500
    public_message = "Service is not configured"
