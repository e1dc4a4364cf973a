from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CreateOrderRequest(BaseModel):
    # Any: la validación (entero positivo) la hace el servicio para reportar por campo
    amount: Any = None
    currency: Optional[str] = None


class PaymentOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str
    status: Optional[str] = None
    payment_capture: int = 1


class VerifyPaymentRequest(BaseModel):
    # Nombres tal cual los devuelve el checkout de Razorpay
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    verified: bool
    message: Optional[str] = None


class BookingRequest(BaseModel):
    """Campos en camelCase como los manda el frontend; también acepta snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    reason: Optional[str] = None
    appointment_date: Any = None
    appointment_time: Optional[str] = None
    payment_id: Optional[str] = None
    amount: Any = None


class AppointmentOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    email: str
    phone: str
    reason: Optional[str] = None
    appointment_date: datetime
    appointment_time: str
    payment_id: str
    amount: int
    created_at: datetime
    reservation_id: str


class BookResponse(BaseModel):
    message: str
    appointment: AppointmentOut


class SlotsResponse(BaseModel):
    date: str
    slots: list[str]
