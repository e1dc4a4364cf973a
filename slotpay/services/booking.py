# slotpay/services/booking.py
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import PersistenceError, ValidationError
from ..schemas import BookingRequest
from .. import models
from .slots import normalize_date, normalize_time, reserve_slot, slot_vocabulary

logger = logging.getLogger(__name__)

_REQUIRED_TEXT = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "payment_id": "paymentId",
}


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_booking(data: BookingRequest, settings: Settings) -> dict:
    """
    Revisa todos los campos y junta todos los errores en un solo ValidationError.
    Devuelve los valores ya normalizados (texto sin espacios, fecha a medianoche, hora HH:MM).
    No toca la BD.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for attr, wire_name in _REQUIRED_TEXT.items():
        value = _clean(getattr(data, attr))
        if not value:
            errors[wire_name] = "required"
        clean[attr] = value

    clean["reason"] = _clean(data.reason) or None

    amount = data.amount
    if amount is None or amount == "":
        errors["amount"] = "required"
    elif isinstance(amount, bool) or not isinstance(amount, int):
        errors["amount"] = "must be an integer in minor currency units"
    elif amount <= 0:
        errors["amount"] = "must be positive"
    clean["amount"] = amount

    try:
        clean["appointment_date"] = normalize_date(data.appointment_date, settings.TIMEZONE)
    except ValidationError as e:
        errors.update(e.fields)

    try:
        clean["appointment_time"] = normalize_time(data.appointment_time, slot_vocabulary(settings))
    except ValidationError as e:
        errors.update(e.fields)

    if errors:
        raise ValidationError(errors)
    return clean


# ====== Pagos verificados (registro del lado servidor) ======
def record_verified_payment(db: Session, order_id: str, payment_id: str) -> None:
    """Idempotente: si el payment_id ya estaba registrado, no hace nada."""
    exists = db.execute(
        select(models.VerifiedPayment.id).where(models.VerifiedPayment.payment_id == payment_id)
    ).first()
    if exists:
        return
    db.add(models.VerifiedPayment(order_id=order_id, payment_id=payment_id))
    try:
        db.commit()
    except IntegrityError:
        # otro request lo registró primero
        db.rollback()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Error recording verified payment: {e}") from e


def is_payment_verified(db: Session, payment_id: str) -> bool:
    try:
        row = db.execute(
            select(models.VerifiedPayment.id).where(models.VerifiedPayment.payment_id == payment_id)
        ).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Error checking verified payment: {e}") from e
    return row is not None


def consume_verified_payment(db: Session, payment_id: str) -> None:
    """
    Marca el pago verificado como usado dentro de la transacción del llamador.

    UPDATE condicional (consumed_at IS NULL): si dos requests usan el mismo pago,
    solo uno afecta la fila. Si la reserva falla después, el rollback lo libera.
    """
    try:
        result = db.execute(
            update(models.VerifiedPayment)
            .where(models.VerifiedPayment.payment_id == payment_id)
            .where(models.VerifiedPayment.consumed_at.is_(None))
            .values(consumed_at=datetime.utcnow())
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Error consuming verified payment: {e}") from e
    if result.rowcount == 1:
        return

    db.rollback()
    if is_payment_verified(db, payment_id):
        raise ValidationError({"paymentId": "payment already used"})
    raise ValidationError({"paymentId": "payment has not been verified"})


# ====== Orquestador ======
def book_appointment(db: Session, data: BookingRequest, settings: Settings) -> models.Appointment:
    """
    Valida → reserva el slot → guarda la cita, todo en una transacción.

    El paymentId se asume verificado por el flujo del cliente (/api/verify-payment);
    con REQUIRE_VERIFIED_PAYMENT se exige además que esté en verified_payments
    y sin usar, y se consume en la misma transacción que la reserva.
    Si el commit falla, el rollback deshace también la reserva: no quedan reservas huérfanas.
    """
    clean = validate_booking(data, settings)

    if settings.REQUIRE_VERIFIED_PAYMENT:
        consume_verified_payment(db, clean["payment_id"])

    reservation = reserve_slot(db, clean["appointment_date"], clean["appointment_time"])

    appointment = models.Appointment(
        name=clean["name"],
        email=clean["email"],
        phone=clean["phone"],
        reason=clean["reason"],
        appointment_date=clean["appointment_date"],
        appointment_time=clean["appointment_time"],
        payment_id=clean["payment_id"],
        amount=clean["amount"],
        created_at=datetime.utcnow(),
        reservation_id=reservation.id,
    )
    db.add(appointment)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("No se pudo guardar la cita; reserva %s revertida", reservation.id)
        raise PersistenceError(f"Error booking appointment: {e}") from e

    db.refresh(appointment)
    logger.info("Cita creada: id=%s date=%s time=%s payment_id=%s",
                appointment.id, appointment.appointment_date.date().isoformat(),
                appointment.appointment_time, appointment.payment_id)
    return appointment


def list_appointments(db: Session) -> List[models.Appointment]:
    try:
        return list(db.execute(select(models.Appointment).order_by(models.Appointment.id)).scalars())
    except SQLAlchemyError as e:
        raise PersistenceError(f"Error fetching appointments: {e}") from e
