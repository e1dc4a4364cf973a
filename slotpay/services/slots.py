# slotpay/services/slots.py
from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, List

import pytz
from dateutil import parser as dtparser
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import PersistenceError, SlotConflictError, ValidationError
from .. import models

logger = logging.getLogger(__name__)

TIME_FORMAT = "%H:%M"


# ====== Normalización de la llave (fecha, hora) ======
def normalize_date(value: Any, timezone_str: str) -> datetime:
    """
    Convierte `value` (date, datetime o string ISO) a la llave de reserva:
    datetime naive a medianoche. Si trae zona, primero se pasa a la TZ del consultorio.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time(0, 0))
    elif isinstance(value, str) and value.strip():
        # Solo ISO-8601
        try:
            dt = dtparser.isoparse(value.strip())
        except (ValueError, OverflowError):
            raise ValidationError({"appointmentDate": "invalid date, expected ISO-8601"})
    else:
        raise ValidationError({"appointmentDate": "required"})

    if dt.tzinfo is not None:
        dt = dt.astimezone(pytz.timezone(timezone_str))
    return datetime.combine(dt.date(), time(0, 0))


def slot_vocabulary(settings: Settings) -> List[str]:
    """Tokens "HH:MM" cada SLOT_MINUTES entre apertura y cierre (el último termina al cierre)."""
    start = datetime.combine(date.today(), time(0, 0)) + timedelta(hours=settings.CLINIC_OPEN_HOUR)
    end = datetime.combine(date.today(), time(0, 0)) + timedelta(hours=settings.CLINIC_CLOSE_HOUR)
    delta = timedelta(minutes=settings.SLOT_MINUTES)

    tokens = []
    cur = start
    while cur + delta <= end:
        tokens.append(cur.strftime(TIME_FORMAT))
        cur += delta
    return tokens


def normalize_time(token: Any, vocabulary: List[str]) -> str:
    """'9:00' → '09:00'. Fuera del vocabulario → ValidationError."""
    if not isinstance(token, str) or not token.strip():
        raise ValidationError({"appointmentTime": "required"})
    try:
        normalized = datetime.strptime(token.strip(), TIME_FORMAT).strftime(TIME_FORMAT)
    except ValueError:
        raise ValidationError({"appointmentTime": "expected HH:MM"})
    if normalized not in vocabulary:
        raise ValidationError({"appointmentTime": "not an available slot"})
    return normalized


# ====== Reserva atómica ======
def reserve_slot(db: Session, slot_date: datetime, slot_time: str) -> models.SlotReservation:
    """
    Inserta la reserva dentro de la transacción del llamador y hace flush.

    No hay "buscar y luego insertar": el INSERT falla por el UniqueConstraint
    (slot_date, slot_time) si otro request ya tomó el slot, y eso se traduce a
    SlotConflictError. Con dos requests concurrentes, uno gana y el otro choca.
    El commit lo hace el llamador (reserva + cita en la misma transacción).
    """
    reservation = models.SlotReservation(slot_date=slot_date, slot_time=slot_time)
    db.add(reservation)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        logger.info("Slot ocupado: date=%s time=%s", slot_date.date().isoformat(), slot_time)
        raise SlotConflictError() from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error de BD al reservar slot date=%s time=%s", slot_date.date().isoformat(), slot_time)
        raise PersistenceError(f"Error reserving slot: {e}") from e
    return reservation


def reserved_times(db: Session, day: datetime) -> set[str]:
    rows = db.execute(
        select(models.SlotReservation.slot_time).where(models.SlotReservation.slot_date == day)
    ).scalars()
    return set(rows)


def available_slots(db: Session, day: Any, settings: Settings) -> List[str]:
    """Vocabulario del día menos los slots ya reservados."""
    key = normalize_date(day, settings.TIMEZONE)
    taken = reserved_times(db, key)
    return [t for t in slot_vocabulary(settings) if t not in taken]
