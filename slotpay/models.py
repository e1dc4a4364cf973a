# slotpay/models.py
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _reservation_id() -> str:
    return f"res_{uuid.uuid4().hex[:16]}"


class SlotReservation(Base):
    """Reclamo exclusivo de un slot (fecha, hora). La unicidad la garantiza la BD."""
    __tablename__ = "slot_reservations"
    __table_args__ = (
        UniqueConstraint("slot_date", "slot_time", name="uq_slot_reservations_slot"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_reservation_id)
    # Fecha truncada a medianoche (naive, hora local del consultorio)
    slot_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    slot_time: Mapped[str] = mapped_column(String(5), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    appointment = relationship("Appointment", back_populates="reservation", uselist=False)


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    appointment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # unidades menores (paise)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    # Una cita ↔ una reserva: hereda la unicidad (fecha, hora)
    reservation_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("slot_reservations.id"),
        nullable=False,
        unique=True,
    )

    reservation = relationship("SlotReservation", back_populates="appointment")


class VerifiedPayment(Base):
    __tablename__ = "verified_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    payment_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    # Se marca al reservar, en la misma transacción: un pago = una cita
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)
