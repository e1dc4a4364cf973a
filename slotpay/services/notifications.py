# slotpay/services/notifications.py
from datetime import datetime

from ..config import Settings
from .twilio_client import send_whatsapp


def _fmt_slot(appointment_date: datetime, appointment_time: str) -> str:
    return f"{appointment_date.strftime('%d/%m/%Y')} {appointment_time}"


def send_confirmation(settings: Settings, contact: str, appointment_date: datetime, appointment_time: str) -> dict:
    """Mensaje de cita pagada y reservada."""
    body = (
        "✅ *Cita reservada*\n"
        f"Fecha y hora: {_fmt_slot(appointment_date, appointment_time)}\n"
        "Su pago fue recibido. Le esperamos."
    )
    return send_whatsapp(settings, contact, body)


def send_reminder(settings: Settings, contact: str, appointment_date: datetime, appointment_time: str,
                  when: str = "24h") -> dict:
    """Recordatorio (D-1)."""
    body = (
        f"⏰ Recordatorio ({when})\n"
        f"Su cita es: {_fmt_slot(appointment_date, appointment_time)}"
    )
    return send_whatsapp(settings, contact, body)
