import logging
from datetime import datetime, timedelta
import zoneinfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..models import Appointment
from ..services.notifications import send_reminder

logger = logging.getLogger(__name__)


def due_for_reminder(appointments, target: datetime) -> list:
    """Citas cuyo slot cae en la misma hora que `target` (naive local)."""
    out = []
    for a in appointments:
        hour = int(a.appointment_time.split(":", 1)[0])
        if a.appointment_date.date() == target.date() and hour == target.hour:
            out.append(a)
    return out


def reminder_job(session_factory: sessionmaker, settings: Settings, now: datetime | None = None) -> int:
    tz = zoneinfo.ZoneInfo(settings.TIMEZONE)
    now = now or datetime.now(tz)
    target = (now + timedelta(hours=24)).replace(tzinfo=None)
    day = datetime(target.year, target.month, target.day)

    db = session_factory()
    try:
        appts = db.execute(
            select(Appointment).where(Appointment.appointment_date == day)
        ).scalars().all()
        due = due_for_reminder(appts, target)
        for a in due:
            send_reminder(settings, a.phone, a.appointment_date, a.appointment_time, when="24h")
    finally:
        db.close()
    logger.info("Recordatorios enviados: %s (slot %s %02d:xx)", len(due), day.date().isoformat(), target.hour)
    return len(due)


def start_scheduler(session_factory: sessionmaker, settings: Settings) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone=settings.TIMEZONE)
    scheduler.add_job(reminder_job, CronTrigger(minute=0), args=[session_factory, settings])  # cada hora
    scheduler.start()
    return scheduler
