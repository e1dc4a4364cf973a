from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..config import Settings
from ..deps import get_app_settings, get_db
from ..errors import ValidationError
from .. import schemas
from ..services.booking import book_appointment, list_appointments
from ..services.notifications import send_confirmation
from ..services.slots import available_slots

router = APIRouter(prefix="/api", tags=["appointments"])


@router.get("/appointments", response_model=List[schemas.AppointmentOut])
def get_appointments(db: Session = Depends(get_db)):
    return [schemas.AppointmentOut.model_validate(a) for a in list_appointments(db)]


@router.get("/slots", response_model=schemas.SlotsResponse)
def get_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    try:
        slots = available_slots(db, date, settings)
    except ValidationError:
        raise ValidationError({"date": "invalid date, use YYYY-MM-DD"})
    return schemas.SlotsResponse(date=date, slots=slots)


@router.post("/appointments", response_model=schemas.BookResponse, status_code=status.HTTP_201_CREATED)
def book(
    req: schemas.BookingRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    appt = book_appointment(db, req, settings)

    send_confirmation(settings, appt.phone, appt.appointment_date, appt.appointment_time)

    return schemas.BookResponse(
        message="Appointment booked successfully",
        appointment=schemas.AppointmentOut.model_validate(appt),
    )
