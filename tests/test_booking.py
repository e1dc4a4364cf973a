"""Tests for the booking orchestrator."""
from datetime import datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from slotpay import models
from slotpay.errors import PersistenceError, SlotConflictError, ValidationError
from slotpay.services.booking import (
    book_appointment,
    is_payment_verified,
    list_appointments,
    record_verified_payment,
    validate_booking,
)

from .conftest import booking_request, make_settings

REQUIRED = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "appointmentDate": "appointmentDate",
    "appointmentTime": "appointmentTime",
    "paymentId": "paymentId",
    "amount": "amount",
}


def _count(session_factory, model) -> int:
    session = session_factory()
    try:
        return session.execute(select(func.count()).select_from(model)).scalar_one()
    finally:
        session.close()


class TestValidateBooking:
    def test_normalizes_values(self, settings):
        clean = validate_booking(
            booking_request(name="  Asha Rao ", appointmentDate="2024-06-01T15:30:00", appointmentTime="9:00"),
            settings,
        )
        assert clean["name"] == "Asha Rao"
        assert clean["appointment_date"] == datetime(2024, 6, 1)
        assert clean["appointment_time"] == "09:00"

    def test_reports_every_problem_at_once(self, settings):
        with pytest.raises(ValidationError) as exc:
            validate_booking(booking_request(name="", email=None, amount=-1), settings)
        assert set(exc.value.fields) == {"name", "email", "amount"}

    def test_reason_is_optional(self, settings):
        clean = validate_booking(booking_request(reason=None), settings)
        assert clean["reason"] is None


class TestBookAppointment:
    def test_books_and_persists(self, db, settings):
        appt = book_appointment(db, booking_request(), settings)

        assert appt.id is not None
        assert appt.appointment_date == datetime(2024, 6, 1)
        assert appt.appointment_time == "14:30"
        assert appt.payment_id == "pay_1"
        assert appt.amount == 50000
        assert appt.created_at is not None
        assert appt.reservation_id.startswith("res_")

    @pytest.mark.parametrize("missing", list(REQUIRED))
    def test_missing_field_rejected_before_reservation(self, db, settings, session_factory, missing):
        with pytest.raises(ValidationError) as exc:
            book_appointment(db, booking_request(**{missing: None}), settings)

        assert REQUIRED[missing] in exc.value.fields
        assert _count(session_factory, models.SlotReservation) == 0
        assert _count(session_factory, models.Appointment) == 0

    def test_same_day_different_time_of_day_conflicts(self, db, settings, session_factory):
        book_appointment(db, booking_request(appointmentDate="2024-06-01T15:30:00"), settings)

        with pytest.raises(SlotConflictError):
            book_appointment(
                db, booking_request(appointmentDate="2024-06-01T00:00:00", paymentId="pay_2"), settings
            )
        assert _count(session_factory, models.Appointment) == 1

    def test_conflict_leaves_existing_appointment_untouched(self, db, settings, session_factory):
        first = book_appointment(db, booking_request(), settings)
        snapshot = (first.id, first.name, first.email, first.payment_id, first.amount, first.created_at)

        with pytest.raises(SlotConflictError):
            book_appointment(
                db,
                booking_request(name="Ravi Kumar", email="ravi@example.com", paymentId="pay_2", amount=70000),
                settings,
            )

        other = session_factory()
        try:
            stored = other.get(models.Appointment, first.id)
            assert (stored.id, stored.name, stored.email, stored.payment_id, stored.amount, stored.created_at) == snapshot
        finally:
            other.close()

    def test_session_usable_after_conflict(self, db, settings):
        book_appointment(db, booking_request(), settings)
        with pytest.raises(SlotConflictError):
            book_appointment(db, booking_request(paymentId="pay_2"), settings)

        appt = book_appointment(db, booking_request(appointmentTime="15:00", paymentId="pay_3"), settings)
        assert appt.appointment_time == "15:00"

    def test_commit_failure_rolls_back_reservation(self, db, settings, session_factory, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", broken_commit)

        with pytest.raises(PersistenceError):
            book_appointment(db, booking_request(), settings)

        assert _count(session_factory, models.SlotReservation) == 0
        assert _count(session_factory, models.Appointment) == 0

    def test_slot_is_bookable_after_failed_commit(self, session_factory, settings, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        broken = session_factory()
        monkeypatch.setattr(broken, "commit", broken_commit)
        with pytest.raises(PersistenceError):
            book_appointment(broken, booking_request(), settings)
        broken.close()

        healthy = session_factory()
        try:
            assert book_appointment(healthy, booking_request(paymentId="pay_2"), settings).payment_id == "pay_2"
        finally:
            healthy.close()


class TestVerifiedPayments:
    def test_record_is_idempotent(self, db, session_factory):
        record_verified_payment(db, "order_1", "pay_1")
        record_verified_payment(db, "order_1", "pay_1")

        assert is_payment_verified(db, "pay_1")
        assert _count(session_factory, models.VerifiedPayment) == 1

    def test_unverified_payment_rejected_when_required(self, db, tmp_path):
        settings = make_settings(tmp_path, REQUIRE_VERIFIED_PAYMENT=True)

        with pytest.raises(ValidationError) as exc:
            book_appointment(db, booking_request(), settings)
        assert "paymentId" in exc.value.fields

    def test_verified_payment_accepted_when_required(self, db, tmp_path):
        settings = make_settings(tmp_path, REQUIRE_VERIFIED_PAYMENT=True)
        record_verified_payment(db, "order_1", "pay_1")

        assert book_appointment(db, booking_request(), settings).payment_id == "pay_1"

    def test_verified_payment_used_once(self, db, tmp_path, session_factory):
        settings = make_settings(tmp_path, REQUIRE_VERIFIED_PAYMENT=True)
        record_verified_payment(db, "order_1", "pay_1")
        book_appointment(db, booking_request(appointmentTime="09:00"), settings)

        with pytest.raises(ValidationError) as exc:
            book_appointment(db, booking_request(appointmentTime="09:30"), settings)

        assert exc.value.fields == {"paymentId": "payment already used"}
        assert _count(session_factory, models.Appointment) == 1
        assert _count(session_factory, models.SlotReservation) == 1

    def test_conflict_releases_payment(self, db, tmp_path):
        """A payment whose booking lost the slot race can book another slot."""
        settings = make_settings(tmp_path, REQUIRE_VERIFIED_PAYMENT=True)
        record_verified_payment(db, "order_1", "pay_1")
        record_verified_payment(db, "order_2", "pay_2")
        book_appointment(db, booking_request(paymentId="pay_1"), settings)

        with pytest.raises(SlotConflictError):
            book_appointment(db, booking_request(paymentId="pay_2"), settings)

        appt = book_appointment(db, booking_request(appointmentTime="15:00", paymentId="pay_2"), settings)
        assert appt.payment_id == "pay_2"

    def test_lookup_failure_is_persistence_error(self, db, monkeypatch):
        def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "execute", broken_execute)

        with pytest.raises(PersistenceError):
            is_payment_verified(db, "pay_1")

    def test_consume_failure_is_persistence_error(self, db, tmp_path, session_factory, monkeypatch):
        settings = make_settings(tmp_path, REQUIRE_VERIFIED_PAYMENT=True)
        record_verified_payment(db, "order_1", "pay_1")

        def broken_execute(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "execute", broken_execute)

        with pytest.raises(PersistenceError):
            book_appointment(db, booking_request(), settings)
        assert _count(session_factory, models.Appointment) == 0


def test_list_appointments(db, settings):
    assert list_appointments(db) == []
    book_appointment(db, booking_request(), settings)
    book_appointment(db, booking_request(appointmentTime="15:00", paymentId="pay_2"), settings)

    appts = list_appointments(db)

    assert [a.appointment_time for a in appts] == ["14:30", "15:00"]
