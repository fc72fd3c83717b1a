"""Booking engine: create, cancel and reschedule appointments.

All functions are pure. They take the current time and the existing
appointments explicitly and return new `Appointment` objects for the caller
to persist; nothing here reads or writes the record store.

The availability re-check in `book_appointment` runs at commit time against
whatever appointments the caller just loaded. It is the only guard against a
slot being taken between display and submission, and it is not atomic with
the caller's subsequent write.
"""

import datetime as dt
from collections.abc import Iterable, Sequence

from hms_scheduler import config
from hms_scheduler.availability import compute_availability
from hms_scheduler.errors import (
    AlreadyCancelled,
    InvalidSlot,
    InvalidTransition,
    OutOfRangeDate,
    SlotUnavailable,
    ValidationFailed,
)
from hms_scheduler.models import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    Doctor,
    SlotState,
)
from hms_scheduler.slots import generate_slots
from hms_scheduler.validation import add_months, missing_fields, validate_email, validate_phone

REQUIRED_CONTACT_FIELDS = ["patient_id", "patient_name", "patient_phone", "patient_email"]


def new_appointment_id(existing: Iterable[Appointment], now: dt.datetime) -> int:
    """Millisecond timestamp, bumped until it is unused."""
    taken = {a.id for a in existing}
    candidate = int(now.timestamp() * 1000)
    while candidate in taken:
        candidate += 1
    return candidate


def booking_window(now: dt.datetime, months: int = config.BOOKING_WINDOW_MONTHS) -> tuple[dt.date, dt.date]:
    today = now.date()
    return today, add_months(today, months)


def validate_request(request: BookingRequest, doctor: Doctor) -> None:
    missing = missing_fields(request.model_dump(), REQUIRED_CONTACT_FIELDS)
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}", missing)
    if not validate_email(request.patient_email):
        raise ValidationFailed("Please enter a valid email address", ["patient_email"])
    if not validate_phone(request.patient_phone):
        raise ValidationFailed("Phone number must contain at least 10 digits", ["patient_phone"])
    if request.doctor_id != doctor.id:
        raise ValidationFailed(
            f"Request is for doctor {request.doctor_id}, not {doctor.id}", ["doctor_id"]
        )


def book_appointment(
    request: BookingRequest,
    doctor: Doctor,
    existing_appointments: Sequence[Appointment],
    now: dt.datetime,
    grid: list[str] | None = None,
    window_months: int = config.BOOKING_WINDOW_MONTHS,
) -> Appointment:
    """Validate `request` and return a new confirmed appointment.

    Raises:
        ValidationFailed: missing or malformed contact fields
        InvalidSlot: time is not on the slot grid
        OutOfRangeDate: date before today or past the booking window
        SlotUnavailable: the slot is booked or already elapsed
    """
    grid = generate_slots() if grid is None else grid
    validate_request(request, doctor)

    if request.time not in grid:
        raise InvalidSlot(f"{request.time!r} is not a bookable time slot")

    first, last = booking_window(now, window_months)
    if not first <= request.date <= last:
        raise OutOfRangeDate(
            f"{request.date.isoformat()} is outside {first.isoformat()}..{last.isoformat()}"
        )

    availability = compute_availability(doctor.id, request.date, existing_appointments, now, grid)
    state = next(a.state for a in availability if a.slot == request.time)
    if state != SlotState.FREE:
        raise SlotUnavailable(
            f"{doctor.name} at {request.date.isoformat()} {request.time} is {state.value}"
        )

    return Appointment(
        id=new_appointment_id(existing_appointments, now),
        patient_id=request.patient_id,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        specialty=doctor.specialty,
        date=request.date,
        time=request.time,
        status=AppointmentStatus.CONFIRMED,
        consultation_fee=doctor.consultation_fee,
        booked_at=now,
        patient_name=request.patient_name.strip(),
        patient_phone=request.patient_phone.strip(),
        patient_email=request.patient_email.strip(),
        reason=request.reason,
        notes=request.notes,
    )


def cancel_appointment(appointment: Appointment, now: dt.datetime) -> Appointment:
    """Return a cancelled copy of `appointment`; the original is untouched."""
    if appointment.status == AppointmentStatus.CANCELLED:
        raise AlreadyCancelled(f"Appointment {appointment.id} is already cancelled")
    if appointment.status != AppointmentStatus.CONFIRMED:
        raise InvalidTransition(
            f"Appointment {appointment.id} is {appointment.status.value} and cannot be cancelled"
        )
    return appointment.model_copy(
        update={"status": AppointmentStatus.CANCELLED, "cancelled_at": now}
    )


def reschedule_appointment(
    appointment: Appointment,
    request: BookingRequest,
    doctor: Doctor,
    existing_appointments: Sequence[Appointment],
    now: dt.datetime,
    grid: list[str] | None = None,
) -> tuple[Appointment, Appointment]:
    """Cancel `appointment` and book `request` in its place.

    Returns (cancelled_old, new). If the new booking fails the error
    propagates and no cancelled copy escapes, so nothing gets persisted.
    """
    cancelled = cancel_appointment(appointment, now)
    # the availability check must see the old booking as released
    snapshot = [cancelled if a.id == appointment.id else a for a in existing_appointments]
    new = book_appointment(request, doctor, snapshot, now, grid)
    return cancelled, new.model_copy(update={"rescheduled_from": appointment.id})


def split_upcoming(
    appointments: Iterable[Appointment], now: dt.datetime
) -> tuple[list[Appointment], list[Appointment]]:
    """Return (upcoming, history).

    Upcoming: not cancelled and starting after `now`, earliest first.
    History: starting at or before `now`, latest first.
    """
    appointments = list(appointments)
    upcoming = sorted(
        (a for a in appointments if a.status != AppointmentStatus.CANCELLED and a.starts_at > now),
        key=lambda a: a.starts_at,
    )
    history = sorted(
        (a for a in appointments if a.starts_at <= now),
        key=lambda a: a.starts_at,
        reverse=True,
    )
    return upcoming, history
