"""Slot availability for one doctor on one day.

Each grid slot is `booked` (a non-cancelled appointment holds it), `past`
(its start is at or before `now`) or `free`. Booked wins over past so that
history views still show elapsed bookings as booked.
"""

import datetime as dt
from collections.abc import Iterable

from hms_scheduler.models import Appointment, AppointmentStatus, SlotAvailability, SlotState
from hms_scheduler.slots import generate_slots, slot_datetime


def booked_slots(doctor_id: int, date: dt.date, appointments: Iterable[Appointment]) -> set[str]:
    """Slot labels held by non-cancelled appointments for (doctor_id, date)."""
    return {
        a.time
        for a in appointments
        if a.doctor_id == doctor_id and a.date == date and a.status != AppointmentStatus.CANCELLED
    }


def compute_availability(
    doctor_id: int,
    date: dt.date,
    appointments: Iterable[Appointment],
    now: dt.datetime,
    grid: list[str] | None = None,
) -> list[SlotAvailability]:
    """Return one `SlotAvailability` per grid slot, in grid order."""
    grid = generate_slots() if grid is None else grid
    taken = booked_slots(doctor_id, date, appointments)

    result = []
    for slot in grid:
        if slot in taken:
            state = SlotState.BOOKED
        elif slot_datetime(date, slot) <= now:
            state = SlotState.PAST
        else:
            state = SlotState.FREE
        result.append(SlotAvailability(slot=slot, state=state))
    return result


def free_slots(availability: Iterable[SlotAvailability]) -> list[str]:
    return [a.slot for a in availability if a.state == SlotState.FREE]
