"""Daily slot grid for appointment booking.

The grid is a fixed list of "HH:MM" labels covering [start_hour, end_hour)
in equal steps; bookings may only use labels from it.
"""

import datetime as dt

from hms_scheduler import config


def generate_slots(
    start_hour: int = config.SLOT_START_HOUR,
    end_hour: int = config.SLOT_END_HOUR,
    duration_minutes: int = config.SLOT_DURATION_MINUTES,
) -> list[str]:
    """Return the ordered slot labels for one day.

    An empty or inverted range gives an empty grid rather than an error.
    """
    if end_hour <= start_hour or duration_minutes <= 0:
        return []
    return [
        f"{minute // 60:02d}:{minute % 60:02d}"
        for minute in range(start_hour * 60, end_hour * 60, duration_minutes)
    ]


def is_grid_slot(label: str, grid: list[str] | None = None) -> bool:
    return label in (grid if grid is not None else generate_slots())


def slot_datetime(date: dt.date, label: str) -> dt.datetime:
    """Combine a calendar date and a slot label into a naive local datetime."""
    hour, minute = map(int, label.split(":"))
    return dt.datetime.combine(date, dt.time(hour, minute))
