import calendar
import datetime as dt
import re
from collections.abc import Mapping

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_CHARS = re.compile(r"^\+?[\d\s\-()]+$")
MIN_PHONE_DIGITS = 10


def validate_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def validate_phone(phone: str) -> bool:
    """At least ten digits; spaces, dashes, brackets and a leading + are allowed."""
    phone = phone.strip()
    if not PHONE_CHARS.match(phone):
        return False
    return sum(ch.isdigit() for ch in phone) >= MIN_PHONE_DIGITS


def missing_fields(data: Mapping[str, object], required: list[str]) -> list[str]:
    """Names of required fields that are absent or blank."""
    return [name for name in required if not str(data.get(name) or "").strip()]


def add_months(day: dt.date, months: int) -> dt.date:
    """Calendar month arithmetic, clamped to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last))
