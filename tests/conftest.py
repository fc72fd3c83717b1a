import datetime as dt

import pytest

from hms_scheduler import config
from hms_scheduler.catalog import CatalogProvider
from hms_scheduler.models import Appointment, AppointmentStatus, BookingRequest
from hms_scheduler.service import build_services
from hms_scheduler.store import InMemoryRecordStore

NOW = dt.datetime(2024, 6, 1, 8, 0)


@pytest.fixture
def now():
    """Fixed 'current time' shared by the tests."""
    return NOW


@pytest.fixture
def catalog():
    """Catalog loaded from the bundled fixtures."""
    return CatalogProvider.from_directory(config.DATA_DIR)


@pytest.fixture
def store():
    """Create a fresh in-memory record store for each test."""
    return InMemoryRecordStore()


@pytest.fixture
def services(store, catalog):
    return build_services(store, catalog)


@pytest.fixture
def make_request():
    """Factory for valid booking requests; override any field by keyword."""
    def _create(**overrides) -> BookingRequest:
        data = {
            "patient_id": "john@example.com",
            "doctor_id": 7,
            "date": dt.date(2024, 6, 10),
            "time": "10:00",
            "patient_name": "John Doe",
            "patient_phone": "+1234567891",
            "patient_email": "john@example.com",
        }
        data.update(overrides)
        return BookingRequest(**data)
    return _create


@pytest.fixture
def make_appointment():
    """Factory for stored appointments that bypass the booking checks."""
    def _create(**overrides) -> Appointment:
        data = {
            "id": 1,
            "patient_id": "john@example.com",
            "doctor_id": 3,
            "date": dt.date(2020, 1, 1),
            "time": "09:00",
            "status": AppointmentStatus.CONFIRMED,
            "consultation_fee": 500,
            "booked_at": dt.datetime(2019, 12, 1, 12, 0),
        }
        data.update(overrides)
        return Appointment(**data)
    return _create
