"""Data model for catalogs, appointments, registrations and users.

Records are stored with the camelCase keys the browser app used
(`doctorId`, `consultationFee`, ...). Anything read back from the store goes
through `model_validate`, so statuses are always one of the closed enums below.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    """Base for everything that round-trips through the record store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# --------------------------------------------------------------------------- #
#  Catalog
# --------------------------------------------------------------------------- #
class DoctorAvailability(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"


class HospitalType(str, Enum):
    GOVERNMENT = "government"
    PRIVATE = "private"
    SPECIALTY = "specialty"


class Doctor(Record):
    id: int
    name: str
    specialty: str
    hospital: str
    consultation_fee: float
    rating: float = 0.0
    review_count: int = 0
    availability: DoctorAvailability = DoctorAvailability.AVAILABLE
    experience: int = 0
    subspecialty: list[str] = Field(default_factory=list)
    education: list[str] = Field(default_factory=list)


class Hospital(Record):
    id: int
    name: str
    location: str
    type: HospitalType
    specialties: list[str] = Field(default_factory=list)
    beds: int = 0
    rating: float = 0.0
    phone: str | None = None


# --------------------------------------------------------------------------- #
#  Appointments
# --------------------------------------------------------------------------- #
class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SlotState(str, Enum):
    FREE = "free"
    BOOKED = "booked"
    PAST = "past"


class SlotAvailability(Record):
    slot: str
    state: SlotState


class BookingRequest(Record):
    """What the patient submits from the booking form."""

    patient_id: str
    doctor_id: int
    date: dt.date
    time: str
    patient_name: str = ""
    patient_phone: str = ""
    patient_email: str = ""
    reason: str | None = None
    notes: str | None = None


class Appointment(Record):
    id: int
    patient_id: str
    doctor_id: int
    doctor_name: str = ""
    specialty: str = ""
    date: dt.date
    time: str
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    consultation_fee: float
    booked_at: dt.datetime
    cancelled_at: dt.datetime | None = None
    patient_name: str = ""
    patient_phone: str = ""
    patient_email: str = ""
    reason: str | None = None
    notes: str | None = None
    rescheduled_from: int | None = None

    @property
    def starts_at(self) -> dt.datetime:
        hour, minute = map(int, self.time.split(":"))
        return dt.datetime.combine(self.date, dt.time(hour, minute))


# --------------------------------------------------------------------------- #
#  Registrations
# --------------------------------------------------------------------------- #
class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RegistrationStep(str, Enum):
    COLLECTING_HOSPITAL = "collecting_hospital"
    COLLECTING_DOCTOR = "collecting_doctor"
    COLLECTING_DETAILS = "collecting_details"
    SUBMITTED = "submitted"


class Registration(Record):
    registration_id: str
    patient_name: str
    patient_email: str
    patient_phone: str
    hospital_id: int
    hospital_name: str
    doctor_id: int
    doctor_name: str
    specialty: str
    consultation_fee: float
    registration_date: dt.datetime
    status: RegistrationStatus = RegistrationStatus.PENDING
    approved_at: dt.datetime | None = None
    rejected_at: dt.datetime | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    address: str | None = None
    emergency_contact: str | None = None
    medical_history: str | None = None
    user_email: str | None = None


class RegistrationDraft(Record):
    """Form state of an unfinished registration; `form` keeps snake_case keys."""

    step: RegistrationStep = RegistrationStep.COLLECTING_HOSPITAL
    form: dict[str, str] = Field(default_factory=dict)


# --------------------------------------------------------------------------- #
#  Users & sessions
# --------------------------------------------------------------------------- #
class UserRole(str, Enum):
    ADMIN = "admin"
    PATIENT = "patient"
    DOCTOR = "doctor"


class User(Record):
    id: int
    name: str
    email: str
    password: str
    role: UserRole = UserRole.PATIENT
    phone: str | None = None
    registration_date: dt.date
    specialty: str | None = None
    experience: int | None = None


class Session(Record):
    token: str
    email: str
    name: str
    role: UserRole
    logged_in_at: dt.datetime


# --------------------------------------------------------------------------- #
#  Admin overview & feedback
# --------------------------------------------------------------------------- #
class Overview(Record):
    """Headline counts for the admin dashboard."""

    total_users: int
    total_appointments: int
    total_registrations: int
    active_hospitals: int
    today_appointments: int
    pending_registrations: int


class FeedbackEntry(Record):
    id: int
    rating: int
    message: str
    timestamp: dt.datetime
    user_id: int | None = None
    user_name: str = "Anonymous"


class RatingShare(Record):
    rating: int
    count: int
    percentage: float


class FeedbackStats(Record):
    total: int
    average: float
    ratings: list[RatingShare]
