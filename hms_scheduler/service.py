"""Desk services: wire the record store and catalog to the pure core.

Each write follows the same read-check-write sequence: load the current
records, run the core operation on them, store the result.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from hms_scheduler.availability import compute_availability
from hms_scheduler.booking import (
    book_appointment,
    cancel_appointment,
    reschedule_appointment,
    split_upcoming,
)
from hms_scheduler.catalog import CatalogProvider
from hms_scheduler.errors import HMSError, NotFound, ValidationFailed
from hms_scheduler.feedback import FeedbackBox
from hms_scheduler.flow import RegistrationFlowManager
from hms_scheduler.logging_config import get_logger
from hms_scheduler.models import (
    Appointment,
    BookingRequest,
    Overview,
    Registration,
    RegistrationStatus,
    SlotAvailability,
)
from hms_scheduler.registration import approve_registration, reject_registration
from hms_scheduler.store import RecordStore, appointments_key, registrations_key
from hms_scheduler.users import UserDirectory

logger = get_logger(__name__)


class AppointmentDesk:
    def __init__(self, store: RecordStore, catalog: CatalogProvider, users: UserDirectory) -> None:
        self.store = store
        self.catalog = catalog
        self.users = users

    async def _load(self, patient_id: str) -> list[Appointment]:
        raw = await self.store.get(appointments_key(patient_id)) or []
        return [Appointment.model_validate(a) for a in raw]

    async def _save(self, patient_id: str, appointments: list[Appointment]) -> None:
        await self.store.set(appointments_key(patient_id), [a.to_record() for a in appointments])

    async def all_appointments(self, *extra_patients: str) -> list[Appointment]:
        """Appointments of every known user, plus any extra partitions named."""
        owners = [u.email for u in await self.users.list_users()]
        owners += [p for p in extra_patients if p not in owners]
        found: list[Appointment] = []
        for owner in owners:
            found.extend(await self._load(owner))
        return found

    async def availability(self, doctor_id: int, date: dt.date, now: dt.datetime) -> list[SlotAvailability]:
        doctor = self.catalog.get_doctor(doctor_id)
        return compute_availability(doctor.id, date, await self.all_appointments(), now)

    async def book(self, request: BookingRequest, now: dt.datetime) -> Appointment:
        doctor = self.catalog.get_doctor(request.doctor_id)
        existing = await self.all_appointments(request.patient_id)
        try:
            appointment = book_appointment(request, doctor, existing, now)
        except HMSError as e:
            logger.info("booking_rejected", patient=request.patient_id, doctor_id=doctor.id, code=e.code, detail=e.detail)
            raise

        own = await self._load(request.patient_id)
        await self._save(request.patient_id, own + [appointment])
        logger.info(
            "appointment_booked",
            appointment_id=appointment.id,
            patient=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            date=appointment.date.isoformat(),
            time=appointment.time,
        )
        return appointment

    async def find(self, patient_id: str, appointment_id: int) -> Appointment:
        for appointment in await self._load(patient_id):
            if appointment.id == appointment_id:
                return appointment
        raise NotFound(f"Appointment {appointment_id} not found")

    async def cancel(self, patient_id: str, appointment_id: int, now: dt.datetime) -> Appointment:
        own = await self._load(patient_id)
        current = await self.find(patient_id, appointment_id)
        cancelled = cancel_appointment(current, now)
        await self._save(patient_id, [cancelled if a.id == appointment_id else a for a in own])
        logger.info("appointment_cancelled", appointment_id=appointment_id, patient=patient_id)
        return cancelled

    async def reschedule(
        self,
        patient_id: str,
        appointment_id: int,
        request: BookingRequest,
        now: dt.datetime,
    ) -> tuple[Appointment, Appointment]:
        if request.patient_id != patient_id:
            raise ValidationFailed("Cannot reschedule into another patient's name", ["patient_id"])
        current = await self.find(patient_id, appointment_id)
        doctor = self.catalog.get_doctor(request.doctor_id)
        existing = await self.all_appointments(patient_id)

        cancelled, new = reschedule_appointment(current, request, doctor, existing, now)

        own = await self._load(patient_id)
        own = [cancelled if a.id == appointment_id else a for a in own]
        await self._save(patient_id, own + [new])
        logger.info(
            "appointment_rescheduled",
            old_id=appointment_id,
            new_id=new.id,
            patient=patient_id,
            date=new.date.isoformat(),
            time=new.time,
        )
        return cancelled, new

    async def list_for_patient(
        self, patient_id: str, now: dt.datetime
    ) -> tuple[list[Appointment], list[Appointment]]:
        return split_upcoming(await self._load(patient_id), now)


class RegistrationDesk:
    def __init__(self, store: RecordStore, catalog: CatalogProvider, users: UserDirectory) -> None:
        self.store = store
        self.users = users
        self.flow = RegistrationFlowManager(store, catalog)

    async def list_for_patient(self, user_email: str) -> list[Registration]:
        raw = await self.store.get(registrations_key(user_email)) or []
        return [Registration.model_validate(r) for r in raw]

    async def list_all(self, status: RegistrationStatus | None = None) -> list[Registration]:
        """Admin view across every user's registrations."""
        found = []
        for user in await self.users.list_users():
            for registration in await self.list_for_patient(user.email):
                if status is None or registration.status == status:
                    found.append(registration.model_copy(update={"user_email": user.email}))
        return found

    async def _transition(self, registration_id: str, decide, now: dt.datetime) -> Registration:
        for user in await self.users.list_users():
            own = await self.list_for_patient(user.email)
            for index, registration in enumerate(own):
                if registration.registration_id != registration_id:
                    continue
                updated = decide(registration, now)
                own[index] = updated
                await self.store.set(registrations_key(user.email), [r.to_record() for r in own])
                logger.info(
                    "registration_decided",
                    registration_id=registration_id,
                    status=updated.status.value,
                    user=user.email,
                )
                return updated
        raise NotFound(f"Registration {registration_id} not found")

    async def approve(self, registration_id: str, now: dt.datetime) -> Registration:
        return await self._transition(registration_id, approve_registration, now)

    async def reject(self, registration_id: str, now: dt.datetime) -> Registration:
        return await self._transition(registration_id, reject_registration, now)


@dataclass
class Services:
    catalog: CatalogProvider
    users: UserDirectory
    appointments: AppointmentDesk
    registrations: RegistrationDesk
    feedback: FeedbackBox

    async def overview(self, now: dt.datetime) -> Overview:
        """Dashboard counts; "today" is the calendar date of `now`."""
        appointments = await self.appointments.all_appointments()
        registrations = await self.registrations.list_all()
        return Overview(
            total_users=len(await self.users.list_users()),
            total_appointments=len(appointments),
            total_registrations=len(registrations),
            active_hospitals=len(self.catalog.get_hospitals()),
            today_appointments=sum(1 for a in appointments if a.date == now.date()),
            pending_registrations=sum(1 for r in registrations if r.status == RegistrationStatus.PENDING),
        )


def build_services(store: RecordStore, catalog: CatalogProvider) -> Services:
    users = UserDirectory(store)
    return Services(
        catalog=catalog,
        users=users,
        appointments=AppointmentDesk(store, catalog, users),
        registrations=RegistrationDesk(store, catalog, users),
        feedback=FeedbackBox(store),
    )
