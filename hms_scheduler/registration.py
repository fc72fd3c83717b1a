"""Patient registration workflow.

A registration is collected in three steps, each with its own required
fields and checks:

    collecting_hospital → collecting_doctor → collecting_details → submitted

Moving forward validates the current step; moving back is always allowed
and keeps everything entered so far. Submission yields a pending
`Registration`, which only an admin can approve or reject, once.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass

from pydantic.alias_generators import to_snake

from hms_scheduler import config
from hms_scheduler.catalog import CatalogProvider
from hms_scheduler.errors import InvalidTransition, ValidationFailed
from hms_scheduler.models import (
    Doctor,
    Hospital,
    Registration,
    RegistrationDraft,
    RegistrationStatus,
    RegistrationStep,
)
from hms_scheduler.validation import missing_fields, validate_email, validate_phone

OPTIONAL_DETAIL_FIELDS = ("date_of_birth", "gender", "address", "emergency_contact", "medical_history")

Form = Mapping[str, str]


def _int_field(form: Form, name: str) -> int:
    try:
        return int(form[name])
    except (KeyError, ValueError):
        raise ValidationFailed(f"{name} must be a number", [name]) from None


def _selected_hospital(form: Form, catalog: CatalogProvider) -> Hospital:
    return catalog.get_hospital(_int_field(form, "hospital_id"))


def _selected_doctor(form: Form, catalog: CatalogProvider) -> Doctor:
    hospital = _selected_hospital(form, catalog)
    doctor = catalog.get_doctor(_int_field(form, "doctor_id"))
    if doctor.hospital != hospital.name:
        raise ValidationFailed(f"{doctor.name} does not practise at {hospital.name}", ["doctor_id"])
    return doctor


def _check_details(form: Form, _: CatalogProvider) -> None:
    bad = []
    if not validate_email(form["patient_email"]):
        bad.append("patient_email")
    if not validate_phone(form["patient_phone"]):
        bad.append("patient_phone")
    if bad:
        raise ValidationFailed(f"Invalid {', '.join(bad)}", bad)


@dataclass(frozen=True, slots=True)
class Step:
    """One form page: its required fields, extra checks and selectable options."""

    state: RegistrationStep
    required: Sequence[str]
    check: Callable[[Form, CatalogProvider], object]
    options_fn: Callable[[Form, CatalogProvider], list[str]]

    def validate(self, form: Form, catalog: CatalogProvider) -> None:
        missing = missing_fields(form, list(self.required))
        if missing:
            raise ValidationFailed(f"This field is required: {', '.join(missing)}", missing)
        self.check(form, catalog)

    def options(self, form: Form, catalog: CatalogProvider) -> list[str]:
        return self.options_fn(form, catalog)


def _hospital_options(_: Form, catalog: CatalogProvider) -> list[str]:
    return [f"{h.id}: {h.name} - {h.location}" for h in catalog.get_hospitals()]


def _doctor_options(form: Form, catalog: CatalogProvider) -> list[str]:
    if not form.get("hospital_id"):
        return []
    return [
        f"{d.id}: {d.name} - {d.specialty}"
        for d in catalog.doctors_at(_int_field(form, "hospital_id"))
    ]


STEPS: list[Step] = [
    Step(RegistrationStep.COLLECTING_HOSPITAL, ["hospital_id"], _selected_hospital, _hospital_options),
    Step(RegistrationStep.COLLECTING_DOCTOR, ["doctor_id"], _selected_doctor, _doctor_options),
    Step(
        RegistrationStep.COLLECTING_DETAILS,
        ["patient_name", "patient_email", "patient_phone"],
        _check_details,
        lambda _form, _catalog: [],
    ),
]

_STEP_ORDER = [s.state for s in STEPS] + [RegistrationStep.SUBMITTED]


def step_definition(state: RegistrationStep) -> Step:
    return next(s for s in STEPS if s.state == state)


def normalize_fields(fields: Mapping[str, object] | None) -> dict[str, str]:
    """snake_case keys, stripped string values; blank values are dropped."""
    out = {}
    for key, value in (fields or {}).items():
        if value is None:
            continue
        text = str(value).strip()
        if text:
            out[to_snake(key)] = text
    return out


def merge_fields(draft: RegistrationDraft, fields: Mapping[str, object] | None) -> RegistrationDraft:
    return draft.model_copy(update={"form": {**draft.form, **normalize_fields(fields)}})


def advance(
    draft: RegistrationDraft,
    fields: Mapping[str, object] | None,
    catalog: CatalogProvider,
) -> RegistrationDraft:
    """Merge `fields`, validate the current step and move to the next one."""
    if draft.step in (RegistrationStep.COLLECTING_DETAILS, RegistrationStep.SUBMITTED):
        raise InvalidTransition(f"Cannot advance from {draft.step.value}")
    merged = merge_fields(draft, fields)
    step_definition(merged.step).validate(merged.form, catalog)
    nxt = _STEP_ORDER[_STEP_ORDER.index(merged.step) + 1]
    return merged.model_copy(update={"step": nxt})


def go_back(draft: RegistrationDraft) -> RegistrationDraft:
    """Return to the previous step; a no-op on the first one."""
    if draft.step == RegistrationStep.SUBMITTED:
        raise InvalidTransition("Registration already submitted")
    index = _STEP_ORDER.index(draft.step)
    return draft.model_copy(update={"step": _STEP_ORDER[max(index - 1, 0)]})


def new_registration_id(
    now: dt.datetime,
    existing_ids: Iterable[str] = (),
    prefix: str = config.REGISTRATION_ID_PREFIX,
) -> str:
    taken = set(existing_ids)
    stamp = int(now.timestamp() * 1000)
    while (candidate := f"{prefix}{str(stamp)[-8:]}") in taken:
        stamp += 1
    return candidate


def submit_registration(
    draft: RegistrationDraft,
    catalog: CatalogProvider,
    now: dt.datetime,
    user_email: str | None = None,
    fields: Mapping[str, object] | None = None,
    existing_ids: Iterable[str] = (),
) -> Registration:
    """Validate every step and produce a pending registration."""
    if draft.step != RegistrationStep.COLLECTING_DETAILS:
        raise InvalidTransition(f"Cannot submit from {draft.step.value}")
    form = merge_fields(draft, fields).form
    # earlier steps may have gone stale after back-navigation
    for step in STEPS:
        step.validate(form, catalog)

    hospital = _selected_hospital(form, catalog)
    doctor = _selected_doctor(form, catalog)
    return Registration(
        registration_id=new_registration_id(now, existing_ids),
        patient_name=form["patient_name"],
        patient_email=form["patient_email"],
        patient_phone=form["patient_phone"],
        hospital_id=hospital.id,
        hospital_name=hospital.name,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        specialty=doctor.specialty,
        consultation_fee=doctor.consultation_fee,
        registration_date=now,
        status=RegistrationStatus.PENDING,
        user_email=user_email,
        **{name: form[name] for name in OPTIONAL_DETAIL_FIELDS if name in form},
    )


def _decide(registration: Registration, status: RegistrationStatus, stamp_field: str, now: dt.datetime) -> Registration:
    if registration.status != RegistrationStatus.PENDING:
        raise InvalidTransition(
            f"Registration {registration.registration_id} is already {registration.status.value}"
        )
    return registration.model_copy(update={"status": status, stamp_field: now})


def approve_registration(registration: Registration, now: dt.datetime) -> Registration:
    return _decide(registration, RegistrationStatus.APPROVED, "approved_at", now)


def reject_registration(registration: Registration, now: dt.datetime) -> Registration:
    return _decide(registration, RegistrationStatus.REJECTED, "rejected_at", now)
