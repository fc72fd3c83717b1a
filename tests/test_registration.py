import datetime as dt

import pytest

from hms_scheduler.errors import InvalidTransition, NotFound, ValidationFailed
from hms_scheduler.models import RegistrationDraft, RegistrationStatus, RegistrationStep
from hms_scheduler.registration import (
    advance,
    approve_registration,
    go_back,
    new_registration_id,
    normalize_fields,
    reject_registration,
    step_definition,
    submit_registration,
)

DETAILS = {
    "patient_name": "Jane Roe",
    "patient_email": "jane@example.com",
    "patient_phone": "98765 43210",
}


@pytest.fixture
def details_draft(catalog):
    """A draft that has passed the hospital and doctor steps."""
    draft = advance(RegistrationDraft(), {"hospital_id": "3"}, catalog)
    return advance(draft, {"doctor_id": 7}, catalog)


@pytest.fixture
def registration(details_draft, catalog, now):
    return submit_registration(details_draft, catalog, now, user_email="john@example.com", fields=DETAILS)


def test_happy_path_steps(catalog):
    """Test hospital → doctor → details progression."""
    draft = RegistrationDraft()
    assert draft.step == RegistrationStep.COLLECTING_HOSPITAL

    draft = advance(draft, {"hospitalId": 3}, catalog)
    assert draft.step == RegistrationStep.COLLECTING_DOCTOR
    assert draft.form["hospital_id"] == "3"

    draft = advance(draft, {"doctorId": 7}, catalog)
    assert draft.step == RegistrationStep.COLLECTING_DETAILS


def test_submission_is_pending(registration, now):
    """Test that a submitted registration starts pending with catalog details."""
    assert registration.status == RegistrationStatus.PENDING
    assert registration.registration_id.startswith("REG")
    assert len(registration.registration_id) == 11
    assert registration.hospital_name == "Sunrise Children's Hospital"
    assert registration.doctor_name == "Dr. Arjun Patel"
    assert registration.specialty == "Pediatrics"
    assert registration.consultation_fee == 600
    assert registration.registration_date == now
    assert registration.user_email == "john@example.com"
    assert registration.approved_at is None


def test_missing_hospital_blocks_advance(catalog):
    """Test that a step cannot be left with required fields empty."""
    with pytest.raises(ValidationFailed) as exc:
        advance(RegistrationDraft(), {}, catalog)

    assert exc.value.fields == ["hospital_id"]


def test_unknown_hospital(catalog):
    """Test that a hospital id must exist in the catalog."""
    with pytest.raises(NotFound):
        advance(RegistrationDraft(), {"hospital_id": 99}, catalog)


def test_doctor_must_work_at_hospital(catalog):
    """Test that the doctor is checked against the selected hospital."""
    draft = advance(RegistrationDraft(), {"hospital_id": 1}, catalog)

    with pytest.raises(ValidationFailed):
        advance(draft, {"doctor_id": 7}, catalog)


@pytest.mark.parametrize(
    "overrides",
    [
        {"patient_email": "jane@example"},
        {"patient_email": "jane @example.com"},
        {"patient_phone": "555-1234"},
        {"patient_name": ""},
    ],
)
def test_invalid_details_block_submission(details_draft, catalog, now, overrides):
    """Test email, phone and required checks on the details step."""
    with pytest.raises(ValidationFailed):
        submit_registration(details_draft, catalog, now, fields={**DETAILS, **overrides})


def test_back_keeps_entered_data(details_draft, catalog):
    """Test that backward navigation never clears the form."""
    draft = go_back(go_back(details_draft))

    assert draft.step == RegistrationStep.COLLECTING_HOSPITAL
    assert draft.form == {"hospital_id": "3", "doctor_id": "7"}

    draft = advance(draft, {}, catalog)
    draft = advance(draft, {}, catalog)
    assert draft.step == RegistrationStep.COLLECTING_DETAILS


def test_back_on_first_step_is_noop():
    """Test that going back from the first step stays put."""
    assert go_back(RegistrationDraft()).step == RegistrationStep.COLLECTING_HOSPITAL


def test_changed_hospital_revalidated_on_submit(details_draft, catalog, now):
    """Test that a doctor left over from an earlier hospital choice is caught."""
    draft = go_back(go_back(details_draft))
    draft = advance(draft, {"hospital_id": 1}, catalog)
    draft = draft.model_copy(update={"step": RegistrationStep.COLLECTING_DETAILS})

    with pytest.raises(ValidationFailed):
        submit_registration(draft, catalog, now, fields=DETAILS)


def test_submit_from_wrong_step(catalog, now):
    """Test that submission is only possible from the details step."""
    with pytest.raises(InvalidTransition):
        submit_registration(RegistrationDraft(), catalog, now, fields=DETAILS)


def test_advance_past_details_is_invalid(details_draft, catalog):
    """Test that the details step must be finished with submit."""
    with pytest.raises(InvalidTransition):
        advance(details_draft, DETAILS, catalog)


def test_approve_once(registration, now):
    """Test pending → approved, then a second approval fails."""
    approved = approve_registration(registration, now)

    assert approved.status == RegistrationStatus.APPROVED
    assert approved.approved_at == now
    assert registration.status == RegistrationStatus.PENDING

    with pytest.raises(InvalidTransition):
        approve_registration(approved, now)


def test_reject_once(registration, now):
    """Test pending → rejected; rejected cannot later be approved."""
    rejected = reject_registration(registration, now)

    assert rejected.status == RegistrationStatus.REJECTED
    assert rejected.rejected_at == now

    with pytest.raises(InvalidTransition):
        approve_registration(rejected, now)
    with pytest.raises(InvalidTransition):
        reject_registration(rejected, now)


def test_registration_id_collision_bumped():
    """Test that ids generated in the same millisecond stay unique."""
    now = dt.datetime(2024, 6, 1, 8, 0)
    first = new_registration_id(now)

    assert new_registration_id(now, [first]) != first


def test_optional_details_kept(details_draft, catalog, now):
    """Test that optional patient details travel onto the registration."""
    registration = submit_registration(
        details_draft, catalog, now, fields={**DETAILS, "dateOfBirth": "1990-04-01", "gender": "female"}
    )

    assert registration.date_of_birth == "1990-04-01"
    assert registration.gender == "female"
    assert registration.address is None


def test_normalize_fields():
    """Test key normalisation and blank dropping."""
    assert normalize_fields({"patientName": " Jane ", "gender": "", "address": None}) == {"patient_name": "Jane"}


def test_step_options(catalog):
    """Test that each step lists what the user can pick."""
    hospitals = step_definition(RegistrationStep.COLLECTING_HOSPITAL).options({}, catalog)
    doctors = step_definition(RegistrationStep.COLLECTING_DOCTOR).options({"hospital_id": "3"}, catalog)

    assert len(hospitals) == 4
    assert doctors == ["7: Dr. Arjun Patel - Pediatrics", "8: Dr. Meera Joshi - Pediatric Surgery"]
