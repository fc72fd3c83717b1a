import pytest

from hms_scheduler.flow import RegistrationFlowManager
from hms_scheduler.models import RegistrationStatus, RegistrationStep
from hms_scheduler.store import draft_key, registrations_key

USER = "john@example.com"
DETAILS = {
    "patientName": "John Doe",
    "patientEmail": "john@example.com",
    "patientPhone": "+1234567891",
}


@pytest.fixture
def flow(store, catalog):
    """Create a fresh RegistrationFlowManager for each test."""
    return RegistrationFlowManager(store, catalog)


@pytest.mark.asyncio
async def test_happy_path_end_to_end(flow, store, now):
    """Test the complete flow: hospital → doctor → details → submitted."""
    reply = await flow.process_action(USER, "next", {"hospital_id": 3}, now)
    assert reply.step == RegistrationStep.COLLECTING_DOCTOR
    assert "doctor" in reply.message.lower()
    assert "Dr. Arjun Patel" in reply.message

    reply = await flow.process_action(USER, "next", {"doctor_id": 7}, now)
    assert reply.step == RegistrationStep.COLLECTING_DETAILS
    draft = await flow.load_draft(USER)
    assert draft.form == {"hospital_id": "3", "doctor_id": "7"}

    reply = await flow.process_action(USER, "submit", DETAILS, now)
    assert reply.step == RegistrationStep.SUBMITTED
    assert reply.errors == []
    assert reply.registration is not None
    assert reply.registration.status == RegistrationStatus.PENDING
    assert reply.registration.registration_id in reply.message

    saved = await store.get(registrations_key(USER))
    assert len(saved) == 1
    assert saved[0]["status"] == "pending"
    assert saved[0]["registrationId"] == reply.registration.registration_id
    assert await store.get(draft_key(USER)) is None


@pytest.mark.asyncio
async def test_invalid_input_retry(flow, now):
    """Test that a bad value keeps the step and explains the problem."""
    reply = await flow.process_action(USER, "next", {"hospital_id": 42}, now)

    assert reply.step == RegistrationStep.COLLECTING_HOSPITAL
    assert reply.errors
    assert "hospital" in reply.message.lower()
    assert reply.registration is None


@pytest.mark.asyncio
async def test_invalid_details_keep_entered_fields(flow, now):
    """Test that a failed submission keeps what the user typed."""
    await flow.process_action(USER, "next", {"hospital_id": 3}, now)
    await flow.process_action(USER, "next", {"doctor_id": 7}, now)

    reply = await flow.process_action(USER, "submit", {**DETAILS, "patientEmail": "nope"}, now)

    assert reply.step == RegistrationStep.COLLECTING_DETAILS
    assert reply.errors
    draft = await flow.load_draft(USER)
    assert draft.form["patient_name"] == "John Doe"


@pytest.mark.asyncio
async def test_back_navigation(flow, now):
    """Test moving back a step without losing data."""
    await flow.process_action(USER, "next", {"hospital_id": 3}, now)
    await flow.process_action(USER, "next", {"doctor_id": 7}, now)

    reply = await flow.process_action(USER, "back", None, now)

    assert reply.step == RegistrationStep.COLLECTING_DOCTOR
    draft = await flow.load_draft(USER)
    assert draft.form["doctor_id"] == "7"


@pytest.mark.asyncio
async def test_unknown_action(flow, now):
    """Test that unsupported actions are reported, not raised."""
    reply = await flow.process_action(USER, "jump", {}, now)

    assert reply.step == RegistrationStep.COLLECTING_HOSPITAL
    assert "unknown action" in reply.message.lower()


@pytest.mark.asyncio
async def test_restart_clears_draft(flow, now):
    """Test that restart begins a blank registration."""
    await flow.process_action(USER, "next", {"hospital_id": 3}, now)

    reply = await flow.process_action(USER, "restart", None, now)

    assert reply.step == RegistrationStep.COLLECTING_HOSPITAL
    assert (await flow.load_draft(USER)).form == {}


@pytest.mark.asyncio
async def test_drafts_are_per_user(flow, now):
    """Test that two users' drafts do not bleed into each other."""
    await flow.process_action("a@example.com", "next", {"hospital_id": 1}, now)
    await flow.process_action("b@example.com", "next", {"hospital_id": 3}, now)

    assert (await flow.load_draft("a@example.com")).form["hospital_id"] == "1"
    assert (await flow.load_draft("b@example.com")).form["hospital_id"] == "3"


@pytest.mark.asyncio
async def test_persistence_across_managers(flow, store, catalog, now):
    """Test that a new manager on the same store resumes the draft."""
    await flow.process_action(USER, "next", {"hospital_id": 3}, now)

    resumed = RegistrationFlowManager(store, catalog)
    reply = await resumed.current_prompt(USER)

    assert reply.step == RegistrationStep.COLLECTING_DOCTOR


@pytest.mark.asyncio
async def test_two_submissions_get_distinct_ids(flow, store, now):
    """Test that back-to-back registrations in the same instant do not collide."""
    for _ in range(2):
        await flow.process_action(USER, "next", {"hospital_id": 3}, now)
        await flow.process_action(USER, "next", {"doctor_id": 7}, now)
        await flow.process_action(USER, "submit", DETAILS, now)

    saved = await store.get(registrations_key(USER))
    assert len({r["registrationId"] for r in saved}) == 2


@pytest.mark.asyncio
async def test_next_action_after_submit_starts_new_form(flow, now):
    """Test that a submitted registration leaves no draft behind."""
    await flow.process_action(USER, "next", {"hospital_id": 3}, now)
    await flow.process_action(USER, "next", {"doctor_id": 7}, now)
    await flow.process_action(USER, "submit", DETAILS, now)

    reply = await flow.process_action(USER, "next", {"hospital_id": 1}, now)

    assert reply.step == RegistrationStep.COLLECTING_DOCTOR
    assert (await flow.load_draft(USER)).form == {"hospital_id": "1"}
