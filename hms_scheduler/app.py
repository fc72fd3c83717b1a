"""FastAPI server for hospital appointment booking and patient registration.

REST endpoints cover the catalog, appointments and the admin actor; the
multi-step registration form runs over the `/ws` WebSocket, one action per
message.
"""

import datetime as dt
import json
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hms_scheduler import config
from hms_scheduler.catalog import DOCTOR_SORTS, CatalogProvider
from hms_scheduler.errors import (
    AlreadyCancelled,
    HMSError,
    InvalidTransition,
    NotFound,
    SlotUnavailable,
)
from hms_scheduler.logging_config import get_logger, setup_structured_logging
from hms_scheduler.models import BookingRequest, RegistrationStatus, Session, UserRole
from hms_scheduler.service import Services, build_services
from hms_scheduler.store import InMemoryRecordStore, JsonFileRecordStore

logger = get_logger(__name__)

Clock = Callable[[], dt.datetime]


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_structured_logging(config.LOG_LEVEL)
    logger.info("server_starting", store=config.STORE_PATH or "memory", data_dir=str(config.DATA_DIR))
    yield
    logger.info("server_stopping")


app = FastAPI(title="HMS Appointment Scheduler", lifespan=lifespan)

services = build_services(
    JsonFileRecordStore(config.STORE_PATH) if config.STORE_PATH else InMemoryRecordStore(),
    CatalogProvider.from_directory(config.DATA_DIR),
)


# --------------------------------------------------------------------------- #
#  Request / response bodies
# --------------------------------------------------------------------------- #
class ErrorResponse(BaseModel):
    error: str
    detail: str
    code: str
    fields: list[str] = []


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str
    phone: str | None = None


class FeedbackCreate(BaseModel):
    rating: int
    message: str = ""


class AppointmentCreate(BaseModel):
    doctor_id: int
    date: dt.date
    time: str
    patient_name: str = ""
    patient_phone: str = ""
    patient_email: str = ""
    reason: str | None = None
    notes: str | None = None

    def for_patient(self, patient_id: str) -> BookingRequest:
        return BookingRequest(patient_id=patient_id, **self.model_dump())


# --------------------------------------------------------------------------- #
#  Dependencies
# --------------------------------------------------------------------------- #
def get_services() -> Services:
    return services


def get_clock() -> Clock:
    return dt.datetime.now


def _bearer(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


async def get_session(
    authorization: str | None = Header(None),
    svc: Services = Depends(get_services),
) -> Session:
    try:
        return await svc.users.resolve(_bearer(authorization))
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.detail) from None


async def get_optional_session(
    authorization: str | None = Header(None),
    svc: Services = Depends(get_services),
) -> Session | None:
    if authorization is None:
        return None
    return await get_session(authorization, svc)


async def require_admin(session: Session = Depends(get_session)) -> Session:
    if session.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return session


# --------------------------------------------------------------------------- #
#  Error handling
# --------------------------------------------------------------------------- #
_STATUS_BY_ERROR = {
    NotFound: status.HTTP_404_NOT_FOUND,
    SlotUnavailable: status.HTTP_409_CONFLICT,
    AlreadyCancelled: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
}


@app.exception_handler(HMSError)
async def hms_error_handler(request: Request, exc: HMSError):
    """Map core errors to JSON bodies; anything unlisted is a 422."""
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_422_UNPROCESSABLE_ENTITY)
    return JSONResponse(
        status_code=code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.detail,
            code=exc.code,
            fields=getattr(exc, "fields", []),
        ).model_dump(),
    )


# --------------------------------------------------------------------------- #
#  Sessions
# --------------------------------------------------------------------------- #
@app.get("/")
async def root():
    """Root endpoint providing basic API information."""
    return {
        "message": "HMS Appointment Scheduler API. Registration flow runs over WebSocket at /ws."
    }


@app.post("/login")
async def login(body: LoginRequest, svc: Services = Depends(get_services), clock: Clock = Depends(get_clock)):
    session = await svc.users.login(body.email, body.password, clock())
    return session.to_record()


@app.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(authorization: str | None = Header(None), svc: Services = Depends(get_services)):
    await svc.users.logout(_bearer(authorization))


@app.post("/users", status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, svc: Services = Depends(get_services), clock: Clock = Depends(get_clock)):
    user = await svc.users.register_user(body.name, body.email, body.password, body.phone, today=clock().date())
    record = user.to_record()
    record.pop("password")
    return record


# --------------------------------------------------------------------------- #
#  Catalog
# --------------------------------------------------------------------------- #
@app.get("/hospitals")
async def list_hospitals(type: str | None = None, search: str | None = None, svc: Services = Depends(get_services)):
    return [h.to_record() for h in svc.catalog.search_hospitals(type=type, search=search)]


@app.get("/hospitals/{hospital_id}")
async def get_hospital(hospital_id: int, svc: Services = Depends(get_services)):
    return svc.catalog.get_hospital(hospital_id).to_record()


@app.get("/hospitals/{hospital_id}/doctors")
async def hospital_doctors(hospital_id: int, svc: Services = Depends(get_services)):
    return [d.to_record() for d in svc.catalog.doctors_at(hospital_id)]


@app.get("/doctors")
async def list_doctors(
    specialty: str | None = None,
    search: str | None = None,
    min_experience: int = 0,
    sort: str = "rating",
    svc: Services = Depends(get_services),
):
    if sort not in DOCTOR_SORTS:
        raise HTTPException(status_code=422, detail=f"sort must be one of {', '.join(DOCTOR_SORTS)}")
    found = svc.catalog.search_doctors(specialty=specialty, search=search, min_experience=min_experience, sort=sort)
    return [d.to_record() for d in found]


@app.get("/doctors/{doctor_id}")
async def get_doctor(doctor_id: int, svc: Services = Depends(get_services)):
    return svc.catalog.get_doctor(doctor_id).to_record()


@app.get("/doctors/{doctor_id}/availability")
async def doctor_availability(
    doctor_id: int,
    date: dt.date,
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    slots = await svc.appointments.availability(doctor_id, date, clock())
    return {"doctorId": doctor_id, "date": date.isoformat(), "slots": [s.to_record() for s in slots]}


# --------------------------------------------------------------------------- #
#  Appointments
# --------------------------------------------------------------------------- #
@app.get("/appointments")
async def my_appointments(
    session: Session = Depends(get_session),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    upcoming, history = await svc.appointments.list_for_patient(session.email, clock())
    return {
        "upcoming": [a.to_record() for a in upcoming],
        "history": [a.to_record() for a in history],
    }


@app.post("/appointments", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: AppointmentCreate,
    session: Session = Depends(get_session),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    appointment = await svc.appointments.book(body.for_patient(session.email), clock())
    return appointment.to_record()


@app.post("/appointments/{appointment_id}/cancel")
async def cancel(
    appointment_id: int,
    session: Session = Depends(get_session),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    cancelled = await svc.appointments.cancel(session.email, appointment_id, clock())
    return cancelled.to_record()


@app.post("/appointments/{appointment_id}/reschedule")
async def reschedule(
    appointment_id: int,
    body: AppointmentCreate,
    session: Session = Depends(get_session),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    cancelled, new = await svc.appointments.reschedule(
        session.email, appointment_id, body.for_patient(session.email), clock()
    )
    return {"cancelled": cancelled.to_record(), "appointment": new.to_record()}


# --------------------------------------------------------------------------- #
#  Registrations
# --------------------------------------------------------------------------- #
@app.get("/registrations")
async def my_registrations(session: Session = Depends(get_session), svc: Services = Depends(get_services)):
    return [r.to_record() for r in await svc.registrations.list_for_patient(session.email)]


@app.get("/admin/registrations")
async def all_registrations(
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    _: Session = Depends(require_admin),
    svc: Services = Depends(get_services),
):
    return [r.to_record() for r in await svc.registrations.list_all(status_filter)]


@app.post("/admin/registrations/{registration_id}/approve")
async def approve(
    registration_id: str,
    _: Session = Depends(require_admin),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    return (await svc.registrations.approve(registration_id, clock())).to_record()


@app.post("/admin/registrations/{registration_id}/reject")
async def reject(
    registration_id: str,
    _: Session = Depends(require_admin),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    return (await svc.registrations.reject(registration_id, clock())).to_record()


@app.get("/admin/appointments")
async def all_appointments(_: Session = Depends(require_admin), svc: Services = Depends(get_services)):
    return [a.to_record() for a in await svc.appointments.all_appointments()]


@app.get("/admin/overview")
async def overview(
    _: Session = Depends(require_admin),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    return (await svc.overview(clock())).to_record()


@app.get("/admin/feedback")
async def all_feedback(_: Session = Depends(require_admin), svc: Services = Depends(get_services)):
    return [f.to_record() for f in await svc.feedback.list_feedback()]


# --------------------------------------------------------------------------- #
#  Feedback
# --------------------------------------------------------------------------- #
@app.post("/feedback", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    body: FeedbackCreate,
    session: Session | None = Depends(get_optional_session),
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    user = await svc.users.get_user(session.email) if session else None
    entry = await svc.feedback.submit(body.rating, body.message, clock(), user=user)
    return entry.to_record()


@app.get("/feedback/stats")
async def feedback_stats(svc: Services = Depends(get_services)):
    return (await svc.feedback.stats()).to_record()


@app.websocket("/ws")
async def registration_socket(
    websocket: WebSocket,
    svc: Services = Depends(get_services),
    clock: Clock = Depends(get_clock),
):
    """Drive the registration form, one action per message.

    Messages are `{"token", "action", "fields"}`; replies carry the current
    step, a prompt, validation errors and the registration once submitted.
    """
    await websocket.accept()

    try:
        while True:
            data = await websocket.receive_text()
            message_data = json.loads(data)

            token: str | None = message_data.get("token")
            action: str | None = message_data.get("action")
            fields = message_data.get("fields") or {}

            if not token or not action:
                await websocket.send_text(json.dumps({"error": "Missing token or action"}))
                continue

            try:
                session = await svc.users.resolve(token)
            except NotFound as e:
                await websocket.send_text(json.dumps({"error": e.detail}))
                continue

            if action == "status":
                reply = await svc.registrations.flow.current_prompt(session.email)
            else:
                reply = await svc.registrations.flow.process_action(session.email, action, fields, clock())
            await websocket.send_text(reply.model_dump_json(by_alias=True))

    except WebSocketDisconnect:
        logger.debug("websocket_disconnected")
    except Exception as e:
        logger.error("websocket_error", error=str(e), exc_info=True)
        try:
            await websocket.send_text(json.dumps({"error": f"Internal error: {e}"}))
        except (RuntimeError, WebSocketDisconnect):
            pass
