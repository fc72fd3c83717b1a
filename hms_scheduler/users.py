"""Local user list and login sessions.

Credentials are compared in plaintext; this mirrors the demo user list and is
not meant to be secure.
"""

from __future__ import annotations

import datetime as dt
import uuid

from hms_scheduler import config
from hms_scheduler.errors import NotFound, ValidationFailed
from hms_scheduler.logging_config import get_logger
from hms_scheduler.models import Session, User, UserRole
from hms_scheduler.store import USERS_KEY, RecordStore, session_key
from hms_scheduler.validation import missing_fields, validate_email, validate_phone

logger = get_logger(__name__)


class UserDirectory:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def list_users(self) -> list[User]:
        raw = await self.store.get(USERS_KEY)
        if raw is None:
            raw = config.DEFAULT_USERS
            await self.store.set(USERS_KEY, raw)
        return [User.model_validate(u) for u in raw]

    async def get_user(self, email: str) -> User:
        for user in await self.list_users():
            if user.email.lower() == email.strip().lower():
                return user
        raise NotFound(f"User {email} not found")

    async def register_user(
        self,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
        role: UserRole = UserRole.PATIENT,
        today: dt.date | None = None,
    ) -> User:
        data = {"name": name, "email": email, "password": password}
        missing = missing_fields(data, list(data))
        if missing:
            raise ValidationFailed(f"This field is required: {', '.join(missing)}", missing)
        if not validate_email(email):
            raise ValidationFailed("Please enter a valid email address", ["email"])
        if phone and not validate_phone(phone):
            raise ValidationFailed("Phone number must contain at least 10 digits", ["phone"])

        users = await self.list_users()
        if any(u.email.lower() == email.strip().lower() for u in users):
            raise ValidationFailed(f"An account with {email} already exists", ["email"])

        user = User(
            id=max((u.id for u in users), default=0) + 1,
            name=name.strip(),
            email=email.strip(),
            password=password,
            role=role,
            phone=phone,
            registration_date=today or dt.date.today(),
        )
        await self.store.set(USERS_KEY, [u.to_record() for u in users] + [user.to_record()])
        logger.info("user_registered", email=user.email, role=user.role.value)
        return user

    async def login(self, email: str, password: str, now: dt.datetime | None = None) -> Session:
        try:
            user = await self.get_user(email)
        except NotFound:
            user = None
        if user is None or user.password != password:
            logger.info("login_failed", email=email)
            raise ValidationFailed("Invalid email or password", ["email", "password"])

        session = Session(
            token=uuid.uuid4().hex,
            email=user.email,
            name=user.name,
            role=user.role,
            logged_in_at=now or dt.datetime.now(),
        )
        await self.store.set(session_key(session.token), session.to_record())
        logger.info("login_succeeded", email=user.email)
        return session

    async def resolve(self, token: str) -> Session:
        raw = await self.store.get(session_key(token))
        if raw is None:
            raise NotFound("Unknown or expired session")
        return Session.model_validate(raw)

    async def logout(self, token: str) -> None:
        await self.store.delete(session_key(token))
