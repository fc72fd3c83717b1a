from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from hms_scheduler.catalog import CatalogProvider
from hms_scheduler.errors import HMSError
from hms_scheduler.logging_config import get_logger
from hms_scheduler.models import Registration, RegistrationDraft, RegistrationStep
from hms_scheduler.registration import (
    advance,
    go_back,
    merge_fields,
    step_definition,
    submit_registration,
)
from hms_scheduler.store import REGISTRATION_IDS_KEY, RecordStore, draft_key, registrations_key

logger = get_logger(__name__)

ACTIONS = ("next", "back", "submit", "restart")

STEP_PROMPTS = {
    RegistrationStep.COLLECTING_HOSPITAL: "Please select a hospital (send hospital_id)",
    RegistrationStep.COLLECTING_DOCTOR: "Please select a doctor (send doctor_id)",
    RegistrationStep.COLLECTING_DETAILS: (
        "Please enter patient details (patient_name, patient_email, patient_phone) and submit"
    ),
}


class RegistrationFlowState(BaseModel):
    """Graph state for one action on one user's registration draft."""

    draft: RegistrationDraft = Field(default_factory=RegistrationDraft)
    registration: Registration | None = None
    errors: list[str] = Field(default_factory=list)

    # ─ runtime-only fields (not persisted) ─
    action: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    user_email: str | None = None
    now: dt.datetime | None = None
    existing_ids: list[str] = Field(default_factory=list)
    response_message: str | None = None

    model_config = {"arbitrary_types_allowed": True}


class FlowReply(BaseModel):
    step: RegistrationStep
    message: str
    errors: list[str] = Field(default_factory=list)
    registration: Registration | None = None


class RegistrationFlowManager:
    """Wraps a LangGraph state-machine over the registration workflow and
    keeps one draft per user in the record store."""

    def __init__(self, store: RecordStore, catalog: CatalogProvider) -> None:
        self.store = store
        self.catalog = catalog
        # guards the registration ID index
        self._lock = asyncio.Lock()

        self.graph = self._build_graph()
        self.executor = self.graph.compile()

    def _build_graph(self) -> StateGraph:
        g = StateGraph(RegistrationFlowState)

        g.add_node("init", self._init_state)
        g.add_node("advance", self._advance)
        g.add_node("go_back", self._go_back)
        g.add_node("submit", self._submit)
        g.add_node("restart", self._restart)
        g.add_node("reject_action", self._reject_action)

        g.set_entry_point("init")

        g.add_conditional_edges(
            "init",
            self._route_action,
            {
                "next": "advance",
                "back": "go_back",
                "submit": "submit",
                "restart": "restart",
                "invalid": "reject_action",
            },
        )

        for node in ("advance", "go_back", "submit", "restart", "reject_action"):
            g.add_edge(node, END)
        return g

    # ------------------------------------------------------------------ #
    #  Nodes
    # ------------------------------------------------------------------ #
    def _init_state(self, state: RegistrationFlowState) -> dict:
        return {"errors": [], "registration": None, "response_message": None}

    @staticmethod
    def _route_action(state: RegistrationFlowState) -> str:
        action = (state.action or "").strip().lower()
        if action not in ACTIONS:
            return "invalid"
        return action

    def _advance(self, state: RegistrationFlowState) -> dict:
        try:
            draft = advance(state.draft, state.fields, self.catalog)
        except HMSError as e:
            return self._failure(state, e)
        return {"draft": draft, "response_message": self._prompt(draft)}

    def _go_back(self, state: RegistrationFlowState) -> dict:
        draft = go_back(merge_fields(state.draft, state.fields))
        return {"draft": draft, "response_message": self._prompt(draft)}

    def _submit(self, state: RegistrationFlowState) -> dict:
        try:
            registration = submit_registration(
                state.draft,
                self.catalog,
                state.now or dt.datetime.now(),
                user_email=state.user_email,
                fields=state.fields,
                existing_ids=state.existing_ids,
            )
        except HMSError as e:
            return self._failure(state, e)
        return {
            "draft": state.draft.model_copy(update={"step": RegistrationStep.SUBMITTED}),
            "registration": registration,
            "response_message": (
                "✅ Your registration has been submitted!\n"
                f"• Registration ID: {registration.registration_id}\n"
                f"• Hospital: {registration.hospital_name}\n"
                f"• Doctor: {registration.doctor_name} ({registration.specialty})\n"
                "Status: pending admin approval."
            ),
        }

    def _restart(self, state: RegistrationFlowState) -> dict:
        draft = RegistrationDraft()
        return {"draft": draft, "response_message": self._prompt(draft)}

    def _reject_action(self, state: RegistrationFlowState) -> dict:
        message = f"Unknown action {state.action!r}. Use one of: {', '.join(ACTIONS)}"
        return {"errors": [message], "response_message": message}

    # ------------------------------------------------------------------ #
    #  Helper utilities
    # ------------------------------------------------------------------ #
    def _failure(self, state: RegistrationFlowState, error: HMSError) -> dict:
        draft = merge_fields(state.draft, state.fields)
        return {
            "draft": draft,
            "errors": [error.detail],
            "response_message": f"Sorry, {error.detail}. {self._prompt(draft)}",
        }

    def _prompt(self, draft: RegistrationDraft) -> str:
        prompt = STEP_PROMPTS[draft.step]
        opts = step_definition(draft.step).options(draft.form, self.catalog)
        return f"{prompt}. Options: {', '.join(opts)}" if opts else prompt

    # ------------------------------------------------------------------ #
    #  Persistence helpers
    # ------------------------------------------------------------------ #
    async def load_draft(self, user_email: str) -> RegistrationDraft:
        raw = await self.store.get(draft_key(user_email))
        return RegistrationDraft.model_validate(raw) if raw else RegistrationDraft()

    async def _save_draft(self, user_email: str, draft: RegistrationDraft) -> None:
        if draft.step == RegistrationStep.SUBMITTED:
            await self.store.delete(draft_key(user_email))
        else:
            await self.store.set(draft_key(user_email), draft.to_record())

    async def current_prompt(self, user_email: str) -> FlowReply:
        draft = await self.load_draft(user_email)
        return FlowReply(step=draft.step, message=self._prompt(draft))

    async def process_action(
        self,
        user_email: str,
        action: str,
        fields: dict[str, Any] | None = None,
        now: dt.datetime | None = None,
    ) -> FlowReply:
        """Apply one form action to the user's draft.

        Loads the draft, runs it through the graph, saves the updated draft
        and stores the registration if this action submitted one.
        """
        async with self._lock:
            saved = await self.store.get(registrations_key(user_email)) or []
            issued = await self.store.get(REGISTRATION_IDS_KEY) or []
            state = RegistrationFlowState(
                draft=await self.load_draft(user_email),
                action=action,
                fields=fields or {},
                user_email=user_email,
                now=now or dt.datetime.now(),
                existing_ids=issued + [r["registrationId"] for r in saved],
            )
            result = await asyncio.to_thread(self.executor.invoke, state)
            state = RegistrationFlowState.model_validate(result)

            await self._save_draft(user_email, state.draft)
            if state.registration is not None:
                saved.append(state.registration.to_record())
                await self.store.set(registrations_key(user_email), saved)
                await self.store.set(REGISTRATION_IDS_KEY, issued + [state.registration.registration_id])

        if state.registration is not None:
            logger.info(
                "registration_submitted",
                registration_id=state.registration.registration_id,
                user=user_email,
                doctor_id=state.registration.doctor_id,
            )
        elif state.errors:
            logger.info("registration_step_rejected", user=user_email, step=state.draft.step.value, errors=state.errors)

        return FlowReply(
            step=state.draft.step,
            message=state.response_message or "Sorry, I didn't get that.",
            errors=state.errors,
            registration=state.registration,
        )
