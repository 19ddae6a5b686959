"""New-invoice submission workflow.

The form moves through an explicit state machine:

    idle --submit--> validating
    validating --invalid--> error          (field errors only)
    validating --valid--> submitting
    submitting --created--> success        (draft reset, sync outcome set)
    submitting --failed--> error           (form error + optional field errors)
    success|error --submit--> validating
    any --reset--> idle

Only the most recent submission may change state. Each `submit` bumps a
generation token and cancels the previous in-flight request; a superseded
call's result, failure or cancellation is dropped without touching state.

The create call and the QuickBooks sync are reported separately: a failed or
missing sync never turns a successful create into an error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol

from invoicing.integrations.realm_store import (
    RealmStore,
    RealmStoreNotInitialized,
    get_realm_store,
)
from invoicing.models.invoice import CreateInvoiceResponse, InvoiceStatus, InvoiceSyncResult
from invoicing.use_cases.error_classifier import ClassifiedError, classify_error
from invoicing.use_cases.invoice_schema import (
    ATTR_TO_WIRE,
    DraftInvoice,
    validate_invoice,
)

logger = logging.getLogger(__name__)

SYNC_MISSING_MESSAGE = "QuickBooks sync did not return a result."
SYNC_FAILED_MESSAGE = "QuickBooks sync failed."


class SubmitPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    message: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SubmissionState:
    phase: SubmitPhase = SubmitPhase.IDLE
    draft: DraftInvoice = field(default_factory=DraftInvoice)
    field_errors: Mapping[str, str] = field(default_factory=dict)
    form_error: str | None = None
    sync: SyncOutcome | None = None


class InvoiceCreator(Protocol):
    async def create_invoice(self, payload: dict[str, Any]) -> CreateInvoiceResponse: ...


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _default_draft(draft: DraftInvoice) -> DraftInvoice:
    return DraftInvoice(status=draft.status or InvoiceStatus.DRAFT.value)


def begin_validation(state: SubmissionState, draft: DraftInvoice | None = None) -> SubmissionState:
    return replace(
        state,
        phase=SubmitPhase.VALIDATING,
        draft=draft if draft is not None else state.draft,
        field_errors={},
        form_error=None,
        sync=None,
    )


def validation_failed(state: SubmissionState, field_errors: Mapping[str, str]) -> SubmissionState:
    return replace(
        state,
        phase=SubmitPhase.ERROR,
        field_errors=dict(field_errors),
        form_error=None,
        sync=None,
    )


def begin_submit(state: SubmissionState) -> SubmissionState:
    return replace(state, phase=SubmitPhase.SUBMITTING)


def submit_succeeded(state: SubmissionState, sync: SyncOutcome | None) -> SubmissionState:
    return SubmissionState(
        phase=SubmitPhase.SUCCESS,
        draft=_default_draft(state.draft),
        sync=sync,
    )


def submit_failed(state: SubmissionState, error: ClassifiedError) -> SubmissionState:
    return replace(
        state,
        phase=SubmitPhase.ERROR,
        field_errors=dict(error.field_errors),
        form_error=error.form_error,
        sync=None,
    )


def reset_state(state: SubmissionState) -> SubmissionState:
    return SubmissionState(draft=_default_draft(state.draft))


def edit_field(state: SubmissionState, name: str, value: Any) -> SubmissionState:
    """Apply a single field edit and clear that field's error, if any."""

    draft = state.draft.with_field(name, value)
    wire_name = ATTR_TO_WIRE.get(name, name)
    if wire_name not in state.field_errors:
        return replace(state, draft=draft)
    remaining = {k: v for k, v in state.field_errors.items() if k != wire_name}
    return replace(state, draft=draft, field_errors=remaining)


def reconcile_sync(
    sync: InvoiceSyncResult | Mapping[str, Any] | None,
    realm_id: str | None,
) -> SyncOutcome | None:
    """Summarize the QuickBooks push reported in a successful create response.

    `realm_id` is the linked realm at the time the request was sent. A missing
    sync result only matters when a realm was linked.
    """

    if isinstance(sync, Mapping):
        sync = InvoiceSyncResult.model_validate(sync)

    if sync is None:
        if realm_id:
            return SyncOutcome(error=SYNC_MISSING_MESSAGE)
        return None

    if sync.success:
        if sync.quickbooks_id:
            return SyncOutcome(message=f"QuickBooks synced (ID {sync.quickbooks_id})")
        return None

    reason = (sync.error or "").strip()
    if reason:
        return SyncOutcome(error=f"QuickBooks sync failed: {reason}")
    return SyncOutcome(error=SYNC_FAILED_MESSAGE)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class InvoiceSubmissionController:
    def __init__(
        self,
        api: InvoiceCreator,
        realm_store: RealmStore | None = None,
        *,
        on_change: Callable[[SubmissionState], None] | None = None,
    ) -> None:
        self._api = api
        self._realm_store = realm_store
        self._on_change = on_change
        self._state = SubmissionState()
        self._generation = 0
        self._in_flight: asyncio.Future | None = None

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def set_field(self, name: str, value: Any) -> SubmissionState:
        self._write(edit_field(self._state, name, value))
        return self._state

    def reset(self) -> SubmissionState:
        self._invalidate()
        self._write(reset_state(self._state))
        return self._state

    async def submit(self, draft: DraftInvoice | None = None) -> SubmissionState:
        """Validate and create an invoice.

        Returns the controller state once this submission settles. If a newer
        submission (or a reset) superseded this one, the returned state is
        whatever the newer call has produced so far.
        """

        token = self._invalidate()
        realm_id = self._current_realm_id()

        self._write(begin_validation(self._state, draft))
        result = validate_invoice(self._state.draft)
        if not result.ok:
            logger.debug("Invoice draft rejected: %s", sorted(result.field_errors or {}))
            self._write(validation_failed(self._state, result.field_errors or {}))
            return self._state

        payload = result.record.to_payload(realm_id)
        self._write(begin_submit(self._state))
        logger.debug("Submitting invoice (realm linked: %s)", realm_id is not None)

        task = asyncio.ensure_future(self._api.create_invoice(payload))
        self._in_flight = task
        try:
            response = await task
        except asyncio.CancelledError:
            if self._is_stale(token):
                logger.debug("Superseded invoice submission cancelled")
                return self._state
            raise
        except Exception as e:
            if self._is_stale(token):
                logger.debug("Ignoring failure of superseded submission: %s", e)
                return self._state
            classified = classify_error(e)
            logger.warning("Invoice create failed: %s", classified.form_error)
            self._write(submit_failed(self._state, classified))
            return self._state
        finally:
            if self._in_flight is task:
                self._in_flight = None

        if self._is_stale(token):
            logger.debug("Ignoring result of superseded submission (id=%s)", response.id)
            return self._state

        sync = reconcile_sync(response.sync, realm_id)
        if sync is not None and sync.error:
            logger.warning("Invoice %s created; %s", response.id, sync.error)
        else:
            logger.info("Invoice %s created", response.id)
        self._write(submit_succeeded(self._state, sync))
        return self._state

    def _current_realm_id(self) -> str | None:
        store = self._realm_store
        if store is None:
            try:
                store = get_realm_store()
            except RealmStoreNotInitialized:
                logger.warning("Realm store not initialized; submitting without a QuickBooks realm")
                return None
        return store.current_id()

    def _invalidate(self) -> int:
        self._generation += 1
        previous = self._in_flight
        self._in_flight = None
        if previous is not None and not previous.done():
            previous.cancel()
        return self._generation

    def _is_stale(self, token: int) -> bool:
        return token != self._generation

    def _write(self, state: SubmissionState) -> None:
        self._state = state
        if self._on_change is not None:
            self._on_change(state)
