"""Client-side validation for new invoices.

`validate_invoice` never raises. It returns either a normalized
`ValidatedInvoice` or a mapping of wire field name -> first error message.
Every field is checked, so all violations are reported together.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from invoicing.models.invoice import InvoiceStatus

_EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)[A-Za-z0-9_'+\-.]*[A-Za-z0-9_+\-]@"
    r"(?:[A-Za-z0-9][A-Za-z0-9\-]*\.)+[A-Za-z]{2,}$"
)
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


@dataclass(slots=True)
class DraftInvoice:
    """Invoice under edit. Values are raw user input; only `status` is always set."""

    client_name: str | None = None
    email: str | None = None
    amount: float | int | str | None = None
    status: str = InvoiceStatus.DRAFT.value
    description: str | None = None
    due_date: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "clientName": self.client_name,
            "email": self.email,
            "amount": self.amount,
            "status": self.status,
            "description": self.description,
            "dueDate": self.due_date,
        }

    def with_field(self, name: str, value: Any) -> "DraftInvoice":
        """Return a copy with one field changed. Accepts wire or attribute names."""

        attr = WIRE_TO_ATTR.get(name, name)
        if attr not in _DRAFT_ATTRS:
            raise KeyError(f"Unknown invoice field: {name}")
        return replace(self, **{attr: value})


WIRE_TO_ATTR = {
    "clientName": "client_name",
    "email": "email",
    "amount": "amount",
    "status": "status",
    "description": "description",
    "dueDate": "due_date",
}
ATTR_TO_WIRE = {v: k for k, v in WIRE_TO_ATTR.items()}
_DRAFT_ATTRS = {f.name for f in fields(DraftInvoice)}


@dataclass(frozen=True, slots=True)
class ValidatedInvoice:
    client_name: str
    email: str
    amount: float
    status: InvoiceStatus
    description: str | None = None
    due_date: str | None = None

    def to_payload(self, realm_id: str | None = None) -> dict[str, Any]:
        """Build the `POST /api/invoices` body. Absent optional keys are omitted."""

        payload: dict[str, Any] = {
            "clientName": self.client_name,
            "email": self.email,
            "amount": self.amount,
            "status": self.status.value,
        }
        if self.description is not None:
            payload["description"] = self.description
        if self.due_date is not None:
            payload["dueDate"] = self.due_date
        if realm_id:
            payload["realmId"] = realm_id
        return payload


@dataclass(frozen=True, slots=True)
class InvoiceValidationResult:
    record: ValidatedInvoice | None = None
    field_errors: dict[str, str] | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class InvoiceSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    client_name: str = Field(default=None, alias="clientName", validate_default=True)
    email: str = Field(default=None, validate_default=True)
    amount: float = Field(default=None, validate_default=True)
    status: InvoiceStatus = Field(default=None, validate_default=True)
    description: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")

    @field_validator("client_name", mode="before")
    @classmethod
    def _check_client_name(cls, v: Any) -> str:
        if v is None or v == "":
            raise PydanticCustomError("required", "Client name required")
        if not isinstance(v, str):
            raise PydanticCustomError("format", "Client name must be text")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, v: Any) -> str:
        if not isinstance(v, str) or not _EMAIL_RE.match(v):
            raise PydanticCustomError("format", "Invalid email")
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> float:
        if v is None:
            raise PydanticCustomError("required", "Amount required")
        if isinstance(v, bool):
            raise PydanticCustomError("format", "Amount must be a number")
        if isinstance(v, str):
            text = v.strip()
            if not _NUMBER_RE.match(text):
                raise PydanticCustomError("format", "Amount must be a number")
            v = float(text)
        if not isinstance(v, (int, float, Decimal)):
            raise PydanticCustomError("format", "Amount must be a number")

        number = float(v)
        if not math.isfinite(number):
            raise PydanticCustomError("format", "Amount must be a number")
        if number <= 0:
            raise PydanticCustomError("positive", "Must be positive")
        return number

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, v: Any) -> InvoiceStatus:
        if v is None:
            raise PydanticCustomError("required", "Status required")
        if isinstance(v, InvoiceStatus):
            return v
        if isinstance(v, str) and v in InvoiceStatus.__members__:
            return InvoiceStatus(v)
        raise PydanticCustomError("enum", "Invalid status")

    @field_validator("description", mode="before")
    @classmethod
    def _check_description(cls, v: Any) -> str | None:
        if v is not None and not isinstance(v, str):
            raise PydanticCustomError("format", "Description must be text")
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def _check_due_date(cls, v: Any) -> str | None:
        # Empty input means "no due date", not an error.
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not _is_iso_timestamp(v):
            raise PydanticCustomError("format", "Invalid due date")
        return v


_FIELD_ALIASES = {
    name: (info.alias or name) for name, info in InvoiceSchema.model_fields.items()
}


def _is_iso_timestamp(value: str) -> bool:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def _as_mapping(draft: Any) -> dict[str, Any]:
    if isinstance(draft, DraftInvoice):
        return draft.to_wire()
    if isinstance(draft, Mapping):
        return {ATTR_TO_WIRE.get(k, k): v for k, v in draft.items()}
    return {}


def _first_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("form",)
        key = _FIELD_ALIASES.get(str(loc[0]), str(loc[0]))
        errors.setdefault(key, err.get("msg") or "Invalid value")
    return errors


def validate_invoice(draft: DraftInvoice | Mapping[str, Any] | Any) -> InvoiceValidationResult:
    """Validate a draft invoice.

    Accepts a `DraftInvoice` or a mapping keyed by wire names (`clientName`,
    `dueDate`, ...) or attribute names. Anything else is treated as an empty
    draft, so every required field is reported.
    """

    try:
        model = InvoiceSchema.model_validate(_as_mapping(draft))
    except ValidationError as exc:
        return InvoiceValidationResult(field_errors=_first_errors(exc))

    return InvoiceValidationResult(
        record=ValidatedInvoice(
            client_name=model.client_name,
            email=model.email,
            amount=model.amount,
            status=model.status,
            description=model.description,
            due_date=model.due_date,
        )
    )
