"""Wire models for the invoices backend.

The backend speaks camelCase JSON; fields here are snake_case with aliases so
both spellings are accepted when parsing.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    PAID = "PAID"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Invoice(_WireModel):
    id: int | str
    client_name: str = Field(alias="clientName")
    email: str
    amount: float
    status: InvoiceStatus
    description: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")
    quickbooks_id: str | None = Field(default=None, alias="quickbooksId")
    created_at: str = Field(alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class InvoiceSyncResult(_WireModel):
    """Outcome of the best-effort QuickBooks push, as reported by the backend.

    Parsing never fails: the invoice already exists by the time this is read,
    so an oddly shaped sync report degrades to a failed sync instead of a
    failed create.
    """

    success: bool = False
    quickbooks_id: str | None = Field(default=None, alias="quickbooksId")
    error: str | None = None

    @field_validator("success", mode="before")
    @classmethod
    def _truthy_success(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("quickbooks_id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> str | None:
        if isinstance(v, str):
            return v or None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None

    @field_validator("error", mode="before")
    @classmethod
    def _error_as_text(cls, v: Any) -> str | None:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, dict):
            for key in ("message", "error"):
                if isinstance(v.get(key), str):
                    return v[key]
            return json.dumps(v, default=str)
        return str(v)


class CreateInvoiceResponse(_WireModel):
    id: int | str
    # `None` covers both a missing key and an explicit JSON null.
    sync: InvoiceSyncResult | None = None

    @field_validator("sync", mode="before")
    @classmethod
    def _sync_object(cls, v: Any) -> Any:
        if v is None or isinstance(v, (dict, InvoiceSyncResult)):
            return v
        # Present but not an object: report it as a failed sync.
        return {"success": False}
