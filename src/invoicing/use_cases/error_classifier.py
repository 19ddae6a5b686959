"""Turn a failed create call into something the form can show.

Server validation errors (HTTP 400/422 with `errors.fieldErrors`) map onto the
same field -> message shape as client-side validation. Anything else becomes a
single form-level message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "Validation failed"
FALLBACK_MESSAGE = "Something went wrong while creating the invoice."

VALIDATION_STATUS_CODES = {400, 422}


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    form_error: str
    field_errors: dict[str, str] = field(default_factory=dict)


def _first_field_errors(body: Any) -> dict[str, str]:
    if not isinstance(body, dict):
        return {}
    errors = body.get("errors")
    if not isinstance(errors, dict):
        return {}
    field_errors = errors.get("fieldErrors")
    if not isinstance(field_errors, dict):
        return {}

    out: dict[str, str] = {}
    for name, messages in field_errors.items():
        if isinstance(messages, str) and messages:
            out[str(name)] = messages
        elif isinstance(messages, (list, tuple)):
            first = next((m for m in messages if isinstance(m, str) and m), None)
            if first:
                out[str(name)] = first
    return out


def _body_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in ("error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _classify(exc: Any) -> ClassifiedError:
    status_code = getattr(exc, "status_code", None)
    body = getattr(exc, "body", None)

    if status_code in VALIDATION_STATUS_CODES:
        field_errors = _first_field_errors(body)
        if field_errors:
            return ClassifiedError(
                form_error=VALIDATION_FAILED_MESSAGE, field_errors=field_errors
            )

    message = _body_message(body)
    if message:
        return ClassifiedError(form_error=message)

    if isinstance(exc, Exception):
        text = str(exc).strip()
        if text:
            return ClassifiedError(form_error=text)

    return ClassifiedError(form_error=FALLBACK_MESSAGE)


def classify_error(exc: Any) -> ClassifiedError:
    """Classify whatever the create call raised. Never raises itself."""

    try:
        return _classify(exc)
    except Exception:
        logger.exception("Failed to classify invoice error %r", type(exc).__name__)
        return ClassifiedError(form_error=FALLBACK_MESSAGE)
