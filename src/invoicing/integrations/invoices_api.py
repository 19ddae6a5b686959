"""Async client for the invoices backend.

Purpose
- Resolve the backend base URL and inject JSON headers on every call.
- Map non-2xx responses to `InvoicesApiError`, keeping status and body so the
  error classifier can read server-side field errors.

This module knows nothing about form state; see `use_cases.invoice_submission`.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from invoicing.config.settings import InvoicingSettings
from invoicing.models.invoice import CreateInvoiceResponse, Invoice

logger = logging.getLogger(__name__)

INVOICES_PATH = "/api/invoices"

_ABSOLUTE_URL_RE = re.compile(r"^https?://")


class InvoicesApiConfigError(RuntimeError):
    """Raised when the backend base URL is missing or not absolute."""


class InvoicesApiError(Exception):
    """Non-2xx response (or unreadable 2xx body) from the invoices backend."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def error_message_from_body(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class InvoicesApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: InvoicingSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "InvoicesApiClient":
        return cls(
            base_url=settings.api_base,
            timeout_seconds=settings.http_timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "InvoicesApiClient":
        return cls.from_settings(InvoicingSettings.from_env())

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        base = self._base_url
        if not base:
            raise InvoicesApiConfigError(
                "API base URL not configured. Set INVOICES_API_BASE (or INVOICES_API_URL) in .env"
            )
        if not _ABSOLUTE_URL_RE.match(base):
            raise InvoicesApiConfigError(
                f'API base must be absolute (got "{base}"). Include http:// or https://'
            )
        normalized = path if path.startswith("/") else f"/{path}"
        return base + normalized

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
    ) -> Any:
        url = self._url(path)
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds, transport=self._transport
        ) as client:
            resp = await client.request(
                method,
                url,
                json=json_body,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )

        logger.debug("%s %s -> %s", method, url, resp.status_code)

        if resp.status_code < 200 or resp.status_code >= 300:
            try:
                body = resp.json()
            except ValueError:
                body = None
            raise InvoicesApiError(
                error_message_from_body(body, f"Request failed {resp.status_code} for {url}"),
                status_code=resp.status_code,
                body=body,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise InvoicesApiError(
                f"Invalid JSON response from {url}",
                status_code=resp.status_code,
            ) from e

    async def get_json(self, path: str) -> Any:
        return await self.request_json("GET", path)

    async def post_json(self, path: str, body: Any) -> Any:
        return await self.request_json("POST", path, json_body=body)

    async def create_invoice(self, payload: dict[str, Any]) -> CreateInvoiceResponse:
        data = await self.post_json(INVOICES_PATH, payload)
        if not isinstance(data, dict):
            raise InvoicesApiError("Unexpected create invoice response", body=data)
        return CreateInvoiceResponse.model_validate(data)

    async def list_invoices(self) -> list[Invoice]:
        data = await self.get_json(INVOICES_PATH)
        if not isinstance(data, list):
            raise InvoicesApiError("Unexpected invoice list response", body=data)
        return [Invoice.model_validate(item) for item in data]
