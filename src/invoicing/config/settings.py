"""Runtime configuration for the invoicing client.

Values come from the process environment, after loading `.env` and (for keys
that are still unset) `.env.example`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import dotenv_values, load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_REALM_STORE_PATH = ".qb_realm.json"
DEFAULT_CONNECT_LISTEN_URL = "http://localhost:8040/qbo/callback"


def load_environment(example_path: str | None = None) -> None:
    """Load `.env`, then fill still-missing keys from `.env.example`.

    `.env.example` contains blank placeholders; blanks never override real
    values and never block a later load.
    """

    load_dotenv(override=False)

    example_path = example_path or os.path.abspath(".env.example")
    if not os.path.exists(example_path):
        return
    for k, v in (dotenv_values(example_path) or {}).items():
        if not k or v is None or v == "":
            continue
        if not os.environ.get(k):
            os.environ[k] = v


def resolve_api_base() -> str:
    """Return the configured backend base URL with any trailing slash trimmed."""

    raw = (
        os.environ.get("INVOICES_API_BASE")
        or os.environ.get("INVOICES_API_URL")
        or os.environ.get("API_URL")
        or ""
    )
    return raw.strip().rstrip("/")


@dataclass(slots=True)
class InvoicingSettings:
    api_base: str
    http_timeout_seconds: float = 30.0
    realm_store_path: str = DEFAULT_REALM_STORE_PATH
    connect_listen_url: str = DEFAULT_CONNECT_LISTEN_URL
    connect_timeout_seconds: int = 180
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "InvoicingSettings":
        load_environment()
        return cls(
            api_base=resolve_api_base(),
            http_timeout_seconds=float(
                os.environ.get("INVOICES_HTTP_TIMEOUT_SECONDS", "30")
            ),
            realm_store_path=os.environ.get(
                "QB_REALM_STORE_PATH", os.path.abspath(DEFAULT_REALM_STORE_PATH)
            ),
            connect_listen_url=os.environ.get(
                "QB_CONNECT_LISTEN_URL", DEFAULT_CONNECT_LISTEN_URL
            ),
            connect_timeout_seconds=int(
                os.environ.get("QB_CONNECT_TIMEOUT_SECONDS", "180")
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str | None = None) -> None:
    resolved = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
