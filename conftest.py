"""Pytest configuration.

Ensures the `invoicing` package under `src/` imports without installation.
"""

import sys
from pathlib import Path

import pytest


def _prepend_sys_path(path: Path) -> None:
    resolved = str(path.resolve())
    if resolved not in sys.path:
        sys.path.insert(0, resolved)


REPO_ROOT = Path(__file__).resolve().parent

_prepend_sys_path(REPO_ROOT / "src")


@pytest.fixture(autouse=True)
def _clean_invoicing_env(monkeypatch):
    """Keep a developer's `.env` from leaking into tests."""
    for name in (
        "INVOICES_API_BASE",
        "INVOICES_API_URL",
        "API_URL",
        "QB_REALM_STORE_PATH",
        "QB_CONNECT_LISTEN_URL",
        "QB_CONNECT_TIMEOUT_SECONDS",
        "INVOICES_HTTP_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_realm_singleton():
    from invoicing.integrations.realm_store import reset_realm_store

    reset_realm_store()
    yield
    reset_realm_store()
