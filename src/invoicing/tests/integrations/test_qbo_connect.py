from __future__ import annotations

import http.client
import json
import socket
import threading
from types import SimpleNamespace
from urllib.parse import urlsplit

import pytest

from invoicing.integrations.qbo_connect import start_quickbooks_auth, wait_for_realm_redirect


class _FakeResp:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_start_returns_consent_url(monkeypatch) -> None:
    seen = SimpleNamespace(url=None, params=None)

    def fake_request(method, url, headers=None, params=None, timeout=None):
        seen.url = url
        seen.params = params
        return _FakeResp(200, {"url": "https://appcenter.intuit.com/connect/oauth2?x=1"})

    monkeypatch.setattr("requests.request", fake_request)

    auth_url = start_quickbooks_auth(
        base_url="http://api.test/", redirect="http://localhost:8040/qbo/callback"
    )
    assert auth_url.startswith("https://appcenter.intuit.com/")
    assert seen.url == "http://api.test/api/quickbooks/start"
    assert seen.params == {"redirect": "http://localhost:8040/qbo/callback"}


@pytest.mark.parametrize(
    ("resp", "message"),
    [
        (_FakeResp(500, {"error": "boom"}), "Failed to start QuickBooks auth"),
        (_FakeResp(200, {}), "Missing auth URL"),
        (_FakeResp(200, None, text="<html>"), "Missing auth URL"),
    ],
)
def test_start_failures(monkeypatch, resp, message) -> None:
    monkeypatch.setattr("requests.request", lambda *a, **k: resp)
    with pytest.raises(RuntimeError, match=message):
        start_quickbooks_auth(base_url="http://api.test", redirect="http://localhost:1/cb")


def test_start_requires_base_url() -> None:
    with pytest.raises(RuntimeError, match="API base not set"):
        start_quickbooks_auth(base_url="", redirect="http://localhost:1/cb")


def _hit_later(url: str) -> None:
    """Simulate the browser following the backend redirect (no proxies involved)."""

    def _get() -> None:
        parts = urlsplit(url)
        conn = http.client.HTTPConnection(parts.hostname, parts.port, timeout=5)
        try:
            conn.request("GET", f"{parts.path}?{parts.query}")
            conn.getresponse().read()
        finally:
            conn.close()

    threading.Thread(target=_get, daemon=True).start()


def test_wait_for_redirect_captures_realm_address() -> None:
    listen_url = f"http://127.0.0.1:{_free_port()}/qbo/callback"

    redirect = wait_for_realm_redirect(
        listen_url,
        timeout_seconds=10,
        on_ready=lambda: _hit_later(f"{listen_url}?realmId=9130&state=abc"),
    )
    assert redirect == f"{listen_url}?realmId=9130&state=abc"


def test_wait_for_redirect_surfaces_oauth_error() -> None:
    listen_url = f"http://127.0.0.1:{_free_port()}/qbo/callback"

    with pytest.raises(RuntimeError, match="access_denied"):
        wait_for_realm_redirect(
            listen_url,
            timeout_seconds=10,
            on_ready=lambda: _hit_later(f"{listen_url}?error=access_denied"),
        )


def test_wait_for_redirect_requires_port() -> None:
    with pytest.raises(ValueError):
        wait_for_realm_redirect("http://localhost/qbo/callback", timeout_seconds=1)
