"""QuickBooks connect flow (client side).

The backend owns the OAuth exchange. The client only:
- asks the backend for the Intuit consent URL (`GET /api/quickbooks/start`)
- waits on a local listener for the redirect back, which carries `realmId`

The captured redirect address is then adopted via `RealmStore`, the same way a
redirect address seen at startup is.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import requests

logger = logging.getLogger(__name__)

QUICKBOOKS_START_PATH = "/api/quickbooks/start"


def start_quickbooks_auth(
    *,
    base_url: str,
    redirect: str,
    timeout_seconds: float = 30,
) -> str:
    """Return the consent URL the browser should be sent to."""

    base = (base_url or "").rstrip("/")
    if not base:
        raise RuntimeError("API base not set")

    url = f"{base}{QUICKBOOKS_START_PATH}"
    resp = requests.request(
        "GET",
        url,
        headers={"Accept": "application/json"},
        params={"redirect": redirect},
        timeout=timeout_seconds,
    )
    if resp.status_code >= 400:
        raise RuntimeError(f"Failed to start QuickBooks auth (HTTP {resp.status_code})")

    try:
        data = resp.json()
    except ValueError:
        data = None
    auth_url = data.get("url") if isinstance(data, dict) else None
    if not auth_url:
        raise RuntimeError("Missing auth URL")
    return auth_url


class _CallbackState:
    def __init__(self) -> None:
        self.url: str | None = None
        self.error: str | None = None


def wait_for_realm_redirect(
    listen_url: str,
    *,
    timeout_seconds: float = 180,
    on_ready: Callable[[], None] | None = None,
) -> str:
    """Listen on `listen_url` until the backend redirects back with `realmId`.

    Returns the full redirect address as the browser saw it. `on_ready` runs
    once the listener is bound (e.g. to open the consent page).
    """

    local = urlparse(listen_url)
    if local.scheme not in {"http", "https"}:
        raise ValueError("listen_url must start with http:// or https://")
    if not local.hostname or not local.port:
        raise ValueError(
            "listen_url must include hostname and port, e.g. http://localhost:8040/qbo/callback"
        )

    state = _CallbackState()

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):  # noqa: N802
            # Only accept the configured callback path
            if urlparse(self.path).path != local.path:
                self.send_response(404)
                self.end_headers()
                self.wfile.write(b"Not found")
                return

            query = parse_qs(urlparse(self.path).query)
            if "error" in query:
                state.error = query.get("error", [""])[0] or "unknown error"
            elif query.get("realmId", [""])[0]:
                state.url = f"{local.scheme}://{local.netloc}{self.path}"

            self.send_response(200)
            self.send_header("Content-Type", "text/html")
            self.end_headers()
            self.wfile.write(
                b"<html><body><h3>QuickBooks connected.</h3><p>You can close this tab.</p></body></html>"
            )

        def log_message(self, *_args, **_kwargs):
            return

    server = HTTPServer((local.hostname, local.port), Handler)
    thread = threading.Thread(
        target=lambda: server.serve_forever(poll_interval=0.1), daemon=True
    )
    thread.start()
    logger.info("Waiting for QuickBooks redirect on %s", listen_url)

    try:
        if on_ready is not None:
            on_ready()

        start = time.time()
        while time.time() - start < timeout_seconds:
            if state.error:
                raise RuntimeError(f"QuickBooks auth error: {state.error}")
            if state.url:
                return state.url
            time.sleep(0.1)
    finally:
        server.shutdown()
        server.server_close()

    raise TimeoutError(
        "Timed out waiting for the QuickBooks redirect. Check that the backend redirects to "
        f"{listen_url}"
    )
