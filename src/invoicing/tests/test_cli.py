from __future__ import annotations

import json

import httpx
import pytest

import invoicing.cli as cli
from invoicing.integrations.invoices_api import InvoicesApiClient
from invoicing.use_cases.invoice_schema import DraftInvoice
from invoicing.use_cases.invoice_submission import SubmissionState, SubmitPhase, SyncOutcome


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INVOICES_API_BASE", "http://api.test")
    store_path = tmp_path / "realm.json"
    monkeypatch.setenv("QB_REALM_STORE_PATH", str(store_path))
    return store_path


@pytest.fixture
def backend(monkeypatch):
    requests_seen: list[dict] = []
    responses: dict[str, httpx.Response] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        requests_seen.append({"method": request.method, "path": request.url.path, "body": body})
        return responses[request.method]

    def from_settings(settings, *, transport=None):
        return InvoicesApiClient(
            base_url=settings.api_base, transport=httpx.MockTransport(handler)
        )

    monkeypatch.setattr(cli.InvoicesApiClient, "from_settings", staticmethod(from_settings))
    return requests_seen, responses


def test_render_success_with_sync_warning() -> None:
    state = SubmissionState(
        phase=SubmitPhase.SUCCESS, sync=SyncOutcome(error="QuickBooks sync failed: nope")
    )
    lines = cli.render_state(state, realm_linked=True)
    assert lines == [f"✅ {cli.CREATED_MESSAGE}", "⚠️  QuickBooks sync failed: nope"]


def test_render_sync_pending_only_when_linked() -> None:
    state = SubmissionState(phase=SubmitPhase.SUCCESS)
    assert cli.SYNC_PENDING_MESSAGE in cli.render_state(state, realm_linked=True)
    assert cli.SYNC_PENDING_MESSAGE not in cli.render_state(state, realm_linked=False)


def test_render_errors() -> None:
    state = SubmissionState(
        phase=SubmitPhase.ERROR,
        draft=DraftInvoice(),
        field_errors={"email": "Invalid email"},
        form_error="Validation failed",
    )
    assert cli.render_state(state) == ["  email: Invalid email", "❌ Validation failed"]


def test_create_command_sends_linked_realm(cli_env, backend, capsys) -> None:
    requests_seen, responses = backend
    cli_env.write_text(json.dumps({"qb_realm_id": "9130"}))
    responses["POST"] = httpx.Response(
        201, json={"id": 3, "sync": {"success": True, "quickbooksId": "Q1"}}
    )

    code = cli.main(
        ["create", "--client-name", "Acme", "--email", "a@acme.com", "--amount", "12.50"]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "QuickBooks synced (ID Q1)" in out
    assert requests_seen[0]["path"] == "/api/invoices"
    assert requests_seen[0]["body"]["realmId"] == "9130"
    assert requests_seen[0]["body"]["amount"] == 12.5


def test_create_command_reports_validation_errors(cli_env, backend, capsys) -> None:
    requests_seen, _ = backend
    code = cli.main(["create", "--email", "bad"])
    out = capsys.readouterr().out
    assert code == 1
    assert "clientName: Client name required" in out
    assert "email: Invalid email" in out
    assert requests_seen == []


def test_list_command_filters(cli_env, backend, capsys) -> None:
    _, responses = backend
    responses["GET"] = httpx.Response(
        200,
        json=[
            {"id": 1, "clientName": "Acme", "email": "a@acme.com", "amount": 10, "status": "PAID", "createdAt": "x"},
            {"id": 2, "clientName": "Globex", "email": "g@globex.com", "amount": 5, "status": "DRAFT", "createdAt": "x"},
        ],
    )
    assert cli.main(["list", "--status", "PAID"]) == 0
    out = capsys.readouterr().out
    assert "Acme" in out
    assert "Globex" not in out
    assert "(1 invoices)" in out


def test_adopt_and_disconnect(cli_env, capsys) -> None:
    assert cli.main(["adopt", "http://app.test/invoices?realmId=9130&tab=new"]) == 0
    assert capsys.readouterr().out.strip() == "http://app.test/invoices?tab=new"
    assert json.loads(cli_env.read_text()) == {"qb_realm_id": "9130"}

    assert cli.main(["status"]) == 0
    assert "9130" in capsys.readouterr().out

    assert cli.main(["disconnect"]) == 0
    assert not cli_env.exists()
    assert cli.main(["adopt", "http://app.test/invoices"]) == 1
