"""Terminal front end for creating and listing invoices.

Examples:
  invoicing create --client-name "Acme Corp" --email billing@acme.com --amount 120.50
  invoicing list --query acme --status PAID
  invoicing connect
  invoicing adopt "http://localhost:3000/invoices?realmId=9130"
  invoicing disconnect
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import webbrowser

from invoicing.config.settings import InvoicingSettings, configure_logging
from invoicing.integrations.invoices_api import (
    InvoicesApiClient,
    InvoicesApiConfigError,
    InvoicesApiError,
)
from invoicing.integrations.qbo_connect import start_quickbooks_auth, wait_for_realm_redirect
from invoicing.integrations.realm_store import AddressBar, RealmStore, init_realm_store
from invoicing.models.invoice import InvoiceStatus
from invoicing.use_cases.invoice_list import filter_invoices, paginate
from invoicing.use_cases.invoice_schema import DraftInvoice
from invoicing.use_cases.invoice_submission import (
    InvoiceSubmissionController,
    SubmissionState,
    SubmitPhase,
)

logger = logging.getLogger(__name__)

CREATED_MESSAGE = "Invoice created successfully."
SYNC_PENDING_MESSAGE = "Sync pending..."


def render_state(state: SubmissionState, *, realm_linked: bool = False) -> list[str]:
    """Lines to show for a submission state, in display order."""

    lines: list[str] = []
    for name, message in state.field_errors.items():
        lines.append(f"  {name}: {message}")
    if state.form_error:
        lines.append(f"❌ {state.form_error}")

    if state.phase is SubmitPhase.SUCCESS and not state.form_error:
        lines.append(f"✅ {CREATED_MESSAGE}")
        sync = state.sync
        if sync is not None and sync.message:
            lines.append(f"✅ {sync.message}")
        if sync is not None and sync.error:
            lines.append(f"⚠️  {sync.error}")
        if realm_linked and (sync is None or not (sync.message or sync.error)):
            lines.append(SYNC_PENDING_MESSAGE)
    return lines


def _open_browser(url: str) -> None:
    print("Opening Intuit consent page in your browser...")
    print("If it doesn't open, copy/paste this URL:")
    print(url)
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        logger.debug("Could not open browser: %s", e)


def _cmd_create(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    store = init_realm_store(settings.realm_store_path)
    controller = InvoiceSubmissionController(InvoicesApiClient.from_settings(settings), store)
    draft = DraftInvoice(
        client_name=args.client_name,
        email=args.email,
        amount=args.amount,
        status=args.status,
        description=args.description,
        due_date=args.due_date,
    )

    state = asyncio.run(controller.submit(draft))
    for line in render_state(state, realm_linked=store.is_linked):
        print(line)
    return 0 if state.phase is SubmitPhase.SUCCESS else 1


def _cmd_list(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    api = InvoicesApiClient.from_settings(settings)
    try:
        invoices = asyncio.run(api.list_invoices())
    except (InvoicesApiError, InvoicesApiConfigError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    filtered = filter_invoices(invoices, query=args.query, status=args.status)
    page = paginate(filtered, page=args.page, rows_per_page=args.rows)

    for inv in page.items:
        qb = f" QB:{inv.quickbooks_id}" if inv.quickbooks_id else ""
        due = (inv.due_date or "")[:10]
        print(
            f"{inv.id}\t{inv.client_name}\t{inv.email}\t{inv.amount:.2f}\t"
            f"{inv.status.value}\t{due}{qb}"
        )
    print(f"Page {page.page + 1}/{max(page.page_count, 1)} ({page.total} invoices)")
    return 0


def _cmd_connect(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    store = init_realm_store(settings.realm_store_path)
    try:
        auth_url = start_quickbooks_auth(
            base_url=settings.api_base,
            redirect=settings.connect_listen_url,
            timeout_seconds=settings.http_timeout_seconds,
        )
        redirect_url = wait_for_realm_redirect(
            settings.connect_listen_url,
            timeout_seconds=settings.connect_timeout_seconds,
            on_ready=lambda: _open_browser(auth_url),
        )
    except (RuntimeError, TimeoutError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    store.adopt_from_address(AddressBar(redirect_url))
    print(f"✅ QuickBooks connected (realm {store.current_id()})")
    return 0


def _cmd_adopt(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    address = AddressBar(args.url)
    store = init_realm_store(settings.realm_store_path, address)
    print(address.url)
    if not store.is_linked:
        print("No realmId found in address; QuickBooks not connected.", file=sys.stderr)
        return 1
    return 0


def _cmd_disconnect(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    init_realm_store(settings.realm_store_path).clear()
    print("QuickBooks disconnected.")
    return 0


def _cmd_status(args: argparse.Namespace, settings: InvoicingSettings) -> int:
    store: RealmStore = init_realm_store(settings.realm_store_path)
    if store.is_linked:
        print(f"QB Connected (realm {store.current_id()})")
    else:
        print("QuickBooks not connected.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="invoicing", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create an invoice")
    create.add_argument("--client-name")
    create.add_argument("--email")
    create.add_argument("--amount")
    create.add_argument(
        "--status",
        default=InvoiceStatus.DRAFT.value,
        choices=[s.value for s in InvoiceStatus],
    )
    create.add_argument("--description")
    create.add_argument("--due-date", help="ISO-8601 date or timestamp")
    create.set_defaults(handler=_cmd_create)

    lst = sub.add_parser("list", help="List invoices")
    lst.add_argument("--query", default="")
    lst.add_argument("--status", choices=[s.value for s in InvoiceStatus])
    lst.add_argument("--page", type=int, default=0)
    lst.add_argument("--rows", type=int, default=10)
    lst.set_defaults(handler=_cmd_list)

    sub.add_parser("connect", help="Connect QuickBooks").set_defaults(handler=_cmd_connect)

    adopt = sub.add_parser("adopt", help="Adopt the realmId from a redirect address")
    adopt.add_argument("url")
    adopt.set_defaults(handler=_cmd_adopt)

    sub.add_parser("disconnect", help="Forget the linked realm").set_defaults(
        handler=_cmd_disconnect
    )
    sub.add_parser("status", help="Show QuickBooks link status").set_defaults(
        handler=_cmd_status
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = InvoicingSettings.from_env()
    configure_logging(args.log_level or settings.log_level)
    return args.handler(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
