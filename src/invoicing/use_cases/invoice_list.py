"""Search and paging over an already-fetched invoice collection."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from invoicing.models.invoice import Invoice, InvoiceStatus


@dataclass(frozen=True, slots=True)
class InvoicePage:
    items: list[Invoice]
    total: int
    page: int
    rows_per_page: int

    @property
    def page_count(self) -> int:
        if self.rows_per_page <= 0:
            return 0
        return (self.total + self.rows_per_page - 1) // self.rows_per_page


def _matches_query(invoice: Invoice, needle: str) -> bool:
    return (
        needle in invoice.client_name.lower()
        or needle in invoice.email.lower()
        or needle in str(invoice.id)
    )


def filter_invoices(
    invoices: Iterable[Invoice],
    *,
    query: str = "",
    status: InvoiceStatus | str | None = None,
) -> list[Invoice]:
    """Case-insensitive match on client name or email, substring match on id."""

    needle = (query or "").lower()
    wanted = InvoiceStatus(status) if status else None

    out: list[Invoice] = []
    for inv in invoices:
        if needle and not _matches_query(inv, needle):
            continue
        if wanted is not None and inv.status != wanted:
            continue
        out.append(inv)
    return out


def paginate(items: Sequence[Invoice], *, page: int = 0, rows_per_page: int = 10) -> InvoicePage:
    if page < 0:
        raise ValueError("page must be >= 0")
    if rows_per_page < 1:
        raise ValueError("rows_per_page must be >= 1")
    start = page * rows_per_page
    return InvoicePage(
        items=list(items[start : start + rows_per_page]),
        total=len(items),
        page=page,
        rows_per_page=rows_per_page,
    )
