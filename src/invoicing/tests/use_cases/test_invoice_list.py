from __future__ import annotations

import pytest

from invoicing.models.invoice import Invoice
from invoicing.use_cases.invoice_list import filter_invoices, paginate


def _inv(id_, name, email, status="DRAFT") -> Invoice:
    return Invoice(
        id=id_,
        clientName=name,
        email=email,
        amount=10,
        status=status,
        createdAt="2025-11-01T00:00:00Z",
    )


INVOICES = [
    _inv(1, "Acme Corp", "billing@acme.com", "PAID"),
    _inv(12, "Globex", "ap@globex.com"),
    _inv(21, "Initech", "finance@initech.io", "PAID"),
]


def test_query_matches_name_email_or_id() -> None:
    assert [i.id for i in filter_invoices(INVOICES, query="ACME")] == [1]
    assert [i.id for i in filter_invoices(INVOICES, query="initech.io")] == [21]
    assert [i.id for i in filter_invoices(INVOICES, query="1")] == [1, 12, 21]


def test_status_filter_combines_with_query() -> None:
    assert [i.id for i in filter_invoices(INVOICES, status="PAID")] == [1, 21]
    assert [i.id for i in filter_invoices(INVOICES, query="2", status="PAID")] == [21]
    assert filter_invoices(INVOICES) == INVOICES


def test_paginate_slices_and_counts() -> None:
    page = paginate(INVOICES, page=1, rows_per_page=2)
    assert [i.id for i in page.items] == [21]
    assert page.total == 3
    assert page.page_count == 2

    assert paginate(INVOICES, page=5, rows_per_page=2).items == []


def test_paginate_rejects_bad_arguments() -> None:
    with pytest.raises(ValueError):
        paginate(INVOICES, page=-1)
    with pytest.raises(ValueError):
        paginate(INVOICES, rows_per_page=0)
