from datetime import date

import pytest

from ledger.errors import DataValidationError
from ledger.services.reporting import filter_invoices, summarize_invoices


@pytest.fixture
def book(invoices, draft):
    a = invoices.create({**draft, "client_name": "Acme Ltd", "issue_date": date(2030, 3, 5), "due_date": date(2030, 4, 5)})
    b = invoices.create({**draft, "client_name": "Beta Corp", "issue_date": date(2030, 2, 10), "due_date": date(2030, 3, 10)})
    c = invoices.create({**draft, "client_name": "acme east", "issue_date": date(2029, 12, 20), "due_date": date(2030, 1, 20)})
    invoices.create({**draft, "client_name": "Delta", "issue_date": date(2030, 3, 1), "due_date": date(2030, 3, 31)})
    invoices.add_payment(a.id, 138)
    invoices.add_payment(b.id, 38)
    invoices.update_status(c.id, "overdue")
    return {inv.client_name: inv for inv in invoices.list_invoices()}


def test_filter_by_status_and_client(book):
    by_name = book
    all_invoices = list(by_name.values())
    assert [i.client_name for i in filter_invoices(all_invoices, status="paid")] == ["Acme Ltd"]
    names = {i.client_name for i in filter_invoices(all_invoices, client_name="ACME")}
    assert names == {"Acme Ltd", "acme east"}
    assert filter_invoices(all_invoices, status="overdue", client_name="beta") == []


def test_filter_by_date_range(book):
    by_name = book
    all_invoices = list(by_name.values())
    today = date(2030, 3, 15)
    this_month = {i.client_name for i in filter_invoices(all_invoices, date_range="this_month", today=today)}
    assert this_month == {"Acme Ltd", "Delta"}
    last_month = {i.client_name for i in filter_invoices(all_invoices, date_range="last_month", today=today)}
    assert last_month == {"Beta Corp"}
    three = {i.client_name for i in filter_invoices(all_invoices, date_range="last_3_months", today=today)}
    assert three == {"Acme Ltd", "Delta", "Beta Corp"}
    jan = {i.client_name for i in filter_invoices(all_invoices, date_range="last_month", today=date(2030, 1, 5))}
    assert jan == {"acme east"}


def test_filter_rejects_unknown_values(book):
    by_name = book
    with pytest.raises(DataValidationError):
        filter_invoices(by_name.values(), status="void")
    with pytest.raises(DataValidationError):
        filter_invoices(by_name.values(), date_range="forever")


def test_summary(book):
    by_name = book
    s = summarize_invoices(by_name.values())
    assert s.counts == {"pending": 1, "partially_paid": 1, "paid": 1, "overdue": 1}
    assert s.paid_revenue == 138
    assert s.pending_amount == 138
    assert s.partial_collected == 38
    assert s.overdue_amount == 138
    assert s.outstanding_balance == 138 + 100 + 138


def test_summary_of_nothing():
    s = summarize_invoices([])
    assert sum(s.counts.values()) == 0
    assert s.outstanding_balance == 0
