from __future__ import annotations
from datetime import date
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ledger.errors import DataValidationError
from ledger.models.invoice import INVOICE_STATUSES, Invoice

DATE_RANGES = ("all", "this_month", "last_month", "last_3_months")


def _month_start(d: date, months_back: int = 0) -> date:
    idx = d.year * 12 + (d.month - 1) - months_back
    return date(idx // 12, idx % 12 + 1, 1)


def _in_range(issue_date: date, date_range: str, today: date) -> bool:
    if date_range == "all":
        return True
    this_month = _month_start(today)
    if date_range == "this_month":
        return this_month <= issue_date <= today
    if date_range == "last_month":
        return _month_start(today, 1) <= issue_date < this_month
    # last_3_months: the current month and the two before it
    return _month_start(today, 2) <= issue_date <= today


def filter_invoices(
    invoices: Iterable[Invoice],
    status: str = "all",
    client_name: str = "",
    date_range: str = "all",
    today: Optional[date] = None,
) -> List[Invoice]:
    if status != "all" and status not in INVOICE_STATUSES:
        raise DataValidationError(f"Unknown status filter {status!r}", {"status": "Unknown status."})
    if date_range not in DATE_RANGES:
        raise DataValidationError(f"Unknown date range {date_range!r}", {"date_range": "Unknown date range."})
    today = today or date.today()
    needle = client_name.strip().casefold()
    return [
        inv for inv in invoices
        if (status == "all" or inv.status == status)
        and (not needle or needle in inv.client_name.casefold())
        and _in_range(inv.issue_date, date_range, today)
    ]


class InvoiceSummary(BaseModel):
    counts: Dict[str, int] = Field(default_factory=lambda: {s: 0 for s in INVOICE_STATUSES})
    paid_revenue: float = 0.0
    pending_amount: float = 0.0
    partial_collected: float = 0.0
    overdue_amount: float = 0.0
    outstanding_balance: float = 0.0


def summarize_invoices(invoices: Iterable[Invoice]) -> InvoiceSummary:
    s = InvoiceSummary()
    for inv in invoices:
        s.counts[inv.status] += 1
        if inv.status == "paid":
            s.paid_revenue += inv.total
            continue
        if inv.status == "pending":
            s.pending_amount += inv.total
        elif inv.status == "partially_paid":
            s.partial_collected += inv.amount_paid
        elif inv.status == "overdue":
            s.overdue_amount += inv.total
        s.outstanding_balance += inv.balance
    return s
