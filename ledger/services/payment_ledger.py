"""Payment application and status derivation.

``derive_status`` is the only place that maps money fields to a status; both
the payment path and the checked manual override go through it.
"""
from __future__ import annotations

from ledger.errors import InvalidPaymentAmount
from ledger.models.invoice import Invoice, InvoiceStatus
from ledger.services.totals import compute_balance


def derive_status(amount_paid: float, balance: float, current: InvoiceStatus) -> InvoiceStatus:
    if balance <= 0:
        return "paid"
    if amount_paid > 0 and balance > 0:
        return "partially_paid"
    return current


def is_status_consistent(invoice: Invoice, status: InvoiceStatus) -> bool:
    """True when ``status`` does not contradict the invoice's money fields.

    ``overdue`` never contradicts them. ``paid`` and ``partially_paid``
    must match what a payment would derive, ``pending`` means nothing paid.
    """
    if status == "partially_paid":
        return derive_status(invoice.amount_paid, invoice.balance, "pending") == "partially_paid"
    if status == "paid":
        return invoice.balance <= 0
    if status == "pending":
        return invoice.amount_paid <= 0
    return True


def apply_payment(invoice: Invoice, amount: float) -> Invoice:
    # "not amount > 0" also rejects NaN
    if not amount > 0 or amount > invoice.balance:
        raise InvalidPaymentAmount(amount, invoice.balance)

    new_paid = invoice.amount_paid + amount
    new_balance = compute_balance(invoice.total, new_paid)
    updated = invoice.model_copy(update={
        "amount_paid": new_paid,
        "status": derive_status(new_paid, new_balance, invoice.status),
    })
    updated.touch()
    return updated


def pay_in_full(invoice: Invoice) -> Invoice:
    return apply_payment(invoice, invoice.balance)
