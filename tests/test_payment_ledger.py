import pytest

from ledger.errors import InvalidPaymentAmount
from ledger.models.invoice import Invoice, LineItem
from ledger.services.payment_ledger import apply_payment, derive_status, is_status_consistent, pay_in_full


def _invoice(**overrides):
    fields = dict(
        owner_id="o",
        invoice_number="INV-0001",
        client_name="Acme",
        client_email="billing@acme.com",
        client_address="1 Market St",
        issue_date="2030-01-01",
        due_date="2030-01-31",
        items=[
            LineItem(description="Design", quantity=2, rate=50),
            LineItem(description="Hosting", quantity=1, rate=30),
        ],
        tax=8,
    )
    fields.update(overrides)
    return Invoice(**fields)


def test_derive_status():
    assert derive_status(138, 0, "pending") == "paid"
    assert derive_status(50, 88, "pending") == "partially_paid"
    assert derive_status(0, 138, "pending") == "pending"
    assert derive_status(0, 138, "overdue") == "overdue"
    assert derive_status(50, 88, "overdue") == "partially_paid"


def test_full_payment_marks_paid():
    inv = _invoice()
    paid = apply_payment(inv, 138)
    assert paid.amount_paid == 138
    assert paid.balance == 0
    assert paid.status == "paid"


def test_partial_payment_marks_partially_paid():
    paid = apply_payment(_invoice(), 50)
    assert paid.amount_paid == 50
    assert paid.balance == 88
    assert paid.status == "partially_paid"


def test_successive_payments_accumulate():
    inv = apply_payment(_invoice(), 50)
    inv = apply_payment(inv, 38)
    assert inv.amount_paid == 88
    assert inv.status == "partially_paid"
    inv = apply_payment(inv, 50)
    assert inv.balance == 0
    assert inv.status == "paid"


def test_apply_payment_does_not_mutate_input():
    inv = _invoice()
    apply_payment(inv, 50)
    assert inv.amount_paid == 0
    assert inv.balance == 138
    assert inv.status == "pending"


@pytest.mark.parametrize("amount", [0, -5, 138.01, float("nan")])
def test_invalid_amounts_rejected(amount):
    inv = _invoice()
    with pytest.raises(InvalidPaymentAmount):
        apply_payment(inv, amount)
    assert inv.amount_paid == 0
    assert inv.status == "pending"


def test_overpayment_after_partial_rejected():
    inv = apply_payment(_invoice(), 50)
    with pytest.raises(InvalidPaymentAmount) as exc:
        apply_payment(inv, 200)
    assert exc.value.balance == 88
    assert inv.amount_paid == 50
    assert inv.balance == 88


def test_pay_in_full():
    inv = pay_in_full(apply_payment(_invoice(), 50))
    assert inv.amount_paid == 138
    assert inv.status == "paid"
    with pytest.raises(InvalidPaymentAmount):
        pay_in_full(inv)


def test_status_consistency():
    fresh = _invoice()
    assert is_status_consistent(fresh, "pending")
    assert is_status_consistent(fresh, "overdue")
    assert not is_status_consistent(fresh, "partially_paid")
    assert not is_status_consistent(fresh, "paid")
    partial = apply_payment(fresh, 50)
    assert is_status_consistent(partial, "partially_paid")
    assert not is_status_consistent(partial, "pending")
