import pytest

from ledger.models.invoice import Invoice, LineItem
from ledger.services.totals import compute_amount, compute_balance, compute_subtotal, compute_total


def _items(*pairs):
    return [LineItem(description=f"item {i}", quantity=q, rate=r) for i, (q, r) in enumerate(pairs)]


def test_compute_amount_basic():
    assert compute_amount(2, 50) == 100
    assert compute_amount(1.5, 40) == 60
    assert compute_amount(0, 99) == 0


def test_compute_amount_propagates_negative_inputs():
    assert compute_amount(-2, 10) == -20
    assert compute_amount(3, -1) == -3


def test_compute_subtotal_empty_is_zero():
    assert compute_subtotal([]) == 0


def test_compute_subtotal_and_total():
    items = _items((2, 50), (1, 30))
    subtotal = compute_subtotal(items)
    assert subtotal == 130
    assert compute_total(subtotal, 8) == 138
    # pure: same input, same output
    assert compute_subtotal(items) == subtotal
    assert compute_total(subtotal, 8) == compute_total(subtotal, 8)


def test_compute_balance_never_negative():
    assert compute_balance(138, 50) == 88
    assert compute_balance(138, 138) == 0
    assert compute_balance(100, 150) == 0


def test_line_item_amount_follows_quantity_and_rate():
    item = LineItem(description="Consulting", quantity=2, rate=50)
    assert item.amount == 100
    item.quantity = 3
    assert item.amount == 150
    item.rate = 10
    assert item.amount == 30


def test_line_item_amount_cannot_be_set_or_loaded():
    item = LineItem.model_validate({"description": "x", "quantity": 2, "rate": 5, "amount": 999})
    assert item.amount == 10
    with pytest.raises((AttributeError, ValueError)):
        item.amount = 1


def test_line_item_keeps_supplied_id():
    item = LineItem.model_validate({"id": "abc", "description": "x", "quantity": 1, "rate": 2})
    assert item.id == "abc"
    assert item.model_dump()["amount"] == 2


def test_invoice_derived_fields():
    inv = Invoice(
        owner_id="o",
        invoice_number="INV-0001",
        client_name="A",
        client_email="a@b.com",
        client_address="x",
        issue_date="2030-01-01",
        due_date="2030-01-31",
        items=_items((2, 50), (1, 30)),
        tax=8,
        amount_paid=50,
    )
    assert inv.subtotal == 130
    assert inv.total == inv.subtotal + inv.tax == 138
    assert inv.balance == 88
    dumped = inv.model_dump(mode="json")
    assert dumped["total"] == 138
    assert dumped["balance"] == 88
    assert dumped["items"][0]["amount"] == 100
