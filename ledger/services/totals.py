"""Pure money arithmetic for invoices.

Plain floats in, plain floats out. No rounding and no input checks: negative
quantities, rates or tax flow through the arithmetic unchanged.
"""
from __future__ import annotations
from typing import Iterable, Protocol


class _HasAmount(Protocol):
    @property
    def amount(self) -> float: ...


def compute_amount(quantity: float, rate: float) -> float:
    return quantity * rate


def compute_subtotal(items: Iterable[_HasAmount]) -> float:
    return sum((it.amount for it in items), 0.0)


def compute_total(subtotal: float, tax: float) -> float:
    return subtotal + tax


def compute_balance(total: float, amount_paid: float) -> float:
    return max(0.0, total - amount_paid)
