from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
from datetime import date
from .common import TimeStamped, gen_id
from ledger.services.totals import compute_amount, compute_balance, compute_subtotal, compute_total

InvoiceStatus = Literal["pending", "partially_paid", "paid", "overdue"]
INVOICE_STATUSES = ("pending", "partially_paid", "paid", "overdue")

# camelCase keys from the web client are accepted alongside snake_case
_MODEL_CONFIG = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True, loc_by_alias=False)


class LineItem(BaseModel):
    model_config = _MODEL_CONFIG

    id: str = Field(default_factory=gen_id, frozen=True)
    description: str = ""
    quantity: float = 1.0
    rate: float = 0.0

    # derived, any stored "amount" is ignored on load
    @computed_field
    @property
    def amount(self) -> float:
        return compute_amount(self.quantity, self.rate)


class Invoice(TimeStamped):
    model_config = _MODEL_CONFIG

    id: str = Field(default_factory=gen_id, frozen=True)
    owner_id: str = Field(frozen=True)
    invoice_number: str = Field(frozen=True)

    # client snapshot, not a live reference
    client_id: Optional[str] = None
    client_name: str
    client_email: str
    client_address: str

    issue_date: date
    due_date: date

    items: List[LineItem] = Field(default_factory=list)
    tax: float = 0.0
    amount_paid: float = 0.0
    status: InvoiceStatus = "pending"
    notes: Optional[str] = None

    version: int = 0

    @computed_field
    @property
    def subtotal(self) -> float:
        return compute_subtotal(self.items)

    @computed_field
    @property
    def total(self) -> float:
        return compute_total(self.subtotal, self.tax)

    @computed_field
    @property
    def balance(self) -> float:
        return compute_balance(self.total, self.amount_paid)


class LineItemDraft(BaseModel):
    model_config = _MODEL_CONFIG

    id: Optional[str] = None
    description: str = ""
    quantity: float = 1.0
    rate: float = 0.0


class InvoiceDraft(BaseModel):
    """Caller input for create/update. Money fields are computed, never taken from here."""
    model_config = _MODEL_CONFIG

    client_id: Optional[str] = None
    client_name: str = ""
    client_email: str = ""
    client_address: str = ""

    issue_date: Optional[date] = None
    due_date: Optional[date] = None

    items: List[LineItemDraft] = Field(default_factory=list)
    tax: Optional[float] = None
    notes: Optional[str] = None
    status: Optional[InvoiceStatus] = None
