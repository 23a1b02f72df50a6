# ledger/services/invoice_service.py
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ledger.config import LedgerSettings, get_settings
from ledger.errors import ConcurrentModification, DataValidationError, NotFound, PersistenceError
from ledger.models.common import utc_now
from ledger.models.invoice import INVOICE_STATUSES, Invoice, InvoiceDraft, InvoiceStatus, LineItem
from ledger.services.payment_ledger import apply_payment, derive_status, is_status_consistent
from ledger.storage.repo import InvoiceRepository

logger = logging.getLogger(__name__)

DraftLike = Union[InvoiceDraft, Mapping[str, Any]]


# ---------- Helpers ----------
def _to_draft(draft: DraftLike) -> InvoiceDraft:
    if isinstance(draft, InvoiceDraft):
        return draft
    try:
        return InvoiceDraft.model_validate(dict(draft))
    except ValidationError as e:
        raise DataValidationError.from_pydantic(e, "Invalid invoice data") from e


def _validate_draft(draft: InvoiceDraft) -> None:
    errors: Dict[str, str] = {}
    for field in ("client_name", "client_email", "client_address"):
        if not (getattr(draft, field) or "").strip():
            errors[field] = "This field is required."
    for i, item in enumerate(draft.items):
        if not item.description.strip():
            errors[f"items.{i}.description"] = "Description is required."
    if draft.issue_date and draft.due_date and draft.due_date < draft.issue_date:
        errors["due_date"] = "Due date cannot be before the issue date."
    if errors:
        raise DataValidationError("Invalid invoice data", errors)


def _build_items(draft: InvoiceDraft) -> List[LineItem]:
    out: List[LineItem] = []
    for d in draft.items:
        fields = {"description": d.description.strip(), "quantity": d.quantity, "rate": d.rate}
        if d.id:
            fields["id"] = d.id
        out.append(LineItem(**fields))
    return out


def _check_status(status: str) -> InvoiceStatus:
    if status not in INVOICE_STATUSES:
        raise DataValidationError(f"Unknown invoice status {status!r}", {"status": "Unknown status."})
    return status  # type: ignore[return-value]


# ---------- Service ----------
class InvoiceService:
    """Create, edit, pay and delete one owner's invoices.

    Each call reads fresh state from the repository, works on a local copy
    and writes it back. Writes after a read are version-checked, so a stale
    read ends in ``ConcurrentModification`` rather than a lost update.
    """

    def __init__(self, repo: InvoiceRepository, owner_id: str, settings: Optional[LedgerSettings] = None):
        self.repo = repo
        self.owner_id = owner_id
        self.settings = settings or get_settings()

    # ----------- read -----------
    def list_invoices(self) -> List[Invoice]:
        out: List[Invoice] = []
        for d in self.repo.list_invoices(self.owner_id):
            try:
                out.append(Invoice.model_validate(d))
            except ValidationError as e:
                # skip broken records rather than hide every other invoice
                logger.warning("Skipping unreadable invoice %s: %s", d.get("id"), e)
        out.sort(key=lambda inv: (inv.created_at, inv.invoice_number), reverse=True)
        return out

    def get(self, invoice_id: str) -> Invoice:
        d = self.repo.get_invoice(invoice_id)
        if d.get("owner_id") != self.owner_id:
            raise NotFound("invoice", invoice_id)
        try:
            return Invoice.model_validate(d)
        except ValidationError as e:
            raise PersistenceError(f"Stored invoice {invoice_id} is unreadable: {e}") from e

    # ----------- create / update -----------
    def create(self, draft: DraftLike) -> Invoice:
        dr = _to_draft(draft)
        issue_date = dr.issue_date or date.today()
        due_date = dr.due_date or issue_date + timedelta(days=self.settings.payment_terms_days)
        dr = dr.model_copy(update={"issue_date": issue_date, "due_date": due_date})
        _validate_draft(dr)

        inv = Invoice(
            owner_id=self.owner_id,
            invoice_number="",
            client_id=dr.client_id,
            client_name=dr.client_name.strip(),
            client_email=dr.client_email.strip(),
            client_address=dr.client_address.strip(),
            issue_date=issue_date,
            due_date=due_date,
            items=_build_items(dr),
            tax=self.settings.default_tax if dr.tax is None else dr.tax,
            amount_paid=0.0,
            status=dr.status or self.settings.default_status,
            notes=self.settings.default_notes if dr.notes is None else dr.notes,
        )
        # status rule applies before a number is issued
        self._ensure_settable(inv, inv.status)

        seq = self.repo.next_invoice_sequence(self.owner_id)
        inv = inv.model_copy(update={"invoice_number": f"{self.settings.invoice_prefix}-{seq:04d}"})
        stored = Invoice.model_validate(self.repo.create_invoice(inv.model_dump(mode="json")))
        logger.info("Created invoice %s (%s) total=%s", stored.invoice_number, stored.id, stored.total)
        return stored

    def update(self, invoice_id: str, draft: DraftLike, expected_version: Optional[int] = None) -> Invoice:
        dr = _to_draft(draft)
        current = self.get(invoice_id)
        dr = dr.model_copy(update={
            "issue_date": dr.issue_date or current.issue_date,
            "due_date": dr.due_date or current.due_date,
        })
        _validate_draft(dr)

        # amount_paid is kept, so balance follows the new total
        updated = current.model_copy(update={
            "client_id": dr.client_id,
            "client_name": dr.client_name.strip(),
            "client_email": dr.client_email.strip(),
            "client_address": dr.client_address.strip(),
            "issue_date": dr.issue_date,
            "due_date": dr.due_date,
            "items": _build_items(dr),
            "tax": current.tax if dr.tax is None else dr.tax,
            "notes": dr.notes,
            "updated_at": utc_now(),
        })
        if dr.status is not None and dr.status != current.status:
            self._ensure_settable(updated, dr.status)
            updated = updated.model_copy(update={"status": dr.status})

        version = current.version if expected_version is None else expected_version
        stored = self._write(updated, version)
        logger.info("Updated invoice %s total=%s balance=%s", stored.invoice_number, stored.total, stored.balance)
        return stored

    # ----------- status -----------
    def _ensure_settable(self, inv: Invoice, status: InvoiceStatus) -> None:
        # partially_paid only when the money fields say so
        if status == "partially_paid" and derive_status(inv.amount_paid, inv.balance, "pending") != "partially_paid":
            raise DataValidationError(
                "An invoice can only be partially paid through a payment",
                {"status": "Record a payment instead."},
            )

    def update_status(self, invoice_id: str, status: str) -> Invoice:
        st = _check_status(status)
        inv = self.get(invoice_id)
        self._ensure_settable(inv, st)
        stored = self._write(inv.model_copy(update={"status": st, "updated_at": utc_now()}), inv.version)
        logger.info("Invoice %s status %s -> %s", inv.invoice_number, inv.status, st)
        return stored

    def force_status(self, invoice_id: str, status: str) -> Invoice:
        """Set any status, even one the payment fields contradict."""
        st = _check_status(status)
        inv = self.get(invoice_id)
        if not is_status_consistent(inv, st):
            logger.warning(
                "Forcing invoice %s to %s with amount_paid=%s balance=%s",
                inv.invoice_number, st, inv.amount_paid, inv.balance,
            )
        return self._write(inv.model_copy(update={"status": st, "updated_at": utc_now()}), inv.version)

    def mark_overdue(self, as_of: Optional[date] = None) -> List[Invoice]:
        """Flag open invoices past their due date. Only runs when called.

        An invoice changed by another writer during the sweep is left alone
        and picked up by the next run.
        """
        as_of = as_of or date.today()
        flagged: List[Invoice] = []
        for inv in self.list_invoices():
            if inv.status not in ("pending", "partially_paid") or inv.balance <= 0 or inv.due_date >= as_of:
                continue
            try:
                flagged.append(
                    self._write(inv.model_copy(update={"status": "overdue", "updated_at": utc_now()}), inv.version)
                )
            except ConcurrentModification as e:
                logger.warning("Skipping invoice %s in overdue sweep: %s", inv.invoice_number, e)
        if flagged:
            logger.info("Marked %d invoice(s) overdue as of %s", len(flagged), as_of.isoformat())
        return flagged

    # ----------- payments -----------
    def add_payment(self, invoice_id: str, amount: float) -> Invoice:
        inv = self.get(invoice_id)
        paid = apply_payment(inv, amount)
        stored = self._write(paid, inv.version)
        logger.info(
            "Payment of %s on invoice %s: paid=%s balance=%s status=%s",
            amount, stored.invoice_number, stored.amount_paid, stored.balance, stored.status,
        )
        return stored

    # ----------- delete -----------
    def delete(self, invoice_id: str) -> None:
        inv = self.get(invoice_id)
        self.repo.delete_invoice(inv.id)
        logger.info("Deleted invoice %s (%s)", inv.invoice_number, inv.id)

    # ----------- persistence -----------
    def _write(self, inv: Invoice, expected_version: int) -> Invoice:
        patch = inv.model_dump(mode="json", exclude={"id", "owner_id", "invoice_number", "created_at", "version"})
        return Invoice.model_validate(self.repo.update_invoice(inv.id, patch, expected_version=expected_version))
