from __future__ import annotations

import abc
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ledger.config import LedgerSettings, get_settings
from ledger.errors import ConcurrentModification, NotFound
from ledger.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class InvoiceRepository(abc.ABC):
    """Storage backend the ledger talks to.

    Records are plain dicts (the JSON form of the models). Single-record
    reads and writes are expected to be atomic; ``update_invoice`` with an
    ``expected_version`` is a compare-and-swap on the ``version`` field and
    ``next_invoice_sequence`` must never hand out the same number twice.
    """

    @abc.abstractmethod
    def list_invoices(self, owner_id: str) -> List[Record]: ...

    @abc.abstractmethod
    def get_invoice(self, invoice_id: str) -> Record:
        """Raise ``NotFound`` when missing."""

    @abc.abstractmethod
    def create_invoice(self, record: Record) -> Record: ...

    @abc.abstractmethod
    def update_invoice(self, invoice_id: str, patch: Mapping[str, Any],
                       expected_version: Optional[int] = None) -> Record: ...

    @abc.abstractmethod
    def delete_invoice(self, invoice_id: str) -> None: ...

    @abc.abstractmethod
    def next_invoice_sequence(self, owner_id: str) -> int: ...

    @abc.abstractmethod
    def list_clients(self, owner_id: str) -> List[Record]: ...

    @abc.abstractmethod
    def get_client(self, client_id: str) -> Record: ...

    @abc.abstractmethod
    def create_client(self, record: Record) -> Record: ...

    @abc.abstractmethod
    def update_client(self, client_id: str, patch: Mapping[str, Any]) -> Record: ...

    @abc.abstractmethod
    def delete_client(self, client_id: str) -> None: ...


class JsonFileRepository(InvoiceRepository):
    """invoices.json / clients.json / counters.json under one data directory."""

    def __init__(self, data_dir: Union[str, Path], *, backup_enabled: bool = True, backup_keep: int = 5) -> None:
        base = Path(data_dir)
        opts = {"backup_enabled": backup_enabled, "backup_keep": backup_keep}
        self.invoices = JsonRepository(base / "invoices.json", entity_name="invoice", key="id", **opts)
        self.clients = JsonRepository(base / "clients.json", entity_name="client", key="id", **opts)
        # counters are tiny and rewritten on every create, no backups
        self.counters = JsonRepository(base / "counters.json", entity_name="counter", key="owner_id",
                                       backup_enabled=False)

    @classmethod
    def from_settings(cls, settings: Optional[LedgerSettings] = None) -> "JsonFileRepository":
        settings = settings or get_settings()
        return cls(settings.data_dir, backup_enabled=settings.backup_enabled, backup_keep=settings.backup_keep)

    # ---------- invoices ----------
    def list_invoices(self, owner_id: str) -> List[Record]:
        return self.invoices.find(lambda d: d.get("owner_id") == owner_id)

    def get_invoice(self, invoice_id: str) -> Record:
        rec = self.invoices.get_by_id(invoice_id)
        if rec is None:
            raise NotFound("invoice", invoice_id)
        return rec

    def create_invoice(self, record: Record) -> Record:
        return self.invoices.add({**record, "version": 1})

    def update_invoice(self, invoice_id: str, patch: Mapping[str, Any],
                       expected_version: Optional[int] = None) -> Record:
        def _check(stored: Record) -> Record:
            actual = int(stored.get("version") or 0)
            if expected_version is not None and actual != expected_version:
                raise ConcurrentModification("invoice", invoice_id, expected_version, actual)
            return {"version": actual + 1}

        fields = {k: v for k, v in patch.items() if k not in ("id", "version")}
        return self.invoices.update(invoice_id, fields, check=_check)

    def delete_invoice(self, invoice_id: str) -> None:
        self.invoices.delete(invoice_id)

    def next_invoice_sequence(self, owner_id: str) -> int:
        with self.counters.transaction() as rows:
            for row in rows:
                if row.get("owner_id") == owner_id:
                    row["next"] = int(row.get("next") or 1)
                    break
            else:
                # first number for this owner follows whatever already exists
                existing = len(self.list_invoices(owner_id))
                row = {"owner_id": owner_id, "next": existing + 1}
                rows.append(row)
            value = row["next"]
            row["next"] = value + 1
        logger.debug("Issued invoice sequence %s for owner %s", value, owner_id)
        return value

    # ---------- clients ----------
    def list_clients(self, owner_id: str) -> List[Record]:
        return self.clients.find(lambda d: d.get("owner_id") == owner_id)

    def get_client(self, client_id: str) -> Record:
        rec = self.clients.get_by_id(client_id)
        if rec is None:
            raise NotFound("client", client_id)
        return rec

    def create_client(self, record: Record) -> Record:
        return self.clients.add(record)

    def update_client(self, client_id: str, patch: Mapping[str, Any]) -> Record:
        return self.clients.update(client_id, patch)

    def delete_client(self, client_id: str) -> None:
        self.clients.delete(client_id)
