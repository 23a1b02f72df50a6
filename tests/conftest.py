from datetime import date

import pytest

from ledger.config import LedgerSettings
from ledger.services.client_service import ClientService
from ledger.services.invoice_service import InvoiceService
from ledger.storage.repo import JsonFileRepository


@pytest.fixture
def settings(tmp_path):
    return LedgerSettings(data_dir=tmp_path, backup_enabled=False)


@pytest.fixture
def repo(tmp_path):
    return JsonFileRepository(tmp_path, backup_enabled=False)


@pytest.fixture
def invoices(repo, settings):
    return InvoiceService(repo, owner_id="owner-1", settings=settings)


@pytest.fixture
def clients(repo):
    return ClientService(repo, owner_id="owner-1")


@pytest.fixture
def draft():
    return {
        "client_name": "Acme Ltd",
        "client_email": "billing@acme.com",
        "client_address": "1 Market St, Nairobi",
        "issue_date": date(2030, 1, 1),
        "due_date": date(2030, 1, 31),
        "items": [
            {"description": "Design work", "quantity": 2, "rate": 50},
            {"description": "Hosting", "quantity": 1, "rate": 30},
        ],
        "tax": 8,
        "status": "pending",
    }
