from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError

from ledger.errors import DataValidationError, NotFound, PersistenceError
from ledger.models.client import Client
from ledger.storage.repo import InvoiceRepository

logger = logging.getLogger(__name__)

# owner_id and id are never taken from caller data
_PROTECTED = ("id", "owner_id", "ownerId", "created_at", "createdAt")


class ClientService:
    """Client records of one owner.

    Invoices keep their own copy of the client fields, so nothing here ever
    touches an invoice.
    """

    def __init__(self, repo: InvoiceRepository, owner_id: str):
        self.repo = repo
        self.owner_id = owner_id

    def list_clients(self) -> List[Client]:
        out: List[Client] = []
        for d in self.repo.list_clients(self.owner_id):
            try:
                out.append(Client.model_validate(d))
            except ValidationError:
                # ignore broken entries instead of failing the whole list
                logger.warning("Skipping unreadable client %s", d.get("id"))
                continue
        out.sort(key=lambda c: c.created_at, reverse=True)
        return out

    def get(self, client_id: str) -> Client:
        d = self.repo.get_client(client_id)
        if d.get("owner_id") != self.owner_id:
            raise NotFound("client", client_id)
        try:
            return Client.model_validate(d)
        except ValidationError as e:
            raise PersistenceError(f"Stored client {client_id} is unreadable: {e}") from e

    def add_client(self, data: Union[Client, Mapping[str, Any]]) -> Client:
        """Store a new client for this owner.

        The stored client always gets a fresh ``id`` and this service's
        ``owner_id``, also when ``data`` is a ``Client`` that carries its own.
        """
        fields = data.model_dump() if isinstance(data, Client) else dict(data)
        client = self._validated({k: v for k, v in fields.items() if k not in _PROTECTED})
        stored = Client.model_validate(self.repo.create_client(client.model_dump(mode="json")))
        logger.info("Added client %s (%s)", stored.name, stored.id)
        return stored

    def update_client(self, client_id: str, data: Mapping[str, Any]) -> Client:
        current = self.get(client_id)
        merged: Dict[str, Any] = current.model_dump()
        merged.update({k: v for k, v in dict(data).items() if k not in _PROTECTED})
        client = self._validated({**merged, "id": current.id, "created_at": current.created_at})
        stored = Client.model_validate(self.repo.update_client(client_id, client.model_dump(mode="json")))
        logger.info("Updated client %s (%s)", stored.name, stored.id)
        return stored

    def delete_client(self, client_id: str) -> None:
        self.get(client_id)
        self.repo.delete_client(client_id)
        logger.info("Deleted client %s", client_id)

    def snapshot(self, client_id: str) -> Dict[str, str]:
        return self.get(client_id).snapshot()

    def _validated(self, fields: Dict[str, Any]) -> Client:
        fields = {k: v.strip() if isinstance(v, str) else v for k, v in fields.items()}
        try:
            return Client(**{**fields, "owner_id": self.owner_id})
        except ValidationError as e:
            raise DataValidationError.from_pydantic(e, "Invalid client data") from e
