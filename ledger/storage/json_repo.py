from __future__ import annotations

import glob
import json
import logging
import shutil
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from ledger.errors import NotFound, PersistenceError

logger = logging.getLogger(__name__)


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


class JsonRepository:
    """
    Generic JSON-file record store keyed on a configurable primary key.
    - One list of records per file, rewritten whole on every change
    - Rotating backups (backup_enabled, backup_keep)
    - Does not rewrite the file when the content is unchanged
    - ``transaction()`` holds the lock across a read-modify-write
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        entity_name: str = "entity",
        key: str = "id",
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self._lock = threading.RLock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))

        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            if not self.filepath.exists():
                self._write_raw([])
        except OSError as e:
            raise PersistenceError(f"Cannot initialise {self.filepath}: {e}") from e

    # ---------------- Low-level I/O ---------------- #

    def _read_raw(self) -> List[Dict[str, Any]]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except json.JSONDecodeError:
            return self._set_aside("Corrupt")
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.filepath}: {e}") from e
        if not isinstance(data, list):
            return self._set_aside("Non-list")
        return data

    def _set_aside(self, reason: str) -> List[Dict[str, Any]]:
        # keep a copy of the unusable file and start from an empty list
        backup = self.filepath.with_suffix(".corrupt.json")
        logger.warning("%s %s file %s, copied to %s", reason, self.entity_name, self.filepath, backup)
        try:
            shutil.copy2(self.filepath, backup)
        except OSError as e:
            raise PersistenceError(f"Cannot back up unusable file {self.filepath}: {e}") from e
        return []

    def _backup_files(self) -> List[str]:
        return sorted(glob.glob(str(self.filepath.with_suffix(".*.bak.json"))))

    def _rotate_backups(self) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        files = self._backup_files()
        # keep the most recent ones
        for old in files[: max(0, len(files) - self.backup_keep)]:
            try:
                Path(old).unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove old backup %s: %s", old, e)

    def _write_raw(self, data: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            new_dump = json.dumps(list(data), ensure_ascii=False, indent=2, default=_json_default)

            try:
                # identical content -> nothing to do
                if self.filepath.exists() and self.filepath.read_text(encoding="utf-8") == new_dump:
                    return

                if self.backup_enabled and self.backup_keep > 0 and self.filepath.exists():
                    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                    shutil.copy2(self.filepath, self.filepath.with_suffix(f".{ts}.bak.json"))
                    self._rotate_backups()

                tmp = self.filepath.with_suffix(".tmp")
                tmp.write_text(new_dump, encoding="utf-8")
                tmp.replace(self.filepath)
            except OSError as e:
                raise PersistenceError(f"Cannot write {self.filepath}: {e}") from e

    # ---------------- Helpers ---------------- #

    @staticmethod
    def _to_dict(item: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        return dict(item)

    def _index_of_key(self, data: List[Dict[str, Any]], key_value: Any) -> int:
        for i, d in enumerate(data):
            if str(d.get(self.key)) == str(key_value):
                return i
        return -1

    @contextmanager
    def transaction(self) -> Iterator[List[Dict[str, Any]]]:
        """Yield the records under the lock and write them back on success."""
        with self._lock:
            data = self._read_raw()
            yield data
            self._write_raw(data)

    # ---------------- CRUD ---------------- #

    def list_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._read_raw()

    def get_by_id(self, obj_id: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._read_raw()
        idx = self._index_of_key(data, obj_id)
        return data[idx] if idx >= 0 else None

    def add(self, item: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
        record = self._to_dict(item)
        k = self.key
        if not record.get(k):
            record[k] = uuid4().hex
        with self.transaction() as data:
            if self._index_of_key(data, record[k]) >= 0:
                raise PersistenceError(f"{self.entity_name} with {k}={record[k]} already exists")
            data.append(record)
        return record

    def update(self, obj_id: Any, changes: Union[BaseModel, Mapping[str, Any]],
               check: Optional[Callable[[Dict[str, Any]], Optional[Mapping[str, Any]]]] = None) -> Dict[str, Any]:
        """Merge ``changes`` into the stored record.

        ``check`` runs against the stored record inside the lock, before the
        merge. Raising from it aborts the update without writing; a mapping it
        returns is merged on top of ``changes``.
        """
        patch = self._to_dict(changes)
        with self.transaction() as data:
            idx = self._index_of_key(data, obj_id)
            if idx < 0:
                raise NotFound(self.entity_name, obj_id)
            extra = check(data[idx]) if check is not None else None
            merged = {**data[idx], **patch, **(extra or {}), self.key: data[idx][self.key]}
            data[idx] = merged
        return merged

    def delete(self, obj_id: Any) -> None:
        with self.transaction() as data:
            idx = self._index_of_key(data, obj_id)
            if idx < 0:
                raise NotFound(self.entity_name, obj_id)
            data.pop(idx)

    # ---------------- Lookups ---------------- #

    def find(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [r for r in self.list_all() if predicate(r)]

    def find_one(self, predicate: Callable[[Dict[str, Any]], bool]) -> Optional[Dict[str, Any]]:
        for r in self.list_all():
            if predicate(r):
                return r
        return None
