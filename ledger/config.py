"""Ledger configuration.

Defaults, then ``<data_dir>/settings.json``, then ``LEDGER_*`` environment
variables. ``settings.json`` may hold the invoice keys at top level or under
an ``"invoice"`` section.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ledger.errors import DataValidationError
from ledger.models.invoice import InvoiceStatus

logger = logging.getLogger(__name__)


def default_data_dir() -> Path:
    return Path.cwd() / "data"


ENV_OVERRIDES = {
    "LEDGER_DATA_DIR": "data_dir",
    "LEDGER_INVOICE_PREFIX": "invoice_prefix",
    "LEDGER_LOG_LEVEL": "log_level",
    "LEDGER_LOG_FILE": "log_file",
}


class LedgerSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data_dir: Path = Field(default_factory=default_data_dir)

    # numbering: "<prefix>-0001"
    invoice_prefix: str = Field(default="INV", min_length=1)

    default_status: InvoiceStatus = "pending"
    payment_terms_days: int = Field(default=30, ge=0)
    default_tax: float = 0.0
    default_notes: Optional[str] = "Thank you for your business!"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    backup_enabled: bool = True
    backup_keep: int = Field(default=5, ge=0)


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        return {}
    section = data.get("invoice")
    if isinstance(section, dict):
        data = {**data, **section}
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> LedgerSettings:
    env = {field: os.environ[var] for var, field in ENV_OVERRIDES.items() if os.environ.get(var)}

    data_dir = Path(env.get("data_dir") or default_data_dir())
    settings_file = Path(path) if path else data_dir / "settings.json"

    values: Dict[str, Any] = _load_json(settings_file)
    values.update(env)
    values.setdefault("data_dir", data_dir)
    try:
        return LedgerSettings(**values)
    except ValidationError as e:
        raise DataValidationError.from_pydantic(e, f"Invalid settings in {settings_file}") from e


_settings_instance: Optional[LedgerSettings] = None


def get_settings() -> LedgerSettings:
    """Return a singleton LedgerSettings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = load_settings()
    return _settings_instance


def reset_settings() -> None:
    global _settings_instance
    _settings_instance = None
