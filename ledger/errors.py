from __future__ import annotations
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for every error raised by the invoice ledger."""


class DataValidationError(LedgerError, ValueError):
    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        # field -> message, for inline display next to the form field
        self.errors: Dict[str, str] = dict(errors or {})

    @classmethod
    def from_pydantic(cls, exc: Any, message: str = "Invalid data") -> "DataValidationError":
        errors: Dict[str, str] = {}
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "__root__"
            errors.setdefault(loc, err.get("msg", "invalid value"))
        return cls(message, errors)


class InvalidPaymentAmount(LedgerError, ValueError):
    def __init__(self, amount: float, balance: float) -> None:
        super().__init__(f"Invalid payment amount {amount!r} (balance due: {balance!r})")
        self.amount = amount
        self.balance = balance


class NotFound(LedgerError, LookupError):
    def __init__(self, entity: str, key: Any) -> None:
        super().__init__(f"{entity} with id={key} not found")
        self.entity = entity
        self.key = key


class PersistenceError(LedgerError):
    """The storage backend failed; raised from the original exception."""


class ConcurrentModification(PersistenceError):
    def __init__(self, entity: str, key: Any, expected: int, actual: int) -> None:
        super().__init__(
            f"{entity} with id={key} was modified concurrently (expected version {expected}, found {actual})"
        )
        self.entity = entity
        self.key = key
        self.expected = expected
        self.actual = actual
