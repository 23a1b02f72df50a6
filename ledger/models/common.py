from __future__ import annotations
from pydantic import BaseModel, Field
from datetime import datetime, timezone
import uuid

def gen_id() -> str:
    return str(uuid.uuid4())

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class TimeStamped(BaseModel):
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def touch(self):
        object.__setattr__(self, "updated_at", utc_now())
