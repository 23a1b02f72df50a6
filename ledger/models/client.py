from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from .common import gen_id, utc_now
from datetime import datetime

class Client(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True, loc_by_alias=False)

    id: str = Field(default_factory=gen_id, frozen=True)
    owner_id: str = Field(frozen=True)
    name: str = Field(min_length=1)
    email: EmailStr
    address: str = Field(min_length=1)
    company: str | None = None
    phone: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def snapshot(self) -> dict:
        """Fields copied onto an invoice draft."""
        return {
            "client_id": self.id,
            "client_name": self.name,
            "client_email": str(self.email),
            "client_address": self.address,
        }
