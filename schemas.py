from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


# Attributes are snake_case in Python and camelCase on the wire.
class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int = Field(..., ge=1, description="Identifier, unique within its collection")
    created_at: datetime = Field(default_factory=utcnow, description="Creation time")
    updated_at: Optional[datetime] = Field(None, description="Time of the last update")

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(Record):
    name: str = Field(..., min_length=1, description="Full name")
    email: str = Field(..., description="Email address, stored lowercase")
    role: Role = Field(Role.USER, description="user role: admin | user")


class Product(Record):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Price in dollars")
    category: str = Field(..., min_length=1)
    in_stock: bool = True
    description: str = ""
