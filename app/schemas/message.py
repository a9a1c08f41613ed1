from pydantic import BaseModel, field_validator
from uuid import UUID
from datetime import datetime

from app.utils.timeutil import as_utc


class MessageCreate(BaseModel):
    content: str


class MessageRead(BaseModel):
    id: UUID
    match_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
