from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

from app.utils.timeutil import as_utc


class BookingCreate(BaseModel):
    sitter_id: UUID
    start_time: datetime
    end_time: datetime
    pet_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    sitter_id: UUID
    pet_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    total_hours: float
    total_price: float
    status: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: Literal["confirmed", "in_progress", "completed", "cancelled"]


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field("", max_length=1000)
