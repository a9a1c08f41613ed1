from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import Optional


class SitterApplication(BaseModel):
    service_area: str = Field(min_length=2, max_length=100)
    introduction: str = Field(min_length=10, max_length=1000)
    price_per_hour: float = Field(ge=0, le=10000)
    qualifications: Optional[str] = Field(None, max_length=500)
    experience: Optional[str] = None
    availability: Optional[str] = None
    emergency_contact: Optional[str] = None
    has_insurance: bool = False
    has_first_aid: bool = False

    @field_validator(
        "service_area", "introduction", "qualifications",
        "experience", "availability", "emergency_contact",
        mode="before",
    )
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class SitterResponse(BaseModel):
    id: UUID
    full_name: str
    avatar_url: Optional[str] = None
    service_area: str
    introduction: str
    price_per_hour: float
    is_approved: bool
    is_certified: bool
    created_at: datetime


class ReviewResponse(BaseModel):
    id: UUID
    booking_id: UUID
    sitter_id: UUID
    user_id: UUID
    reviewer_name: str
    rating: int
    comment: str
    created_at: datetime


class SitterDetail(SitterResponse):
    qualifications: Optional[str] = None
    experience: Optional[str] = None
    availability: Optional[str] = None
    has_insurance: bool = False
    has_first_aid: bool = False
    average_rating: Optional[float] = None
    review_count: int = 0
    reviews: list[ReviewResponse] = []


class CertificationUpdate(BaseModel):
    is_certified: bool
