from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import date, datetime
from typing import Optional


class PetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    species: str = Field(min_length=1)
    breed: Optional[str] = Field(None, max_length=50)
    birth_date: Optional[date] = None
    age: Optional[int] = Field(None, ge=0, le=30)
    gender: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "species", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("breed", "gender", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        # Blank optional fields are stored as NULL.
        if isinstance(v, str):
            return v.strip() or None
        return v


class PetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    species: Optional[str] = Field(None, min_length=1)
    breed: Optional[str] = Field(None, max_length=50)
    birth_date: Optional[date] = None
    age: Optional[int] = Field(None, ge=0, le=30)
    gender: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "species", "breed", "gender", "notes", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class PetResponse(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    species: str
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    avatar_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
