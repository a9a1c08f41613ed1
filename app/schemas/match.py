from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

from app.schemas.pet import PetResponse


class SwipeCreate(BaseModel):
    swiped_pet_id: UUID
    liked: bool


class SwipeResponse(BaseModel):
    id: UUID
    swiper_pet_id: UUID
    swiped_pet_id: UUID
    liked: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ResolvedMatch(BaseModel):
    """A match joined to both pets, with the caller's side resolved."""

    id: UUID
    pet1_id: UUID
    pet2_id: UUID
    created_at: datetime
    pet1: PetResponse
    pet2: PetResponse
    mine: PetResponse
    other: PetResponse


class MatchListing(BaseModel):
    matches: list[ResolvedMatch] = []
    user_pet_ids: list[UUID] = []
