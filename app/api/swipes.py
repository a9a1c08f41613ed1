"""
Pawmatch — Swipes API

The swipe deck and swipe recording.  A mutual like becomes a match in the
database; clients discover it through ``GET /matches``.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.models.match import Swipe
from app.models.pet import Pet
from app.schemas.match import SwipeCreate, SwipeResponse
from app.schemas.pet import PetResponse
from app.services.swipe_service import SwipeService

router = APIRouter()

_swipe_service = SwipeService()


@router.get(
    "/candidates",
    response_model=list[PetResponse],
    summary="Pets available to swipe on",
)
async def get_candidates(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[Pet]:
    """Every pet that is not the caller's and that none of the caller's pets
    has swiped yet.  409 when the caller has no pet."""
    return unwrap_or_raise(await _swipe_service.get_swipe_profiles(user_id, db))


@router.post(
    "/",
    response_model=SwipeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Like or pass on a pet",
)
async def record_swipe(
    payload: SwipeCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Swipe:
    return unwrap_or_raise(
        await _swipe_service.record_swipe(
            user_id, payload.swiped_pet_id, payload.liked, db
        )
    )
