"""
Pawmatch — Matches API
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.schemas.match import MatchListing, ResolvedMatch
from app.services.match_service import MatchService

router = APIRouter()

_match_service = MatchService()


@router.get("/", response_model=MatchListing, summary="List my matches")
async def list_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MatchListing:
    """Matches involving any of the caller's pets, newest first, each with
    the caller's side resolved as ``mine`` / ``other``."""
    return unwrap_or_raise(await _match_service.get_matches(user_id, db))


@router.get("/{match_id}", response_model=ResolvedMatch, summary="Get one match")
async def get_match(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ResolvedMatch:
    return unwrap_or_raise(await _match_service.get_match(user_id, match_id, db))
