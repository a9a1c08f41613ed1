"""
Pawmatch — Users API

Endpoints for creating, reading and updating user profiles.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.models.user import User
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services.user_service import UserService

logger = structlog.get_logger("pawmatch.api.users")

router = APIRouter()

_user_service = UserService()


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Create a new user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user",
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Register a user profile.

    Rejects an email that is already in use with 409.
    """
    return unwrap_or_raise(await _user_service.create_user(payload, db))


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id} — Get user by ID
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user by ID",
)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> User:
    return unwrap_or_raise(await _user_service.get_user(user_id, db))


# ──────────────────────────────────────────────────────────────────────────────
# PUT /{user_id} — Update own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update user profile",
)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Update the caller's own profile fields."""
    if user_id != current_user_id:
        logger.warning(
            "update_user_forbidden",
            user_id=str(user_id),
            current_user_id=str(current_user_id),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only update your own profile.",
        )
    return unwrap_or_raise(await _user_service.update_user(user_id, payload, db))
