"""
Pawmatch — Pets API

CRUD for the caller's pets plus avatar upload.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.models.pet import Pet
from app.schemas.pet import PetCreate, PetResponse, PetUpdate
from app.services.pet_service import PetService

logger = structlog.get_logger("pawmatch.api.pets")

router = APIRouter()

_pet_service = PetService()


@router.get("/", response_model=list[PetResponse], summary="List my pets")
async def list_pets(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[Pet]:
    return unwrap_or_raise(await _pet_service.list_pets(user_id, db))


@router.post(
    "/",
    response_model=PetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a pet",
)
async def create_pet(
    payload: PetCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Pet:
    return unwrap_or_raise(await _pet_service.create_pet(user_id, payload, db))


@router.get("/{pet_id}", response_model=PetResponse, summary="Get a pet")
async def get_pet(
    pet_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Pet:
    return unwrap_or_raise(await _pet_service.get_pet(pet_id, db))


@router.put("/{pet_id}", response_model=PetResponse, summary="Update a pet")
async def update_pet(
    pet_id: uuid.UUID,
    payload: PetUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Pet:
    return unwrap_or_raise(await _pet_service.update_pet(user_id, pet_id, payload, db))


@router.delete(
    "/{pet_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a pet",
)
async def delete_pet(
    pet_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a pet.  Its swipes, matches and messages go with it."""
    unwrap_or_raise(await _pet_service.delete_pet(user_id, pet_id, db))


# ──────────────────────────────────────────────────────────────────────────────
# POST /{pet_id}/avatar — Upload avatar image
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{pet_id}/avatar",
    response_model=PetResponse,
    summary="Upload a pet avatar",
)
async def upload_avatar(
    pet_id: uuid.UUID,
    file: UploadFile = File(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Pet:
    """Upload a JPEG, PNG, WebP or GIF avatar (max 5 MB) to Cloud Storage."""
    log = logger.bind(pet_id=str(pet_id), filename=file.filename)
    log.info("upload_avatar_start", content_type=file.content_type)

    file_bytes = await file.read()
    return unwrap_or_raise(
        await _pet_service.upload_avatar(
            user_id, pet_id, file_bytes, file.content_type or "", db
        )
    )
