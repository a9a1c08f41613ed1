"""
Pawmatch — Pet Service

Owner-facing pet management: create, list, update and delete pets, and
attach an avatar stored in Cloud Storage.  Also exposes
:func:`owned_pet_ids`, the "which pets are mine" lookup the swipe, match
and chat flows are built on.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import (
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from app.models.pet import Pet
from app.schemas.pet import PetCreate, PetUpdate
from app.services.results import ServiceResult
from app.utils import storage

logger = structlog.get_logger("pawmatch.pet_service")

_AVATAR_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


async def owned_pet_ids(db_session: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    """Ids of every pet owned by ``user_id`` (oldest first)."""
    stmt = (
        select(Pet.id)
        .where(Pet.owner_id == user_id)
        .order_by(Pet.created_at, Pet.id)
    )
    result = await db_session.execute(stmt)
    return list(result.scalars().all())


class PetService:
    """CRUD over the ``pets`` table, scoped to the owning user."""

    async def create_pet(
        self,
        owner_id: uuid.UUID,
        payload: PetCreate,
        db_session: AsyncSession,
    ) -> ServiceResult[Pet]:
        log = logger.bind(owner_id=str(owner_id))
        pet = Pet(owner_id=owner_id, **payload.model_dump())
        try:
            db_session.add(pet)
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("create_pet_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("pet_created", pet_id=str(pet.id))
        return ServiceResult.success(pet)

    async def list_pets(
        self,
        owner_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[list[Pet]]:
        stmt = (
            select(Pet)
            .where(Pet.owner_id == owner_id)
            .order_by(Pet.created_at, Pet.id)
        )
        try:
            result = await db_session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.exception("list_pets_failed", owner_id=str(owner_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        return ServiceResult.success(list(result.scalars().all()))

    async def get_pet(
        self,
        pet_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[Pet]:
        try:
            pet = await db_session.get(Pet, pet_id)
        except SQLAlchemyError as exc:
            logger.exception("get_pet_failed", pet_id=str(pet_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        if pet is None:
            return ServiceResult.failure(NotFoundError(f"Pet {pet_id} not found."))
        return ServiceResult.success(pet)

    async def _get_owned(
        self,
        owner_id: uuid.UUID,
        pet_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[Pet]:
        found = await self.get_pet(pet_id, db_session)
        if not found.ok:
            return found
        if found.value.owner_id != owner_id:
            logger.warning(
                "pet_access_denied", pet_id=str(pet_id), user_id=str(owner_id)
            )
            return ServiceResult.failure(
                PermissionDeniedError("Only the owner can modify this pet.")
            )
        return found

    async def update_pet(
        self,
        owner_id: uuid.UUID,
        pet_id: uuid.UUID,
        payload: PetUpdate,
        db_session: AsyncSession,
    ) -> ServiceResult[Pet]:
        found = await self._get_owned(owner_id, pet_id, db_session)
        if not found.ok:
            return found
        pet = found.value

        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(pet, field, value)

        try:
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.exception("update_pet_failed", pet_id=str(pet_id))
            return ServiceResult.failure(PersistenceError(cause=exc))

        logger.info("pet_updated", pet_id=str(pet_id))
        return ServiceResult.success(pet)

    async def delete_pet(
        self,
        owner_id: uuid.UUID,
        pet_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[None]:
        found = await self._get_owned(owner_id, pet_id, db_session)
        if not found.ok:
            return ServiceResult.failure(found.error)

        try:
            await db_session.delete(found.value)
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.exception("delete_pet_failed", pet_id=str(pet_id))
            return ServiceResult.failure(PersistenceError(cause=exc))

        logger.info("pet_deleted", pet_id=str(pet_id))
        return ServiceResult.success(None)

    async def upload_avatar(
        self,
        owner_id: uuid.UUID,
        pet_id: uuid.UUID,
        file_bytes: bytes,
        content_type: str,
        db_session: AsyncSession,
    ) -> ServiceResult[Pet]:
        """Store an avatar image and point ``pet.avatar_url`` at it.

        The previous avatar object, if any, is removed after the new one is
        saved.
        """
        settings = get_settings()

        extension = _AVATAR_EXTENSIONS.get(content_type)
        if extension is None:
            return ServiceResult.failure(
                InvalidInputError(f"Unsupported avatar type {content_type!r}.")
            )
        if not file_bytes:
            return ServiceResult.failure(InvalidInputError("Avatar file is empty."))
        if len(file_bytes) > settings.AVATAR_MAX_BYTES:
            return ServiceResult.failure(
                InvalidInputError(
                    f"Avatar exceeds {settings.AVATAR_MAX_BYTES} bytes."
                )
            )

        found = await self._get_owned(owner_id, pet_id, db_session)
        if not found.ok:
            return found
        pet = found.value

        path = f"{settings.AVATAR_PREFIX}{pet_id}/{uuid.uuid4().hex}.{extension}"
        try:
            url = await asyncio.to_thread(
                storage.upload_file, path, file_bytes, content_type
            )
        except Exception as exc:
            logger.exception("avatar_upload_failed", pet_id=str(pet_id))
            return ServiceResult.failure(PersistenceError("Avatar upload failed.", cause=exc))

        previous = pet.avatar_url
        pet.avatar_url = url
        try:
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.exception("avatar_save_failed", pet_id=str(pet_id))
            return ServiceResult.failure(PersistenceError(cause=exc))

        if previous:
            old_path = storage.object_path_from_url(previous)
            if old_path:
                try:
                    await asyncio.to_thread(storage.delete_file, old_path)
                except Exception:
                    logger.warning("old_avatar_delete_failed", path=old_path)

        logger.info("avatar_uploaded", pet_id=str(pet_id), bytes=len(file_bytes))
        return ServiceResult.success(pet)
