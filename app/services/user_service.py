"""
Pawmatch — User profiles.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError, PersistenceError
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.user_service")


class UserService:

    async def create_user(
        self,
        payload: UserCreate,
        db_session: AsyncSession,
        user_id: uuid.UUID | None = None,
    ) -> ServiceResult[User]:
        """Mirror a newly registered identity.  ``user_id`` is the id issued
        by the auth provider, when there is one."""
        log = logger.bind(email=payload.email)

        try:
            existing = await db_session.execute(
                select(User.id).where(User.email == payload.email)
            )
            if existing.scalar_one_or_none() is not None:
                log.warning("create_user_duplicate_email")
                return ServiceResult.failure(
                    ConflictError("A user with this email already exists.")
                )

            user = User(id=user_id or uuid.uuid4(), **payload.model_dump())
            db_session.add(user)
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("create_user_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("user_created", user_id=str(user.id))
        return ServiceResult.success(user)

    async def get_user(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[User]:
        try:
            user = await db_session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.exception("get_user_failed", user_id=str(user_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        if user is None:
            return ServiceResult.failure(NotFoundError(f"User {user_id} not found."))
        return ServiceResult.success(user)

    async def update_user(
        self,
        user_id: uuid.UUID,
        payload: UserUpdate,
        db_session: AsyncSession,
    ) -> ServiceResult[User]:
        found = await self.get_user(user_id, db_session)
        if not found.ok:
            return found
        user = found.value

        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(user, field, value)

        try:
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.exception("update_user_failed", user_id=str(user_id))
            return ServiceResult.failure(PersistenceError(cause=exc))

        logger.info("user_updated", user_id=str(user_id))
        return ServiceResult.success(user)
