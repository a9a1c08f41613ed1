"""
Pawmatch — Sitter Directory & Certification

Sitters apply once; an admin approves the application (which lists the
sitter publicly) and may separately grant or revoke certification.
Owners search approved sitters by service area and hourly price and view
a sitter's profile with their latest reviews.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from app.models.booking import Review
from app.models.sitter import Sitter
from app.models.user import User
from app.schemas.sitter import (
    ReviewResponse,
    SitterApplication,
    SitterDetail,
    SitterResponse,
)
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.sitter_service")


def sitter_to_response(sitter: Sitter) -> SitterResponse:
    return SitterResponse(
        id=sitter.id,
        full_name=sitter.user.full_name if sitter.user else "N/A",
        avatar_url=sitter.user.avatar_url if sitter.user else None,
        service_area=sitter.service_area,
        introduction=sitter.introduction,
        price_per_hour=sitter.price_per_hour,
        is_approved=sitter.is_approved,
        is_certified=sitter.is_certified,
        created_at=sitter.created_at,
    )


def review_to_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        booking_id=review.booking_id,
        sitter_id=review.sitter_id,
        user_id=review.user_id,
        reviewer_name=review.user.full_name if review.user else "N/A",
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
    )


class SitterService:

    async def _require_admin(self, user_id: uuid.UUID, db_session: AsyncSession) -> None:
        user = await db_session.get(User, user_id)
        if user is None or not user.is_admin:
            raise PermissionDeniedError("Only administrators can do that.")

    # ── Applications ──────────────────────────────────────────────────────

    async def apply(
        self,
        user_id: uuid.UUID,
        application: SitterApplication,
        db_session: AsyncSession,
    ) -> ServiceResult[Sitter]:
        """Submit a sitter application for ``user_id`` (pending approval)."""
        log = logger.bind(user_id=str(user_id))

        try:
            user = await db_session.get(User, user_id)
            if user is None:
                return ServiceResult.failure(NotFoundError(f"User {user_id} not found."))
            if await db_session.get(Sitter, user_id) is not None:
                log.info("sitter_apply_duplicate")
                return ServiceResult.failure(
                    ConflictError("You have already applied to be a sitter.")
                )

            sitter = Sitter(id=user_id, **application.model_dump())
            db_session.add(sitter)
            user.user_type = "sitter"
            await db_session.flush()
            await db_session.refresh(sitter, ["user"])
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("sitter_apply_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("sitter_applied", service_area=sitter.service_area)
        return ServiceResult.success(sitter)

    # ── Discovery ─────────────────────────────────────────────────────────

    async def search(
        self,
        db_session: AsyncSession,
        area: str | None = None,
        min_price: float = 0.0,
        max_price: float | None = None,
        certified_only: bool = False,
    ) -> ServiceResult[list[SitterResponse]]:
        """Approved sitters matching the filters, newest first.

        ``area`` is a case-insensitive substring of the service area.
        """
        if max_price is None:
            max_price = get_settings().SITTER_MAX_HOURLY_PRICE
        if min_price > max_price:
            return ServiceResult.failure(
                InvalidInputError("min_price cannot exceed max_price.")
            )

        stmt = (
            select(Sitter)
            .where(Sitter.is_approved.is_(True))
            .where(Sitter.price_per_hour >= min_price)
            .where(Sitter.price_per_hour <= max_price)
        )
        if area and area.strip():
            stmt = stmt.where(
                func.lower(Sitter.service_area).contains(area.strip().lower(), autoescape=True)
            )
        if certified_only:
            stmt = stmt.where(Sitter.is_certified.is_(True))
        stmt = stmt.order_by(Sitter.created_at.desc()).execution_options(
            populate_existing=True
        )

        try:
            sitters = (await db_session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("sitter_search_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        logger.info(
            "sitter_search",
            area=area,
            min_price=min_price,
            max_price=max_price,
            count=len(sitters),
        )
        return ServiceResult.success([sitter_to_response(s) for s in sitters])

    async def get_sitter(
        self,
        sitter_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[SitterDetail]:
        """Public profile of an approved sitter with recent reviews."""
        settings = get_settings()
        try:
            sitter = await db_session.get(Sitter, sitter_id, populate_existing=True)
            if sitter is None or not sitter.is_approved:
                return ServiceResult.failure(NotFoundError("Sitter not found."))

            reviews = (
                await db_session.execute(
                    select(Review)
                    .where(Review.sitter_id == sitter_id)
                    .order_by(Review.created_at.desc())
                    .limit(settings.SITTER_REVIEW_PREVIEW_LIMIT)
                    .execution_options(populate_existing=True)
                )
            ).scalars().all()
            avg, count = (
                await db_session.execute(
                    select(func.avg(Review.rating), func.count(Review.id))
                    .where(Review.sitter_id == sitter_id)
                )
            ).one()
        except SQLAlchemyError as exc:
            logger.exception("get_sitter_failed", sitter_id=str(sitter_id))
            return ServiceResult.failure(PersistenceError(cause=exc))

        base = sitter_to_response(sitter)
        return ServiceResult.success(
            SitterDetail(
                **base.model_dump(),
                qualifications=sitter.qualifications,
                experience=sitter.experience,
                availability=sitter.availability,
                has_insurance=sitter.has_insurance,
                has_first_aid=sitter.has_first_aid,
                average_rating=round(float(avg), 2) if avg is not None else None,
                review_count=count,
                reviews=[review_to_response(r) for r in reviews],
            )
        )

    # ── Admin ─────────────────────────────────────────────────────────────

    async def approve(
        self,
        admin_id: uuid.UUID,
        sitter_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[Sitter]:
        return await self._set_flags(admin_id, sitter_id, db_session, is_approved=True)

    async def set_certification(
        self,
        admin_id: uuid.UUID,
        sitter_id: uuid.UUID,
        is_certified: bool,
        db_session: AsyncSession,
    ) -> ServiceResult[Sitter]:
        return await self._set_flags(
            admin_id, sitter_id, db_session, is_certified=is_certified
        )

    async def _set_flags(
        self,
        admin_id: uuid.UUID,
        sitter_id: uuid.UUID,
        db_session: AsyncSession,
        **flags: bool,
    ) -> ServiceResult[Sitter]:
        log = logger.bind(admin_id=str(admin_id), sitter_id=str(sitter_id))
        try:
            await self._require_admin(admin_id, db_session)
            sitter = await db_session.get(Sitter, sitter_id, populate_existing=True)
            if sitter is None:
                return ServiceResult.failure(NotFoundError("Sitter not found."))
            for name, value in flags.items():
                setattr(sitter, name, value)
            await db_session.flush()
        except PermissionDeniedError as exc:
            log.warning("sitter_admin_denied")
            return ServiceResult.failure(exc)
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("sitter_update_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("sitter_updated", **flags)
        return ServiceResult.success(sitter)
