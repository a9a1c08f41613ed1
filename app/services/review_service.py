"""
Pawmatch — Sitter reviews.

An owner may review a sitter once per completed booking.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
)
from app.models.booking import Booking, BookingStatus, Review
from app.schemas.booking import ReviewCreate
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.review_service")


class ReviewService:

    async def add_review(
        self,
        user_id: uuid.UUID,
        booking_id: uuid.UUID,
        payload: ReviewCreate,
        db_session: AsyncSession,
    ) -> ServiceResult[Review]:
        log = logger.bind(user_id=str(user_id), booking_id=str(booking_id))

        try:
            booking = await db_session.get(Booking, booking_id)
            if booking is None or booking.user_id != user_id:
                return ServiceResult.failure(NotFoundError("Booking not found."))
            if booking.status != BookingStatus.COMPLETED.value:
                return ServiceResult.failure(
                    InvalidInputError("Only completed bookings can be reviewed.")
                )

            existing = await db_session.execute(
                select(Review.id).where(Review.booking_id == booking_id)
            )
            if existing.scalar_one_or_none() is not None:
                log.info("review_duplicate")
                return ServiceResult.failure(
                    ConflictError("This booking has already been reviewed.")
                )

            review = Review(
                booking_id=booking_id,
                sitter_id=booking.sitter_id,
                user_id=user_id,
                rating=payload.rating,
                comment=payload.comment.strip(),
            )
            db_session.add(review)
            await db_session.flush()
            await db_session.refresh(review, ["user"])
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("add_review_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("review_added", review_id=str(review.id), rating=review.rating)
        return ServiceResult.success(review)
