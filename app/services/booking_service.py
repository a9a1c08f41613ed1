"""
Pawmatch — Bookings

Owners book an approved sitter for a time window.  The price is fixed at
booking time from the sitter's hourly rate:

  total_hours = (end_time - start_time) / 1h
  total_price = round(total_hours × price_per_hour, 2)

Status lifecycle:

  pending ──► confirmed ──► in_progress ──► completed
     │            │
     └──► cancelled ◄──┘

The sitter confirms, starts and completes a booking; either party may
cancel it before work starts.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from app.models.booking import Booking, BookingStatus
from app.models.pet import Pet
from app.models.sitter import Sitter
from app.schemas.booking import BookingCreate
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.booking_service")

_SECONDS_PER_HOUR = 3600.0

# (from_status, to_status) -> roles allowed to make the move
_TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[str]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({"sitter"}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({"owner", "sitter"}),
    (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS): frozenset({"sitter"}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({"owner", "sitter"}),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED): frozenset({"sitter"}),
}


def quote(start_time: datetime, end_time: datetime, price_per_hour: float) -> tuple[float, float]:
    """Return ``(total_hours, total_price)`` for a booking window."""
    hours = (end_time - start_time).total_seconds() / _SECONDS_PER_HOUR
    return round(hours, 4), round(hours * price_per_hour, 2)


class BookingService:

    async def create_booking(
        self,
        user_id: uuid.UUID,
        payload: BookingCreate,
        db_session: AsyncSession,
    ) -> ServiceResult[Booking]:
        log = logger.bind(user_id=str(user_id), sitter_id=str(payload.sitter_id))

        if payload.start_time >= payload.end_time:
            return ServiceResult.failure(
                InvalidInputError("The booking must end after it starts.")
            )
        if payload.sitter_id == user_id:
            return ServiceResult.failure(
                InvalidInputError("You cannot book yourself.")
            )

        try:
            sitter = await db_session.get(Sitter, payload.sitter_id)
            if sitter is None or not sitter.is_approved:
                return ServiceResult.failure(NotFoundError("Sitter not found."))

            if payload.pet_id is not None:
                pet = await db_session.get(Pet, payload.pet_id)
                if pet is None or pet.owner_id != user_id:
                    return ServiceResult.failure(
                        InvalidInputError("You can only book care for your own pet.")
                    )

            total_hours, total_price = quote(
                payload.start_time, payload.end_time, sitter.price_per_hour
            )
            booking = Booking(
                user_id=user_id,
                sitter_id=payload.sitter_id,
                pet_id=payload.pet_id,
                start_time=payload.start_time,
                end_time=payload.end_time,
                total_hours=total_hours,
                total_price=total_price,
                status=BookingStatus.PENDING.value,
                notes=payload.notes,
            )
            db_session.add(booking)
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("create_booking_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info(
            "booking_created",
            booking_id=str(booking.id),
            total_hours=total_hours,
            total_price=total_price,
        )
        return ServiceResult.success(booking)

    async def list_bookings(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        role: str = "owner",
    ) -> ServiceResult[list[Booking]]:
        """Bookings the user made (``owner``) or received (``sitter``)."""
        if role not in ("owner", "sitter"):
            return ServiceResult.failure(InvalidInputError(f"Unknown role {role!r}."))
        column = Booking.user_id if role == "owner" else Booking.sitter_id
        stmt = select(Booking).where(column == user_id).order_by(Booking.created_at.desc())
        try:
            rows = (await db_session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("list_bookings_failed", user_id=str(user_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        return ServiceResult.success(list(rows))

    async def get_booking(
        self,
        booking_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[Booking]:
        try:
            booking = await db_session.get(Booking, booking_id)
        except SQLAlchemyError as exc:
            logger.exception("get_booking_failed", booking_id=str(booking_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        if booking is None:
            return ServiceResult.failure(NotFoundError("Booking not found."))
        return ServiceResult.success(booking)

    async def update_status(
        self,
        user_id: uuid.UUID,
        booking_id: uuid.UUID,
        new_status: BookingStatus | str,
        db_session: AsyncSession,
    ) -> ServiceResult[Booking]:
        log = logger.bind(user_id=str(user_id), booking_id=str(booking_id))

        found = await self.get_booking(booking_id, db_session)
        if not found.ok:
            return found
        booking = found.value

        if booking.user_id == user_id:
            role = "owner"
        elif booking.sitter_id == user_id:
            role = "sitter"
        else:
            return ServiceResult.failure(NotFoundError("Booking not found."))

        current = BookingStatus(booking.status)
        target = BookingStatus(new_status)
        allowed = _TRANSITIONS.get((current, target))
        if allowed is None:
            log.info("booking_transition_invalid", current=current.value, target=target.value)
            return ServiceResult.failure(
                InvalidInputError(
                    f"Cannot move a booking from {current.value} to {target.value}."
                )
            )
        if role not in allowed:
            log.info("booking_transition_denied", role=role, target=target.value)
            return ServiceResult.failure(
                PermissionDeniedError(f"The {role} cannot mark a booking {target.value}.")
            )

        booking.status = target.value
        try:
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("booking_status_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info("booking_status_changed", old=current.value, new=target.value)
        return ServiceResult.success(booking)
