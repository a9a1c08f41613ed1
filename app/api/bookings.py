"""
Pawmatch — Bookings API

Booking a sitter, following a booking through its lifecycle, and reviewing
the sitter once it is completed.
"""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.models.booking import Booking
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    ReviewCreate,
)
from app.schemas.sitter import ReviewResponse
from app.services.booking_service import BookingService
from app.services.review_service import ReviewService
from app.services.sitter_service import review_to_response

router = APIRouter()

_booking_service = BookingService()
_review_service = ReviewService()


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a sitter",
)
async def create_booking(
    payload: BookingCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Booking:
    """Create a pending booking priced at the sitter's hourly rate."""
    return unwrap_or_raise(await _booking_service.create_booking(user_id, payload, db))


@router.get("/", response_model=list[BookingResponse], summary="List my bookings")
async def list_bookings(
    role: Literal["owner", "sitter"] = Query("owner"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[Booking]:
    """Bookings the caller made (``role=owner``) or received (``role=sitter``)."""
    return unwrap_or_raise(await _booking_service.list_bookings(user_id, db, role=role))


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Move a booking to a new status",
)
async def update_status(
    booking_id: uuid.UUID,
    payload: BookingStatusUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Booking:
    return unwrap_or_raise(
        await _booking_service.update_status(user_id, booking_id, payload.status, db)
    )


@router.post(
    "/{booking_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review the sitter of a completed booking",
)
async def add_review(
    booking_id: uuid.UUID,
    payload: ReviewCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ReviewResponse:
    review = unwrap_or_raise(
        await _review_service.add_review(user_id, booking_id, payload, db)
    )
    return review_to_response(review)
