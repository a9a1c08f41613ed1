"""
Pawmatch — Sitters API

Applying as a sitter, searching the directory, sitter profiles, and the
admin approval / certification switches.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db
from app.schemas.sitter import (
    CertificationUpdate,
    SitterApplication,
    SitterDetail,
    SitterResponse,
)
from app.services.sitter_service import SitterService, sitter_to_response

router = APIRouter()

_sitter_service = SitterService()


@router.post(
    "/",
    response_model=SitterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to become a sitter",
)
async def apply(
    application: SitterApplication,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> SitterResponse:
    """Submit a sitter application.  It stays hidden from search until an
    administrator approves it."""
    sitter = unwrap_or_raise(await _sitter_service.apply(user_id, application, db))
    return sitter_to_response(sitter)


@router.get("/", response_model=list[SitterResponse], summary="Search sitters")
async def search_sitters(
    area: Optional[str] = Query(None, description="Substring of the service area"),
    min_price: float = Query(0.0, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    certified_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> list[SitterResponse]:
    return unwrap_or_raise(
        await _sitter_service.search(
            db,
            area=area,
            min_price=min_price,
            max_price=max_price,
            certified_only=certified_only,
        )
    )


@router.get("/{sitter_id}", response_model=SitterDetail, summary="Sitter profile")
async def get_sitter(
    sitter_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> SitterDetail:
    return unwrap_or_raise(await _sitter_service.get_sitter(sitter_id, db))


# ──────────────────────────────────────────────────────────────────────────────
# Admin
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{sitter_id}/approve",
    response_model=SitterResponse,
    summary="Approve a sitter application (admin)",
)
async def approve_sitter(
    sitter_id: uuid.UUID,
    admin_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> SitterResponse:
    sitter = unwrap_or_raise(await _sitter_service.approve(admin_id, sitter_id, db))
    return sitter_to_response(sitter)


@router.post(
    "/{sitter_id}/certification",
    response_model=SitterResponse,
    summary="Grant or revoke certification (admin)",
)
async def set_certification(
    sitter_id: uuid.UUID,
    payload: CertificationUpdate,
    admin_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> SitterResponse:
    sitter = unwrap_or_raise(
        await _sitter_service.set_certification(
            admin_id, sitter_id, payload.is_certified, db
        )
    )
    return sitter_to_response(sitter)
