"""
Pawmatch — Shared API dependencies.

Identity is established upstream (the auth provider / gateway); by the time
a request reaches us the acting user id travels in the ``X-User-Id``
header.
"""

from __future__ import annotations

import uuid
from typing import TypeVar

from fastapi import Header, HTTPException, status

from app.exceptions import PawmatchError
from app.services.results import ServiceResult

T = TypeVar("T")


async def get_current_user_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> uuid.UUID:
    """Parse the acting user's id from the request headers."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id is not a valid UUID.",
        )


def unwrap_or_raise(result: ServiceResult[T]) -> T:
    """Return the result's value or raise the matching ``HTTPException``."""
    try:
        return result.unwrap()
    except PawmatchError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
