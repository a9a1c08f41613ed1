"""
Pawmatch — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import bookings, chat, matches, pets, sitters, swipes, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(pets.router, prefix="/pets", tags=["Pets"])
router.include_router(swipes.router, prefix="/swipes", tags=["Swipes"])
router.include_router(matches.router, prefix="/matches", tags=["Matches"])
router.include_router(chat.router, prefix="/chat", tags=["Chat"])
router.include_router(sitters.router, prefix="/sitters", tags=["Sitters"])
router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
