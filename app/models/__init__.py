"""
Pawmatch — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User
from app.models.pet import Pet
from app.models.match import Match, Swipe
from app.models.message import Message
from app.models.sitter import Sitter
from app.models.booking import Booking, BookingStatus, Review

__all__ = [
    "User",
    "Pet",
    "Match",
    "Swipe",
    "Message",
    "Sitter",
    "Booking",
    "BookingStatus",
    "Review",
]
