"""
Pawmatch — Match and Swipe models.

Matches are inserted by the ``create_match_on_mutual_like`` database trigger
(see the initial migration); the application only reads them.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.utils.timeutil import utcnow


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("pet1_id", "pet2_id", name="uq_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    pet1_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pets.id", ondelete="CASCADE"), index=True, nullable=False
    )
    pet2_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pets.id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    pet1: Mapped["Pet | None"] = relationship(
        "Pet", foreign_keys=[pet1_id], lazy="selectin"
    )
    pet2: Mapped["Pet | None"] = relationship(
        "Pet", foreign_keys=[pet2_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Match {self.pet1_id} <-> {self.pet2_id}>"


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        CheckConstraint("swiper_pet_id != swiped_pet_id", name="ck_no_self_swipe"),
        Index("ix_swipes_swiper_swiped", "swiper_pet_id", "swiped_pet_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    swiper_pet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False
    )
    swiped_pet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False
    )
    liked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Swipe {self.swiper_pet_id} -> {self.swiped_pet_id} liked={self.liked}>"
