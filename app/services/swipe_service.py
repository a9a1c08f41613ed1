"""
Pawmatch — Swipe Deck & Swipe Recording

Two operations back the swipe view:

  get_swipe_profiles — the candidate deck for a user: every pet that is
      neither owned by the user nor already swiped by any of the user's pets.
  record_swipe       — persists one like / dislike from the user's swiping
      pet to another pet.

Both require the user to own at least one pet and report
``NoOwnedPetError`` otherwise, so the caller can tell "not eligible to
swipe" apart from "nothing left to show" (an empty deck).

Match creation is not done here; the ``create_match_on_mutual_like``
database trigger inserts a match when a like is reciprocated.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NoOwnedPetError, PersistenceError
from app.models.match import Swipe
from app.models.pet import Pet
from app.services.pet_service import owned_pet_ids
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.swipe_service")


class SwipeService:
    """Candidate-deck resolution and swipe persistence."""

    # ── Public API ────────────────────────────────────────────────────────

    async def get_swipe_profiles(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[list[Pet]]:
        """Compute the swipe deck for ``user_id``.

        Steps:
          1. Fetch the user's pet ids; none → ``NoOwnedPetError``.
          2. Collect every ``swiped_pet_id`` swiped by any of those pets.
          3. Fetch all pets outside both sets.

        The returned list is a snapshot; call again to refresh.
        """
        log = logger.bind(user_id=str(user_id))

        try:
            owned = await owned_pet_ids(db_session, user_id)
            if not owned:
                log.info("swipe_deck_no_pet")
                return ServiceResult.failure(NoOwnedPetError(user_id=str(user_id)))

            swiped_stmt = (
                select(Swipe.swiped_pet_id)
                .where(Swipe.swiper_pet_id.in_(owned))
                .distinct()
            )
            swiped = set((await db_session.execute(swiped_stmt)).scalars().all())

            excluded = set(owned) | swiped
            deck_stmt = (
                select(Pet)
                .where(Pet.id.not_in(excluded))
                .order_by(Pet.created_at, Pet.id)
            )
            deck = list((await db_session.execute(deck_stmt)).scalars().all())
        except SQLAlchemyError as exc:
            log.exception("swipe_deck_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info(
            "swipe_deck_resolved",
            owned=len(owned),
            already_swiped=len(swiped),
            candidates=len(deck),
        )
        return ServiceResult.success(deck)

    async def record_swipe(
        self,
        user_id: uuid.UUID,
        swiped_pet_id: uuid.UUID,
        liked: bool,
        db_session: AsyncSession,
    ) -> ServiceResult[Swipe]:
        """Persist one swipe from the user's swiping pet.

        The swiping pet is the user's first pet (oldest ``created_at``).
        Users with several pets therefore always swipe as that one pet.
        Nothing here prevents a second swipe on the same pair, and no retry
        is attempted on failure.
        """
        log = logger.bind(user_id=str(user_id), swiped_pet_id=str(swiped_pet_id))

        try:
            swiper_stmt = (
                select(Pet.id)
                .where(Pet.owner_id == user_id)
                .order_by(Pet.created_at, Pet.id)
                .limit(1)
            )
            swiper_pet_id = (await db_session.execute(swiper_stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            log.exception("swiper_lookup_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        if swiper_pet_id is None:
            log.info("record_swipe_no_pet")
            return ServiceResult.failure(NoOwnedPetError(user_id=str(user_id)))

        swipe = Swipe(
            swiper_pet_id=swiper_pet_id,
            swiped_pet_id=swiped_pet_id,
            liked=liked,
        )
        try:
            db_session.add(swipe)
            await db_session.flush()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("record_swipe_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        log.info(
            "swipe_recorded",
            swipe_id=str(swipe.id),
            swiper_pet_id=str(swiper_pet_id),
            liked=liked,
        )
        return ServiceResult.success(swipe)
