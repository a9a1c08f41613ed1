"""
Pawmatch — Match Resolution

Lists the playdate matches visible to a user.  Each match is joined to its
two pets and returned with the user's side already worked out (``mine`` /
``other``), so callers never re-derive it from raw pet ids.

Unlike the swipe flow, a user without pets is not an error here: they
simply have no matches.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, PersistenceError
from app.models.match import Match
from app.schemas.match import MatchListing, ResolvedMatch
from app.schemas.pet import PetResponse
from app.services.pet_service import owned_pet_ids
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.match_service")


def resolve_sides(match: Match, user_pet_ids: set[uuid.UUID]) -> ResolvedMatch | None:
    """Join ``match`` to its pets and pick the user's side.

    Returns ``None`` when either pet failed to load, or when the user owns
    both or neither side; such rows are referential anomalies and are left
    out of every listing.
    """
    if match.pet1 is None or match.pet2 is None:
        logger.warning("match_pet_missing", match_id=str(match.id))
        return None

    pet1_mine = match.pet1_id in user_pet_ids
    pet2_mine = match.pet2_id in user_pet_ids
    if pet1_mine == pet2_mine:
        logger.warning(
            "match_side_ambiguous",
            match_id=str(match.id),
            owns_both=pet1_mine,
        )
        return None

    pet1 = PetResponse.model_validate(match.pet1)
    pet2 = PetResponse.model_validate(match.pet2)
    mine, other = (pet1, pet2) if pet1_mine else (pet2, pet1)

    return ResolvedMatch(
        id=match.id,
        pet1_id=match.pet1_id,
        pet2_id=match.pet2_id,
        created_at=match.created_at,
        pet1=pet1,
        pet2=pet2,
        mine=mine,
        other=other,
    )


class MatchService:
    """Read-only access to matches from one user's point of view."""

    async def get_matches(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[MatchListing]:
        """All matches involving any of the user's pets, newest first."""
        log = logger.bind(user_id=str(user_id))

        try:
            owned = await owned_pet_ids(db_session, user_id)
            if not owned:
                log.info("list_matches_no_pet")
                return ServiceResult.success(MatchListing())

            stmt = (
                select(Match)
                .where(or_(Match.pet1_id.in_(owned), Match.pet2_id.in_(owned)))
                .order_by(Match.created_at.desc(), Match.id)
                .execution_options(populate_existing=True)
            )
            rows = (await db_session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            log.exception("list_matches_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        owned_set = set(owned)
        matches = [
            resolved
            for resolved in (resolve_sides(m, owned_set) for m in rows)
            if resolved is not None
        ]

        log.info("list_matches_complete", fetched=len(rows), count=len(matches))
        return ServiceResult.success(
            MatchListing(matches=matches, user_pet_ids=owned)
        )

    async def get_match(
        self,
        user_id: uuid.UUID,
        match_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[ResolvedMatch]:
        """A single match, resolved for ``user_id``.

        Missing matches and matches the user takes no part in both come back
        as ``NotFoundError``.
        """
        log = logger.bind(user_id=str(user_id), match_id=str(match_id))

        try:
            match = await db_session.get(Match, match_id, populate_existing=True)
            owned = await owned_pet_ids(db_session, user_id) if match is not None else []
        except SQLAlchemyError as exc:
            log.exception("get_match_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        if match is None:
            log.info("get_match_not_found")
            return ServiceResult.failure(NotFoundError(f"Match {match_id} not found."))

        resolved = resolve_sides(match, set(owned))
        if resolved is None:
            log.info("get_match_not_visible")
            return ServiceResult.failure(NotFoundError(f"Match {match_id} not found."))

        return ServiceResult.success(resolved)
