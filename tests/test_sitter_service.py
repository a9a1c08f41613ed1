"""Unit tests for SitterService, UserService and ReviewService."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError
from app.models import Booking, BookingStatus
from app.schemas.booking import ReviewCreate
from app.schemas.sitter import SitterApplication
from app.schemas.user import UserCreate, UserUpdate
from app.services.review_service import ReviewService
from app.services.sitter_service import SitterService
from app.services.user_service import UserService


@pytest.fixture
def sitter_service():
    return SitterService()


def _application(**overrides):
    data = {
        "service_area": "Seoul Gangnam-gu",
        "introduction": "I have looked after dogs for six years.",
        "price_per_hour": 800,
    }
    data.update(overrides)
    return SitterApplication(**data)


class TestUsers:

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, db_session):
        service = UserService()
        payload = UserCreate(email="mina@example.com", full_name="Mina Park")
        assert (await service.create_user(payload, db_session)).ok
        again = await service.create_user(payload, db_session)
        assert isinstance(again.error, ConflictError)

    @pytest.mark.asyncio
    async def test_update_full_name(self, db_session, make_user):
        user = await make_user()
        result = await UserService().update_user(user.id, UserUpdate(full_name=" Jun Lee "), db_session)
        assert result.value.full_name == "Jun Lee"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        result = await UserService().get_user(uuid.uuid4(), db_session)
        assert isinstance(result.error, NotFoundError)


class TestApply:

    @pytest.mark.asyncio
    async def test_application_is_pending(self, sitter_service, db_session, make_user):
        user = await make_user(full_name="Hana Choi")
        result = await sitter_service.apply(user.id, _application(), db_session)
        assert result.ok
        assert result.value.is_approved is False
        assert user.user_type == "sitter"

    @pytest.mark.asyncio
    async def test_second_application_conflicts(self, sitter_service, db_session, make_user):
        user = await make_user()
        await sitter_service.apply(user.id, _application(), db_session)
        result = await sitter_service.apply(user.id, _application(), db_session)
        assert isinstance(result.error, ConflictError)

    @pytest.mark.asyncio
    async def test_unknown_user_cannot_apply(self, sitter_service, db_session):
        result = await sitter_service.apply(uuid.uuid4(), _application(), db_session)
        assert isinstance(result.error, NotFoundError)


class TestSearch:

    @pytest.mark.asyncio
    async def test_only_approved_newest_first(self, sitter_service, db_session, make_sitter):
        older = await make_sitter(full_name="Older")
        await make_sitter(full_name="Pending", is_approved=False)
        newer = await make_sitter(full_name="Newer")

        result = await sitter_service.search(db_session)
        assert [s.id for s in result.value] == [newer.id, older.id]
        assert result.value[0].full_name == "Newer"

    @pytest.mark.asyncio
    async def test_area_is_case_insensitive_substring(self, sitter_service, db_session, make_sitter):
        mapo = await make_sitter(service_area="Seoul Mapo-gu")
        await make_sitter(service_area="Busan Haeundae-gu")
        result = await sitter_service.search(db_session, area="  mapo ")
        assert [s.id for s in result.value] == [mapo.id]

    @pytest.mark.asyncio
    async def test_price_range_and_certified(self, sitter_service, db_session, make_sitter):
        await make_sitter(price_per_hour=300)
        mid = await make_sitter(price_per_hour=600, is_certified=True)
        await make_sitter(price_per_hour=600)
        await make_sitter(price_per_hour=900, is_certified=True)

        result = await sitter_service.search(
            db_session, min_price=500, max_price=700, certified_only=True
        )
        assert [s.id for s in result.value] == [mid.id]

    @pytest.mark.asyncio
    async def test_inverted_price_range(self, sitter_service, db_session):
        result = await sitter_service.search(db_session, min_price=100, max_price=10)
        assert isinstance(result.error, InvalidInputError)


class TestAdmin:

    @pytest.mark.asyncio
    async def test_admin_approves(self, sitter_service, db_session, make_user, make_sitter):
        admin = await make_user(is_admin=True)
        sitter = await make_sitter(is_approved=False)
        result = await sitter_service.approve(admin.id, sitter.id, db_session)
        assert result.ok
        assert result.value.is_approved is True

    @pytest.mark.asyncio
    async def test_only_admins_certify(self, sitter_service, db_session, make_user, make_sitter):
        owner = await make_user()
        sitter = await make_sitter()
        result = await sitter_service.set_certification(owner.id, sitter.id, True, db_session)
        assert isinstance(result.error, PermissionDeniedError)
        assert sitter.is_certified is False

    @pytest.mark.asyncio
    async def test_admin_certifies_and_revokes(self, sitter_service, db_session, make_user, make_sitter):
        admin = await make_user(is_admin=True)
        sitter = await make_sitter()
        granted = await sitter_service.set_certification(admin.id, sitter.id, True, db_session)
        assert granted.value.is_certified is True
        revoked = await sitter_service.set_certification(admin.id, sitter.id, False, db_session)
        assert revoked.value.is_certified is False

    @pytest.mark.asyncio
    async def test_unknown_sitter(self, sitter_service, db_session, make_user):
        admin = await make_user(is_admin=True)
        result = await sitter_service.approve(admin.id, uuid.uuid4(), db_session)
        assert isinstance(result.error, NotFoundError)


class TestProfileAndReviews:

    async def _completed_booking(self, db_session, owner, sitter, status=BookingStatus.COMPLETED):
        start = datetime(2026, 3, 1, 9, tzinfo=timezone.utc)
        booking = Booking(
            user_id=owner.id,
            sitter_id=sitter.id,
            start_time=start,
            end_time=start + timedelta(hours=2),
            total_hours=2.0,
            total_price=2 * sitter.price_per_hour,
            status=status.value,
        )
        db_session.add(booking)
        await db_session.flush()
        return booking

    @pytest.mark.asyncio
    async def test_profile_with_average_rating(self, sitter_service, db_session, make_user, make_sitter):
        sitter = await make_sitter()
        reviews = ReviewService()
        for rating in (5, 4):
            owner = await make_user()
            booking = await self._completed_booking(db_session, owner, sitter)
            added = await reviews.add_review(owner.id, booking.id, ReviewCreate(rating=rating, comment="Great"), db_session)
            assert added.ok

        detail = (await sitter_service.get_sitter(sitter.id, db_session)).value
        assert detail.review_count == 2
        assert detail.average_rating == 4.5
        assert len(detail.reviews) == 2
        assert detail.reviews[0].reviewer_name == "Test Owner"

    @pytest.mark.asyncio
    async def test_unapproved_profile_is_hidden(self, sitter_service, db_session, make_sitter):
        sitter = await make_sitter(is_approved=False)
        result = await sitter_service.get_sitter(sitter.id, db_session)
        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_one_review_per_booking(self, db_session, make_user, make_sitter):
        owner = await make_user()
        sitter = await make_sitter()
        booking = await self._completed_booking(db_session, owner, sitter)
        service = ReviewService()
        assert (await service.add_review(owner.id, booking.id, ReviewCreate(rating=5), db_session)).ok
        again = await service.add_review(owner.id, booking.id, ReviewCreate(rating=1), db_session)
        assert isinstance(again.error, ConflictError)

    @pytest.mark.asyncio
    async def test_unfinished_booking_cannot_be_reviewed(self, db_session, make_user, make_sitter):
        owner = await make_user()
        sitter = await make_sitter()
        booking = await self._completed_booking(db_session, owner, sitter, status=BookingStatus.CONFIRMED)
        result = await ReviewService().add_review(owner.id, booking.id, ReviewCreate(rating=5), db_session)
        assert isinstance(result.error, InvalidInputError)

    @pytest.mark.asyncio
    async def test_only_the_booking_owner_reviews(self, db_session, make_user, make_sitter):
        owner = await make_user()
        sitter = await make_sitter()
        booking = await self._completed_booking(db_session, owner, sitter)
        stranger = await make_user()
        result = await ReviewService().add_review(stranger.id, booking.id, ReviewCreate(rating=5), db_session)
        assert isinstance(result.error, NotFoundError)
