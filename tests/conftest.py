"""Shared pytest fixtures for Pawmatch tests."""
import itertools
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REALTIME_BACKEND", "memory")
os.environ.setdefault("GCS_BUCKET_NAME", "pawmatch-test")

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Match, Message, Pet, Sitter, Swipe, User
from app.realtime import InMemoryChangeFeed, set_change_feed

# SQLite rendition of the create_match_on_mutual_like trigger installed by
# the initial migration.  Uuid columns are stored as 32-char hex on SQLite.
SQLITE_MUTUAL_LIKE_TRIGGER = """
CREATE TRIGGER trg_create_match_on_mutual_like
AFTER INSERT ON swipes
WHEN NEW.liked AND EXISTS (
    SELECT 1 FROM swipes
    WHERE swiper_pet_id = NEW.swiped_pet_id
      AND swiped_pet_id = NEW.swiper_pet_id
      AND liked
)
BEGIN
    INSERT OR IGNORE INTO matches (id, pet1_id, pet2_id, created_at)
    VALUES (
        lower(hex(randomblob(16))),
        min(NEW.swiper_pet_id, NEW.swiped_pet_id),
        max(NEW.swiper_pet_id, NEW.swiped_pet_id),
        CURRENT_TIMESTAMP
    );
END;
"""

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
_clock = itertools.count()


def tick() -> datetime:
    """Strictly increasing timestamps so created_at ordering is deterministic."""
    return BASE_TIME + timedelta(seconds=next(_clock))


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(SQLITE_MUTUAL_LIKE_TRIGGER))
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def feed():
    """A fresh in-process change feed installed as the process-wide one."""
    feed = InMemoryChangeFeed()
    set_change_feed(feed)
    yield feed
    set_change_feed(None)


# ── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_user(db_session):
    async def _make(full_name="Test Owner", email=None, is_admin=False, user_type="owner"):
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            full_name=full_name,
            is_admin=is_admin,
            user_type=user_type,
            created_at=tick(),
        )
        db_session.add(user)
        await db_session.flush()
        return user
    return _make


@pytest.fixture
def make_pet(db_session):
    async def _make(owner, name="Mochi", species="dog", **fields):
        pet = Pet(owner_id=owner.id, name=name, species=species, created_at=tick(), **fields)
        db_session.add(pet)
        await db_session.flush()
        return pet
    return _make


@pytest.fixture
def make_swipe(db_session):
    async def _make(swiper, swiped, liked=True):
        swipe = Swipe(swiper_pet_id=swiper.id, swiped_pet_id=swiped.id, liked=liked, created_at=tick())
        db_session.add(swipe)
        await db_session.flush()
        return swipe
    return _make


@pytest.fixture
def make_match(db_session):
    async def _make(pet1, pet2, created_at=None):
        pet1_id = pet1 if isinstance(pet1, uuid.UUID) else pet1.id
        pet2_id = pet2 if isinstance(pet2, uuid.UUID) else pet2.id
        match = Match(pet1_id=pet1_id, pet2_id=pet2_id, created_at=created_at or tick())
        db_session.add(match)
        await db_session.flush()
        return match
    return _make


@pytest.fixture
def make_message(db_session):
    async def _make(match, sender, content="hello", created_at=None):
        message = Message(
            match_id=match.id,
            sender_id=sender.id,
            content=content,
            created_at=created_at or tick(),
        )
        db_session.add(message)
        await db_session.flush()
        return message
    return _make


@pytest.fixture
def make_sitter(db_session, make_user):
    async def _make(full_name="Hana Sitter", service_area="Seoul Mapo-gu", price_per_hour=500.0,
                    is_approved=True, is_certified=False):
        user = await make_user(full_name=full_name, user_type="sitter")
        sitter = Sitter(
            id=user.id,
            service_area=service_area,
            introduction="Experienced walker and house sitter.",
            price_per_hour=price_per_hour,
            is_approved=is_approved,
            is_certified=is_certified,
            created_at=tick(),
        )
        db_session.add(sitter)
        await db_session.flush()
        return sitter
    return _make


@pytest.fixture
def sqlite_file_url(tmp_path):
    """A file-backed database with schema and trigger, for tests that run the
    app on its own event loop (Starlette's ``TestClient``)."""
    path = tmp_path / "pawmatch.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    with sync_engine.begin() as conn:
        conn.execute(text(SQLITE_MUTUAL_LIKE_TRIGGER))
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{path}"
