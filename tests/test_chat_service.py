"""Unit tests for ChatService / ChatSession — history, live delivery, send."""
import asyncio
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.exceptions import MessageValidationError, PersistenceError
from app.models import Message
from app.realtime import InMemoryChangeFeed
from app.schemas.message import MessageRead
from app.services.chat_service import (
    MATCH_COLUMN,
    MESSAGES_TABLE,
    ChatService,
    ChatSession,
    ChatState,
)
from app.utils.timeutil import utcnow


@pytest.fixture
async def chat_world(make_user, make_pet, make_match):
    alice = await make_user(full_name="Alice")
    bob = await make_user(full_name="Bob")
    match = await make_match(await make_pet(alice, name="Rex"), await make_pet(bob, name="Fido"))
    return alice, bob, match


@pytest.fixture
def chat_service(feed):
    return ChatService(feed=feed)


def _row(match_id, sender_id, content, created_at=None, message_id=None):
    return {
        "id": str(message_id or uuid.uuid4()),
        "match_id": str(match_id),
        "sender_id": str(sender_id),
        "content": content,
        "created_at": (created_at or utcnow()).isoformat(),
    }


async def _next_update(session, timeout=1.0):
    return await asyncio.wait_for(session.updates().__anext__(), timeout=timeout)


class FlakyFeed(InMemoryChangeFeed):
    """In-memory feed whose subscribe starts failing after ``fail_after`` calls."""

    def __init__(self, fail_after):
        super().__init__()
        self.fail_after = fail_after
        self.calls = 0

    async def subscribe(self, *args, **kwargs):
        self.calls += 1
        if self.calls > self.fail_after:
            raise ConnectionError("redis down")
        return await super().subscribe(*args, **kwargs)


class TestOpen:
    """Opening a session: history first, then live appends."""

    @pytest.mark.asyncio
    async def test_history_then_live_append(self, chat_service, feed, db_session, chat_world, make_message):
        alice, bob, match = chat_world
        t1 = await make_message(match, alice, "hi")
        t2 = await make_message(match, bob, "hello")

        opened = await chat_service.open(match.id, db_session)
        assert opened.ok
        session = opened.value
        assert session.state is ChatState.ACTIVE
        assert [m.id for m in session.history] == [t1.id, t2.id]

        t3 = _row(match.id, alice.id, "playdate?")
        await feed.publish(MESSAGES_TABLE, t3, MATCH_COLUMN)

        live = await _next_update(session)
        assert str(live.id) == t3["id"]
        assert [m.content for m in session.history] == ["hi", "hello", "playdate?"]
        await session.close()

    @pytest.mark.asyncio
    async def test_history_is_ordered_by_created_at(self, chat_service, db_session, chat_world, make_message):
        alice, bob, match = chat_world
        # Inserted out of order on purpose.
        await make_message(match, alice, "second", created_at=datetime(2025, 6, 2, tzinfo=timezone.utc))
        await make_message(match, bob, "first", created_at=datetime(2025, 6, 1, tzinfo=timezone.utc))

        session = (await chat_service.open(match.id, db_session)).value
        assert [m.content for m in session.history] == ["first", "second"]
        created = [m.created_at for m in session.history]
        assert created == sorted(created)
        await session.close()

    @pytest.mark.asyncio
    async def test_other_matches_are_not_delivered(self, chat_service, feed, db_session, chat_world):
        alice, _, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value

        await feed.publish(MESSAGES_TABLE, _row(uuid.uuid4(), alice.id, "elsewhere"), MATCH_COLUMN)
        assert session.history == []
        await session.close()

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_ignored(self, chat_service, feed, db_session, chat_world):
        alice, _, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value

        row = _row(match.id, alice.id, "once")
        await feed.publish(MESSAGES_TABLE, row, MATCH_COLUMN)
        await feed.publish(MESSAGES_TABLE, row, MATCH_COLUMN)
        assert len(session.history) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_failed_history_load_reports_and_unsubscribes(self, feed, chat_world):
        _, _, match = chat_world
        service = ChatService(feed=feed)
        db = MagicMock()
        db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))

        result = await service.open(match.id, db)
        assert isinstance(result.error, PersistenceError)
        assert feed.subscriber_count(MESSAGES_TABLE, MATCH_COLUMN, match.id) == 0


class TestLoadingRace:
    """A message inserted while history is loading is seen exactly once."""

    @pytest.mark.asyncio
    async def test_row_in_both_history_and_feed(self, chat_world):
        alice, _, match = chat_world
        feed = InMemoryChangeFeed()
        racing = MessageRead.model_validate(_row(match.id, alice.id, "racing"))

        async def loader():
            # Committed before the query ran, published while it was running.
            await feed.publish(MESSAGES_TABLE, racing.model_dump(mode="json"), MATCH_COLUMN)
            return [racing]

        session = ChatSession(match.id, feed, loader)
        await session.start()
        assert [m.id for m in session.history] == [racing.id]
        await session.close()

    @pytest.mark.asyncio
    async def test_row_only_in_feed_is_appended_after_history(self, chat_world):
        alice, bob, match = chat_world
        feed = InMemoryChangeFeed()
        old = MessageRead.model_validate(_row(match.id, bob.id, "old"))
        fresh = _row(match.id, alice.id, "fresh")

        async def loader():
            await feed.publish(MESSAGES_TABLE, fresh, MATCH_COLUMN)
            return [old]

        session = ChatSession(match.id, feed, loader)
        await session.start()
        assert [m.content for m in session.history] == ["old", "fresh"]

        # A consumer reading history and then updates() sees "fresh" once.
        await feed.publish(MESSAGES_TABLE, _row(match.id, bob.id, "later"), MATCH_COLUMN)
        observed = [m.content for m in session.history[:2]] + [(await _next_update(session)).content]
        assert observed == ["old", "fresh", "later"]
        await session.close()


class TestClose:

    @pytest.mark.asyncio
    async def test_no_delivery_after_close(self, chat_service, feed, db_session, chat_world):
        alice, _, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value
        await session.close()

        await feed.publish(MESSAGES_TABLE, _row(match.id, alice.id, "late"), MATCH_COLUMN)
        assert session.history == []
        assert [m async for m in session.updates()] == []
        assert feed.subscriber_count(MESSAGES_TABLE, MATCH_COLUMN, match.id) == 0

    @pytest.mark.asyncio
    async def test_close_twice_is_harmless(self, chat_service, db_session, chat_world):
        _, _, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value
        await session.close()
        await session.close()
        assert session.state is ChatState.CLOSED


class TestResync:
    """A dropped feed subscription triggers a full re-fetch."""

    @pytest.mark.asyncio
    async def test_missed_message_recovered_after_drop(
        self, chat_service, feed, db_session, chat_world, make_message
    ):
        alice, bob, match = chat_world
        await make_message(match, alice, "before")
        session = (await chat_service.open(match.id, db_session)).value

        # Written while the feed was down: never published.
        missed = await make_message(match, bob, "while offline")
        await feed.disconnect()

        assert session.state is ChatState.ACTIVE
        assert [m.content for m in session.history] == ["before", "while offline"]
        assert (await _next_update(session)).id == missed.id
        assert feed.subscriber_count(MESSAGES_TABLE, MATCH_COLUMN, match.id) == 1

        await feed.publish(MESSAGES_TABLE, _row(match.id, alice.id, "back online"), MATCH_COLUMN)
        assert session.history[-1].content == "back online"
        await session.close()

    @pytest.mark.asyncio
    async def test_resync_on_closed_session_does_nothing(self, chat_service, db_session, chat_world):
        _, _, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value
        await session.close()
        result = await session.resync()
        assert result.ok
        assert result.value == 0

    @pytest.mark.asyncio
    async def test_failed_resubscribe_closes_session(self, chat_world):
        _, _, match = chat_world
        feed = FlakyFeed(fail_after=1)
        session = ChatSession(match.id, feed, AsyncMock(return_value=[]))
        await session.start()

        result = await session.resync()
        assert isinstance(result.error, PersistenceError)
        assert isinstance(result.error.cause, ConnectionError)
        assert session.state is ChatState.CLOSED
        assert [m async for m in session.updates()] == []

    @pytest.mark.asyncio
    async def test_failed_resubscribe_after_drop_does_not_raise(self, chat_world):
        _, _, match = chat_world
        feed = FlakyFeed(fail_after=1)
        session = ChatSession(match.id, feed, AsyncMock(return_value=[]))
        await session.start()

        await feed.disconnect()
        assert session.state is ChatState.CLOSED
        assert [m async for m in session.updates()] == []

    @pytest.mark.asyncio
    async def test_failed_refetch_closes_session(self, feed, chat_world):
        _, _, match = chat_world
        loader = AsyncMock(side_effect=[[], RuntimeError("pool exhausted")])
        session = ChatSession(match.id, feed, loader)
        await session.start()

        result = await session.resync()
        assert isinstance(result.error, PersistenceError)
        assert session.state is ChatState.CLOSED
        assert feed.subscriber_count(MESSAGES_TABLE, MATCH_COLUMN, match.id) == 0


class TestShortLivedSessions:
    """Without a caller-supplied session each fetch opens and closes its own."""

    @pytest.mark.asyncio
    async def test_no_transaction_left_open(self, engine, chat_service, feed, db_session, chat_world, make_message):
        alice, _, match = chat_world
        await make_message(match, alice, "committed")
        await db_session.commit()

        opened_sessions = []
        factory = async_sessionmaker(bind=engine, expire_on_commit=False)

        def recording_factory():
            session = factory()
            opened_sessions.append(session)
            return session

        chat = (await chat_service.open(match.id, session_factory=recording_factory)).value
        assert [m.content for m in chat.history] == ["committed"]
        assert len(opened_sessions) == 1
        assert not opened_sessions[0].in_transaction()

        await feed.disconnect()
        assert chat.state is ChatState.ACTIVE
        assert len(opened_sessions) == 2
        assert not any(s.in_transaction() for s in opened_sessions)
        await chat.close()


class TestSend:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_blank_content_is_rejected_without_write(
        self, chat_service, db_session, chat_world, content
    ):
        alice, _, match = chat_world
        result = await chat_service.send(match.id, alice.id, content, db_session)
        assert isinstance(result.error, MessageValidationError)
        assert result.error.status_code == 422
        assert await db_session.scalar(select(func.count(Message.id))) == 0

    @pytest.mark.asyncio
    async def test_too_long_content_is_rejected(self, chat_service, db_session, chat_world):
        alice, _, match = chat_world
        too_long = "x" * (chat_service.max_message_length + 1)
        result = await chat_service.send(match.id, alice.id, too_long, db_session)
        assert isinstance(result.error, MessageValidationError)

    @pytest.mark.asyncio
    async def test_sent_message_reaches_open_session_once(
        self, chat_service, db_session, chat_world
    ):
        alice, bob, match = chat_world
        session = (await chat_service.open(match.id, db_session)).value

        result = await chat_service.send(match.id, bob.id, "  woof  ", db_session)
        assert result.ok
        assert result.value.content == "woof"
        assert [m.id for m in session.history] == [result.value.id]
        assert (await _next_update(session)).id == result.value.id

        stored = await db_session.get(Message, result.value.id)
        assert stored.content == "woof"
        await session.close()

    @pytest.mark.asyncio
    async def test_publish_failure_still_succeeds(self, db_session, chat_world):
        alice, _, match = chat_world
        broken = MagicMock(spec=InMemoryChangeFeed)
        broken.publish = AsyncMock(side_effect=ConnectionError("feed down"))
        service = ChatService(feed=broken)

        result = await service.send(match.id, alice.id, "still saved", db_session)
        assert result.ok
        broken.publish.assert_awaited_once()
        assert await db_session.scalar(select(func.count(Message.id))) == 1

    @pytest.mark.asyncio
    async def test_history_endpoint_reads_store(self, chat_service, db_session, chat_world, make_message):
        alice, _, match = chat_world
        await make_message(match, alice, "one")
        await make_message(match, alice, "two")
        result = await chat_service.get_history(match.id, db_session)
        assert [m.content for m in result.value] == ["one", "two"]
