"""
Pawmatch — Match Chat

Per-match message history plus a live append stream.

A :class:`ChatSession` moves through three states:

  loading → active → closed

While loading it is already subscribed to the change feed, so a message
inserted between the history query and the subscription is buffered rather
than lost.  Once history arrives the buffer is merged in and every message
id is kept at most once.  The session never echoes locally: a sender sees
their own message when it comes back through the feed, exactly like
everybody else's.

If the feed reports the subscription as dropped, the session re-subscribes
and re-fetches the full history, delivering whatever it had missed.  If
that fails the session closes and its update stream ends.
"""

from __future__ import annotations

import asyncio
import enum
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.database import get_session_factory
from app.exceptions import MessageValidationError, PawmatchError, PersistenceError
from app.models.message import Message
from app.realtime.feed import ChangeFeed, Subscription, get_change_feed
from app.schemas.message import MessageRead
from app.services.results import ServiceResult

logger = structlog.get_logger("pawmatch.chat_service")

MESSAGES_TABLE = "messages"
MATCH_COLUMN = "match_id"

HistoryLoader = Callable[[], Awaitable[list[MessageRead]]]

_CLOSED = object()


class ChatState(str, enum.Enum):
    LOADING = "loading"
    ACTIVE = "active"
    CLOSED = "closed"


class ChatSession:
    """One open chat on one match.

    ``history`` holds every message seen so far, in delivery order.
    ``updates()`` yields messages that arrived live after the session
    opened.
    """

    def __init__(
        self,
        match_id: uuid.UUID,
        feed: ChangeFeed,
        history_loader: HistoryLoader,
    ) -> None:
        self.match_id = match_id
        self.state = ChatState.LOADING
        self.history: list[MessageRead] = []

        self._feed = feed
        self._load_history = history_loader
        self._subscription: Subscription | None = None
        self._seen: set[uuid.UUID] = set()
        self._pending: list[MessageRead] = []
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._log = logger.bind(match_id=str(match_id))

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Subscribe, then load history and merge anything buffered."""
        await self._sync(notify_history=False)
        self._log.info("chat_session_active", messages=len(self.history))

    async def resync(self) -> ServiceResult[int]:
        """Re-subscribe and re-fetch the full history.

        Returns the number of messages that were new to this session.  A
        failed re-fetch closes the session.
        """
        if self.state is ChatState.CLOSED:
            return ServiceResult.success(0)
        before = len(self.history)
        try:
            await self._sync(notify_history=True)
        except PawmatchError as exc:
            self._log.warning("chat_resync_failed", error=exc.detail)
            return ServiceResult.failure(exc)
        recovered = len(self.history) - before
        self._log.info("chat_resynced", recovered=recovered)
        return ServiceResult.success(recovered)

    async def close(self) -> None:
        """Release the subscription.  Safe to call more than once."""
        if self.state is ChatState.CLOSED:
            return
        self.state = ChatState.CLOSED
        self._pending.clear()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            try:
                await subscription.unsubscribe()
            except Exception:
                # The session is closed regardless; the feed drops the rest.
                self._log.exception("chat_unsubscribe_failed")
        self._log.info("chat_session_closed")

    # ── Consumption ───────────────────────────────────────────────────────

    async def updates(self) -> AsyncIterator[MessageRead]:
        """Live messages in arrival order; ends when the session closes."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                # Leave the marker for any other consumer.
                self._queue.put_nowait(_CLOSED)
                return
            yield item

    # ── Internals ─────────────────────────────────────────────────────────

    async def _sync(self, notify_history: bool) -> None:
        """Subscribe, load history and merge the buffer.

        Any failure closes the session and surfaces as a ``PawmatchError``.
        On the first load nothing is queued to ``updates()``: every row seen
        so far is part of ``history``.
        """
        self.state = ChatState.LOADING
        try:
            if self._subscription is not None:
                subscription, self._subscription = self._subscription, None
                await subscription.unsubscribe()
            self._subscription = await self._feed.subscribe(
                MESSAGES_TABLE,
                MATCH_COLUMN,
                self.match_id,
                self._on_insert,
                on_drop=self._on_drop,
            )
            loaded = await self._load_history()
        except PawmatchError:
            await self.close()
            raise
        except Exception as exc:
            self._log.exception("chat_sync_failed")
            await self.close()
            raise PersistenceError(cause=exc) from exc

        if self.state is ChatState.CLOSED:
            return

        for message in sorted(loaded, key=lambda m: m.created_at):
            self._accept(message, notify=notify_history)
        buffered, self._pending = self._pending, []
        for message in sorted(buffered, key=lambda m: m.created_at):
            self._accept(message, notify=notify_history)

        self.state = ChatState.ACTIVE

    def _accept(self, message: MessageRead, notify: bool) -> None:
        if message.id in self._seen:
            return
        self._seen.add(message.id)
        self.history.append(message)
        if notify:
            self._queue.put_nowait(message)

    def _on_insert(self, row: dict[str, Any]) -> None:
        if self.state is ChatState.CLOSED:
            return
        try:
            message = MessageRead.model_validate(row)
        except ValidationError:
            self._log.warning("chat_row_invalid", row_id=row.get("id"))
            return
        if self.state is ChatState.LOADING:
            self._pending.append(message)
            return
        self._accept(message, notify=True)

    async def _on_drop(self, subscription: Subscription) -> None:
        if subscription is not self._subscription or self.state is ChatState.CLOSED:
            return
        self._subscription = None
        self._log.warning("chat_subscription_dropped")
        await self.resync()


class ChatService:
    """History queries, message sending and session construction."""

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self._feed = feed
        self.max_message_length = get_settings().MAX_MESSAGE_LENGTH

    @property
    def feed(self) -> ChangeFeed:
        """The injected feed, else whichever feed the process currently uses."""
        return self._feed if self._feed is not None else get_change_feed()

    async def _fetch_history(
        self,
        match_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> list[MessageRead]:
        stmt = (
            select(Message)
            .where(Message.match_id == match_id)
            .order_by(Message.created_at.asc())
        )
        try:
            rows = (await db_session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("chat_history_failed", match_id=str(match_id))
            raise PersistenceError(cause=exc) from exc
        return [MessageRead.model_validate(row) for row in rows]

    # ── Public API ────────────────────────────────────────────────────────

    async def get_history(
        self,
        match_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> ServiceResult[list[MessageRead]]:
        """Full message history for a match, oldest first."""
        try:
            return ServiceResult.success(await self._fetch_history(match_id, db_session))
        except PersistenceError as exc:
            return ServiceResult.failure(exc)

    async def open(
        self,
        match_id: uuid.UUID,
        db_session: AsyncSession | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> ServiceResult[ChatSession]:
        """Open a live chat session on ``match_id``.

        With ``db_session`` every history fetch runs on that session.
        Otherwise each fetch, including re-fetches after a dropped
        subscription, opens and closes its own session from
        ``session_factory`` (the process-wide factory by default), so a
        long-lived chat holds no connection between fetches.

        The caller owns the returned session and must ``close()`` it.
        """

        async def _loader() -> list[MessageRead]:
            if db_session is not None:
                return await self._fetch_history(match_id, db_session)
            factory = session_factory or get_session_factory()
            async with factory() as fetch_db:
                return await self._fetch_history(match_id, fetch_db)

        session = ChatSession(match_id, self.feed, _loader)
        try:
            await session.start()
        except PawmatchError as exc:
            return ServiceResult.failure(exc)
        except Exception as exc:
            await session.close()
            logger.exception("chat_open_failed", match_id=str(match_id))
            return ServiceResult.failure(PersistenceError(cause=exc))
        return ServiceResult.success(session)

    async def send(
        self,
        match_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        db_session: AsyncSession,
    ) -> ServiceResult[MessageRead]:
        """Insert a message and announce it on the change feed.

        Blank content is rejected before touching the store.  The message is
        committed before it is published, so subscribers only ever see rows
        that exist.
        """
        log = logger.bind(match_id=str(match_id), sender_id=str(sender_id))

        text = (content or "").strip()
        if not text:
            log.info("send_rejected_empty")
            return ServiceResult.failure(MessageValidationError())
        if len(text) > self.max_message_length:
            log.info("send_rejected_too_long", length=len(text))
            return ServiceResult.failure(
                MessageValidationError(
                    f"Message exceeds {self.max_message_length} characters."
                )
            )

        message = Message(match_id=match_id, sender_id=sender_id, content=text)
        try:
            db_session.add(message)
            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.exception("send_failed")
            return ServiceResult.failure(PersistenceError(cause=exc))

        try:
            await self.feed.publish(MESSAGES_TABLE, message.to_row(), MATCH_COLUMN)
        except Exception:
            # The row is committed; readers pick it up on their next fetch.
            log.exception("message_publish_failed", message_id=str(message.id))

        log.info("message_sent", message_id=str(message.id))
        return ServiceResult.success(MessageRead.model_validate(message))
