"""
Pawmatch — Realtime change feed

Push delivery of newly inserted rows to interested subscribers.  A
subscriber names a table and an equality filter (``column == value``) and
receives one callback per matching row, in the order rows were published,
until it unsubscribes.

Two backends are provided:

  - :class:`InMemoryChangeFeed` — single-process fan-out, the default for
    development and tests.
  - :class:`RedisChangeFeed` — Redis pub/sub with one channel per
    ``table:column:value`` filter, so every API replica sees inserts made by
    any other replica.

Callbacks may be plain functions or coroutines.  A subscriber callback that
raises is logged and skipped; it never breaks delivery to other subscribers
or the publishing request.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import structlog

from app.config import get_settings

logger = structlog.get_logger("pawmatch.realtime")

RowCallback = Callable[[dict[str, Any]], "Awaitable[None] | None"]
DropCallback = Callable[["Subscription"], "Awaitable[None] | None"]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`."""

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        column: str,
        value: Any,
        callback: RowCallback,
        on_drop: DropCallback | None = None,
    ) -> None:
        self.id = uuid.uuid4()
        self.feed = feed
        self.table = table
        self.column = column
        self.value = str(value)
        self.callback = callback
        self.on_drop = on_drop
        self.active = True

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.table, self.column, self.value)

    async def deliver(self, row: dict[str, Any]) -> None:
        if not self.active:
            return
        try:
            await _invoke(self.callback, row)
        except Exception:
            logger.exception(
                "subscription_callback_failed",
                table=self.table,
                column=self.column,
                value=self.value,
            )

    async def unsubscribe(self) -> None:
        await self.feed.unsubscribe(self)

    def __repr__(self) -> str:
        return f"<Subscription {self.table}.{self.column}={self.value} active={self.active}>"


class ChangeFeed(ABC):
    """Subscription interface for inserted rows."""

    async def start(self) -> None:
        """Acquire any long-lived connections."""

    async def stop(self) -> None:
        """Release connections and drop every subscription."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        callback: RowCallback,
        on_drop: DropCallback | None = None,
    ) -> Subscription:
        ...

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        ...

    @abstractmethod
    async def publish(self, table: str, row: dict[str, Any], column: str) -> None:
        """Announce an inserted ``row``; ``column`` names the filter column
        subscribers for this table key on."""


# ──────────────────────────────────────────────────────────────────────────────
# In-process backend
# ──────────────────────────────────────────────────────────────────────────────

class InMemoryChangeFeed(ChangeFeed):
    """Fan-out within a single event loop.

    ``publish`` awaits every matching callback before returning, so delivery
    order for a filter equals publish order.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[str, str, str], list[Subscription]] = {}

    async def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        callback: RowCallback,
        on_drop: DropCallback | None = None,
    ) -> Subscription:
        sub = Subscription(self, table, column, value, callback, on_drop)
        self._subscriptions.setdefault(sub.key, []).append(sub)
        logger.debug("subscribed", table=table, column=column, value=sub.value)
        return sub

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        subs = self._subscriptions.get(subscription.key)
        if subs and subscription in subs:
            subs.remove(subscription)
            if not subs:
                del self._subscriptions[subscription.key]

    async def publish(self, table: str, row: dict[str, Any], column: str) -> None:
        key = (table, column, str(row.get(column)))
        for sub in list(self._subscriptions.get(key, ())):
            await sub.deliver(row)

    async def disconnect(self) -> None:
        """Drop every live subscription and notify its owner, as a lost
        connection would."""
        dropped = [s for subs in self._subscriptions.values() for s in subs]
        self._subscriptions.clear()
        for sub in dropped:
            sub.active = False
            if sub.on_drop is not None:
                await _invoke(sub.on_drop, sub)
        logger.info("feed_disconnected", dropped=len(dropped))

    async def stop(self) -> None:
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.active = False
        self._subscriptions.clear()

    def subscriber_count(self, table: str, column: str, value: Any) -> int:
        return len(self._subscriptions.get((table, column, str(value)), ()))


# ──────────────────────────────────────────────────────────────────────────────
# Redis pub/sub backend
# ──────────────────────────────────────────────────────────────────────────────

class RedisChangeFeed(ChangeFeed):
    """Redis pub/sub backed feed.

    Each subscription owns a ``PubSub`` object and a reader task.  Rows are
    JSON-encoded; non-JSON values (UUIDs, datetimes) are stringified.  When
    the reader loses its connection the subscription is marked inactive and
    its ``on_drop`` hook is invoked; reconnecting is the subscriber's call.
    """

    def __init__(self, url: str, prefix: str = "pawmatch", client: Any | None = None) -> None:
        self.url = url
        self.prefix = prefix
        self._client = client
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}
        self._pubsubs: dict[uuid.UUID, Any] = {}

    def channel(self, table: str, column: str, value: Any) -> str:
        return f"{self.prefix}:{table}:{column}:{value}"

    async def start(self) -> None:
        if self._client is None:
            import redis.asyncio as aioredis

            self._client = aioredis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
        await self._client.ping()
        logger.info("redis_connected", url=self.url)

    async def stop(self) -> None:
        for sub_id in list(self._tasks):
            await self._release(sub_id)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("redis_closed")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        return bool(await self._client.ping())

    async def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        callback: RowCallback,
        on_drop: DropCallback | None = None,
    ) -> Subscription:
        if self._client is None:
            await self.start()
        sub = Subscription(self, table, column, value, callback, on_drop)
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel(table, column, sub.value))
        self._pubsubs[sub.id] = pubsub
        self._tasks[sub.id] = asyncio.create_task(self._reader(sub, pubsub))
        logger.debug("subscribed", channel=self.channel(table, column, sub.value))
        return sub

    async def _reader(self, sub: Subscription, pubsub: Any) -> None:
        from redis.exceptions import ConnectionError as RedisConnectionError

        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    row = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("feed_payload_invalid", channel=message.get("channel"))
                    continue
                await sub.deliver(row)
        except asyncio.CancelledError:
            raise
        except RedisConnectionError:
            logger.warning(
                "feed_connection_lost",
                table=sub.table,
                column=sub.column,
                value=sub.value,
            )
            sub.active = False
            self._tasks.pop(sub.id, None)
            self._pubsubs.pop(sub.id, None)
            if sub.on_drop is not None:
                await _invoke(sub.on_drop, sub)

    async def _release(self, sub_id: uuid.UUID) -> None:
        task = self._tasks.pop(sub_id, None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        pubsub = self._pubsubs.pop(sub_id, None)
        if pubsub is not None:
            await pubsub.unsubscribe()
            await pubsub.aclose()

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        await self._release(subscription.id)

    async def publish(self, table: str, row: dict[str, Any], column: str) -> None:
        if self._client is None:
            await self.start()
        payload = json.dumps(row, default=str)
        await self._client.publish(self.channel(table, column, row.get(column)), payload)


# ──────────────────────────────────────────────────────────────────────────────
# Process-wide singleton
# ──────────────────────────────────────────────────────────────────────────────

_change_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed is None:
        settings = get_settings()
        if settings.REALTIME_BACKEND == "redis":
            _change_feed = RedisChangeFeed(
                settings.REDIS_URL, prefix=settings.REALTIME_CHANNEL_PREFIX
            )
        else:
            _change_feed = InMemoryChangeFeed()
    return _change_feed


def set_change_feed(feed: ChangeFeed | None) -> None:
    global _change_feed
    _change_feed = feed
