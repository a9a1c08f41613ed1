from app.realtime.feed import (
    ChangeFeed,
    InMemoryChangeFeed,
    RedisChangeFeed,
    Subscription,
    get_change_feed,
    set_change_feed,
)

__all__ = [
    "ChangeFeed",
    "InMemoryChangeFeed",
    "RedisChangeFeed",
    "Subscription",
    "get_change_feed",
    "set_change_feed",
]
