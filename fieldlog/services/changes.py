# fieldlog/services/changes.py
"""
In-process change feed.

The store publishes a ChangeEvent after every committed write. Subscribers
register a callback for one table and get an opaque "this table changed"
signal; they are expected to refetch. There is no ordering or delivery
guarantee beyond that. Each subscription must be closed when its consumer
goes away.
"""
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

TABLES = ("engineers", "daily_activities", "activity_hours", "service_categories", "notifications")


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str
    row_id: Optional[int] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, callback: ChangeCallback):
        self._feed = feed
        self.table = table
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self._feed._remove(self)
            self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ChangeFeed:
    """Fan-out of table change signals to registered callbacks."""

    def __init__(self):
        self._subscribers: Dict[str, Set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        if table not in TABLES:
            raise ValueError(f"Unknown table '{table}'")
        subscription = Subscription(self, table, on_change)
        with self._lock:
            self._subscribers.setdefault(table, set()).add(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.get(subscription.table, set()).discard(subscription)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, ()))

    def publish(self, table: str, action: str, row_id: Optional[int] = None) -> ChangeEvent:
        event = ChangeEvent(table=table, action=action, row_id=row_id)
        with self._lock:
            targets = list(self._subscribers.get(table, ()))
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception:
                # Remaining subscribers still get the event
                logger.exception("Change subscriber for %s failed", table)
        return event


_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        _feed = ChangeFeed()
    return _feed


def subscribe(table: str, on_change: ChangeCallback) -> Subscription:
    return get_change_feed().subscribe(table, on_change)
