"""Row-level change notifications

Writers publish a ``ChangeEvent`` after their transaction commits. Each
subscription owns an asyncio queue and only receives events for the tables it
asked for.
"""

import asyncio
import enum
from typing import Iterable, List, Optional

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()


class ChangeOperation(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A committed change on one row"""
    table: str
    operation: ChangeOperation
    record_id: Optional[str] = None


class ChangeSubscription:
    """Async iterator over the events of a set of tables"""

    def __init__(self, feed: "ChangeFeed", tables: Iterable[str]):
        self._feed = feed
        self.tables = frozenset(tables)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def drain(self) -> List[ChangeEvent]:
        """Pop every event already queued without waiting"""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.remove(self)
        # Wake up a consumer blocked in __anext__
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """Fan-out hub for change events"""

    def __init__(self):
        self._subscriptions: List[ChangeSubscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, tables: Iterable[str]) -> ChangeSubscription:
        subscription = ChangeSubscription(self, tables)
        self._subscriptions.append(subscription)
        logger.debug("Change feed subscription opened", tables=sorted(subscription.tables))
        return subscription

    def remove(self, subscription: ChangeSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Change feed subscription closed", tables=sorted(subscription.tables))

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if event.table in subscription.tables:
                subscription.push(event)
