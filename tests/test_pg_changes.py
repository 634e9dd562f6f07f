"""Tests for the database change listener"""

import asyncio

import pytest

from app.services import pg_changes
from app.services.change_feed import ChangeFeed, ChangeOperation
from app.services.data_source import FetchFailure, RESERVATION_TABLES
from app.services.pg_changes import CHANGE_CHANNEL, PgChangeListener, asyncpg_dsn, is_postgres_url
from app.services.sql_source import SqlDataSource


class FakeConnection:
    """Stands in for an asyncpg connection"""

    def __init__(self):
        self.listeners = {}
        self.closed = False

    async def add_listener(self, channel, callback):
        self.listeners[channel] = callback

    async def remove_listener(self, channel, callback):
        if self.listeners.get(channel) == callback:
            del self.listeners[channel]

    async def close(self):
        self.closed = True

    def is_closed(self):
        return self.closed


@pytest.fixture
def feed():
    return ChangeFeed()


def test_asyncpg_dsn_drops_the_driver():
    dsn = asyncpg_dsn("postgresql+asyncpg://tablebook:secret@db:5432/tablebook")

    assert dsn == "postgresql://tablebook:secret@db:5432/tablebook"


def test_is_postgres_url():
    assert is_postgres_url("postgresql+asyncpg://u:p@localhost/tablebook") is True
    assert is_postgres_url("sqlite+aiosqlite:///tablebook.db") is False


@pytest.mark.asyncio
async def test_notification_is_published(feed):
    listener = PgChangeListener("postgresql://localhost/tablebook", feed)
    subscription = feed.subscribe(RESERVATION_TABLES)

    listener.handle_notification(
        None,
        1234,
        CHANGE_CHANNEL,
        '{"table": "reservations", "operation": "INSERT", "record_id": "abc"}',
    )

    event = await asyncio.wait_for(subscription.__anext__(), timeout=1)
    assert event.table == "reservations"
    assert event.operation == ChangeOperation.INSERT
    assert event.record_id == "abc"
    subscription.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    "not json",
    '{"table": "reservations", "operation": "TRUNCATE"}',
    '{"operation": "UPDATE"}',
])
async def test_malformed_notification_is_ignored(feed, payload):
    listener = PgChangeListener("postgresql://localhost/tablebook", feed)
    subscription = feed.subscribe(RESERVATION_TABLES)

    listener.handle_notification(None, 1234, CHANGE_CHANNEL, payload)

    assert subscription.drain() == []
    subscription.close()


@pytest.mark.asyncio
async def test_start_and_stop(feed, monkeypatch):
    connection = FakeConnection()

    async def fake_connect(dsn):
        assert dsn == "postgresql://localhost/tablebook"
        return connection

    monkeypatch.setattr(pg_changes.asyncpg, "connect", fake_connect)
    listener = PgChangeListener("postgresql://localhost/tablebook", feed)

    await listener.start()

    assert listener.running is True
    assert connection.listeners[CHANGE_CHANNEL] == listener.handle_notification

    await listener.stop()

    assert listener.running is False
    assert connection.listeners == {}
    assert connection.closed is True


@pytest.mark.asyncio
async def test_start_fails_when_database_unreachable(feed, monkeypatch):
    async def refuse(dsn):
        raise OSError("connection refused")

    monkeypatch.setattr(pg_changes.asyncpg, "connect", refuse)
    listener = PgChangeListener("postgresql://localhost/tablebook", feed)

    with pytest.raises(FetchFailure):
        await listener.start()
    assert listener.running is False


@pytest.mark.asyncio
async def test_stop_before_start(feed):
    listener = PgChangeListener("postgresql://localhost/tablebook", feed)

    await listener.stop()

    assert listener.running is False


@pytest.mark.asyncio
async def test_source_leaves_publishing_to_the_listener(seeded_db):
    source = SqlDataSource(seeded_db["session_factory"], publish_writes=False)
    subscription = source.subscribe()
    reservation_id = str(seeded_db["reservations"][1].id)

    await source.update_reservation_status(reservation_id, "confirmed")

    assert subscription.drain() == []
    subscription.close()
