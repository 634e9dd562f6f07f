"""Database change notifications

Triggers on the reservation tables call ``pg_notify`` with a JSON payload
(see migration 002). ``PgChangeListener`` keeps one asyncpg connection
listening on that channel and republishes every payload on a ``ChangeFeed``,
so writes from any process reach the subscribers of this one.
"""

from typing import Optional

import asyncpg
import structlog
from pydantic import ValidationError
from sqlalchemy.engine import make_url

from app.services.change_feed import ChangeEvent, ChangeFeed
from app.services.data_source import FetchFailure

logger = structlog.get_logger()

CHANGE_CHANNEL = "tablebook_changes"


def asyncpg_dsn(database_url: str) -> str:
    """Turn a SQLAlchemy URL into a DSN asyncpg accepts"""
    url = make_url(database_url).set(drivername="postgresql")
    return url.render_as_string(hide_password=False)


def is_postgres_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "postgresql"


class PgChangeListener:
    """Relays NOTIFY payloads from ``channel`` into ``feed``"""

    def __init__(self, dsn: str, feed: ChangeFeed, channel: str = CHANGE_CHANNEL):
        self.dsn = dsn
        self.feed = feed
        self.channel = channel
        self._connection: Optional[asyncpg.Connection] = None

    @property
    def running(self) -> bool:
        return self._connection is not None and not self._connection.is_closed()

    async def start(self) -> None:
        if self.running:
            return

        connection = None
        try:
            connection = await asyncpg.connect(self.dsn)
            await connection.add_listener(self.channel, self.handle_notification)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            if connection is not None:
                await connection.close()
            logger.error("Could not listen for database changes", channel=self.channel, error=str(e))
            raise FetchFailure("Could not listen for database changes") from e

        self._connection = connection
        logger.info("Listening for database changes", channel=self.channel)

    def handle_notification(self, connection, pid: int, channel: str, payload: str) -> None:
        try:
            event = ChangeEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Ignoring malformed change notification", channel=channel, error=str(e))
            return
        self.feed.publish(event)

    async def stop(self) -> None:
        if self._connection is None:
            return

        connection, self._connection = self._connection, None
        if connection.is_closed():
            return
        try:
            await connection.remove_listener(self.channel, self.handle_notification)
        finally:
            await connection.close()
        logger.info("Stopped listening for database changes", channel=self.channel)
