"""In-memory reservation cache kept in sync with the data source"""

import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Tuple, Union

import structlog

from app.schemas.reservation import ALL_SCOPE, ReservationRecord, ReservationStatus, Scope
from app.services.change_feed import ChangeSubscription
from app.services.data_source import RESERVATION_TABLES, DataSource, FetchFailure

logger = structlog.get_logger()

OnChange = Callable[[], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class ReservationStore:
    """Reservations of one scope, refreshed wholesale.

    Every change notification triggers a full reload of the current scope;
    there is no incremental merge. Status updates are written remotely first
    and patched locally only once the write succeeded. Between a reload and a
    local patch, whichever completes last wins.
    """

    def __init__(self, data_source: DataSource, scope: Scope = ALL_SCOPE):
        self._data_source = data_source
        self._scope: Scope = scope
        self._loaded_scope: Optional[Scope] = None
        self._records: Tuple[ReservationRecord, ...] = ()
        self._watchers: List[Tuple[ChangeSubscription, asyncio.Task]] = []

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def loaded_scope(self) -> Optional[Scope]:
        return self._loaded_scope

    @property
    def records(self) -> Tuple[ReservationRecord, ...]:
        """Immutable snapshot of the cached reservations"""
        return self._records

    def get(self, reservation_id: str) -> Optional[ReservationRecord]:
        for record in self._records:
            if record.id == reservation_id:
                return record
        return None

    async def load(self, scope: Optional[Scope] = None) -> List[ReservationRecord]:
        """Fetch ``scope`` (default: the current one) and replace the cache.

        A load that completes after the store moved to another scope is
        returned to its caller but not cached.
        """
        if scope is None:
            scope = self._scope
        self._scope = scope

        try:
            records = await self._data_source.fetch_reservations(scope)
        except FetchFailure:
            if self._scope == scope and self._loaded_scope != scope:
                # Never show the previous scope's rows under the new scope
                self._records = ()
                self._loaded_scope = scope
            raise

        if self._scope != scope:
            logger.info(
                "Discarding stale reservation load",
                requested_scope=str(scope),
                current_scope=str(self._scope),
            )
            return list(records)

        self._records = tuple(records)
        self._loaded_scope = scope
        logger.debug("Reservations loaded", scope=str(scope), count=len(self._records))
        return list(self._records)

    async def update_status(self, reservation_id: str, new_status: str) -> bool:
        """Write a status remotely, then patch the cached record"""
        try:
            status = ReservationStatus(new_status).value
        except ValueError:
            logger.warning("Rejected unknown reservation status", reservation_id=reservation_id, status=new_status)
            return False

        try:
            await self._data_source.update_reservation_status(reservation_id, status)
        except FetchFailure as e:
            logger.error(
                "Reservation status update failed",
                reservation_id=reservation_id,
                status=status,
                error=str(e),
            )
            return False

        self._records = tuple(
            record.model_copy(update={"status": status}) if record.id == reservation_id else record
            for record in self._records
        )
        logger.info("Reservation status updated", reservation_id=reservation_id, status=status)
        return True

    async def confirm_arrival(self, reservation_id: str) -> bool:
        return await self.update_status(reservation_id, ReservationStatus.ARRIVED.value)

    def subscribe(self, on_change: OnChange) -> Unsubscribe:
        """Reload on every change to reservations or table assignments.

        ``on_change`` runs after the refreshed set is cached. The returned
        callable releases the listener.
        """
        subscription = self._data_source.subscribe(RESERVATION_TABLES)
        task = asyncio.create_task(self._follow(subscription, on_change))
        watcher = (subscription, task)
        self._watchers.append(watcher)

        def unsubscribe() -> None:
            subscription.close()
            task.cancel()
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unsubscribe

    async def _follow(self, subscription: ChangeSubscription, on_change: OnChange) -> None:
        async for event in subscription:
            # A full reload covers every notification queued so far
            coalesced = subscription.drain()
            logger.debug(
                "Reservation change received",
                table=event.table,
                operation=event.operation.value,
                coalesced=len(coalesced),
            )

            try:
                await self.load()
            except FetchFailure as e:
                logger.warning("Reload after change failed, keeping cached reservations", error=str(e))
                continue

            try:
                result = on_change()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Reservation change listener failed")

    async def close(self) -> None:
        """Release every subscription and wait for the workers to stop"""
        watchers, self._watchers = self._watchers, []
        for subscription, task in watchers:
            subscription.close()
            task.cancel()
        for _, task in watchers:
            try:
                await task
            except asyncio.CancelledError:
                pass
