"""Dashboard state for one selected date"""

import asyncio
import inspect
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo

import structlog

from app.schemas.reservation import (
    DashboardSnapshot,
    DashboardStats,
    RecentReservation,
    ReservationRecord,
)
from app.services.data_source import DataSource
from app.services.metrics import compute_metrics, occupancy_rate, recent_reservations
from app.services.reservation_store import ReservationStore, Unsubscribe

logger = structlog.get_logger()

SnapshotListener = Callable[[DashboardSnapshot], Union[None, Awaitable[None]]]


def restaurant_today(timezone: str) -> date:
    """Current calendar date at the restaurant"""
    return datetime.now(ZoneInfo(timezone)).date()


class DashboardController:
    """Stats, recent reservations and loading state for the selected date.

    The most recently requested date always wins: each load remembers the
    date it was started for and is dropped on completion if the selection has
    moved on since.
    """

    def __init__(self, data_source: DataSource, scope_date: date, recent_limit: int = 5):
        self._data_source = data_source
        self._store = ReservationStore(data_source, scope=scope_date)
        self._scope_date = scope_date
        self._recent_limit = recent_limit
        self._total_tables = 0
        self._snapshot = DashboardSnapshot.empty(scope_date, is_loading=True)
        self._listeners: List[SnapshotListener] = []
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def scope_date(self) -> date:
        return self._scope_date

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    @property
    def store(self) -> ReservationStore:
        return self._store

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self) -> DashboardSnapshot:
        """Follow live changes and load the current date"""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_store_change)
        return await self.set_scope_date(self._scope_date)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._store.close()
        self._listeners.clear()

    async def refresh(self) -> DashboardSnapshot:
        return await self.set_scope_date(self._scope_date)

    async def advance_date(self, direction: int) -> DashboardSnapshot:
        """Move the selection one calendar day back (-1) or forward (+1)"""
        if direction not in (-1, 1):
            raise ValueError(f"direction must be -1 or +1, got {direction!r}")
        return await self.set_scope_date(self._scope_date + timedelta(days=direction))

    async def set_scope_date(self, scope_date: date) -> DashboardSnapshot:
        if scope_date == self._scope_date and self._snapshot.scope_date == scope_date:
            loading = self._snapshot.model_copy(update={"is_loading": True})
        else:
            loading = DashboardSnapshot.empty(scope_date, is_loading=True)
        self._scope_date = scope_date
        await self._publish(loading)

        requested = scope_date
        try:
            records, tables = await asyncio.gather(
                self._store.load(requested),
                self._data_source.fetch_tables(active_only=True),
            )
        except Exception:
            if self._scope_date != requested:
                return self._snapshot
            logger.exception("Error loading dashboard data", date=requested.isoformat())
            empty = DashboardSnapshot.empty(requested)
            await self._publish(empty)
            return empty

        if self._scope_date != requested:
            logger.info(
                "Discarding stale dashboard load",
                requested_date=requested.isoformat(),
                current_date=self._scope_date.isoformat(),
            )
            return self._snapshot

        self._total_tables = len(tables)
        snapshot = self._build(requested, records)
        await self._publish(snapshot)
        return snapshot

    async def _on_store_change(self) -> None:
        # The store reloads its own scope, which follows the selected date
        if self._store.loaded_scope != self._scope_date:
            return
        await self._publish(self._build(self._scope_date, self._store.records))

    def _build(self, scope_date: date, records: Sequence[ReservationRecord]) -> DashboardSnapshot:
        metrics = compute_metrics(records)
        stats = DashboardStats(
            today_reservations=metrics.total,
            confirmed_reservations=metrics.confirmed,
            cancelled_reservations=metrics.cancelled,
            arrived_reservations=metrics.arrived,
            active_reservations=metrics.active,
            total_tables=self._total_tables,
            occupancy_rate=occupancy_rate(metrics.active, self._total_tables),
            total_guests=metrics.total_guests,
        )
        recent = [
            RecentReservation(
                id=record.id,
                name=record.customer_name,
                email=record.email,
                date=record.date,
                time=record.time,
                guests=record.guests,
                status=record.status,
            )
            for record in recent_reservations(records, self._recent_limit)
        ]
        return DashboardSnapshot(
            scope_date=scope_date,
            stats=stats,
            recent_reservations=recent,
            is_loading=False,
        )

    async def _publish(self, snapshot: DashboardSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            result = listener(snapshot)
            if inspect.isawaitable(result):
                await result
