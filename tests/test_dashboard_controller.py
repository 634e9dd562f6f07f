"""Tests for the dashboard controller"""

import asyncio
from datetime import date

import pytest

from app.services.change_feed import ChangeEvent, ChangeOperation
from app.services.dashboard import DashboardController
from tests.conftest import DAY, NEXT_DAY, make_record


@pytest.mark.asyncio
async def test_snapshot_for_a_day(fake_source):
    controller = DashboardController(fake_source, DAY)

    snapshot = await controller.set_scope_date(DAY)

    assert snapshot.scope_date == DAY
    assert snapshot.is_loading is False
    assert snapshot.stats.today_reservations == 4
    assert snapshot.stats.confirmed_reservations == 1
    assert snapshot.stats.arrived_reservations == 1
    assert snapshot.stats.cancelled_reservations == 1
    assert snapshot.stats.active_reservations == 2
    assert snapshot.stats.total_tables == 4
    assert snapshot.stats.occupancy_rate == 50
    assert snapshot.stats.total_guests == 6
    assert [item.id for item in snapshot.recent_reservations] == ["r4", "r3", "r2", "r1"]
    await controller.close()


@pytest.mark.asyncio
async def test_loading_snapshot_published_first(fake_source):
    controller = DashboardController(fake_source, DAY)
    published = []
    controller.add_listener(published.append)

    await controller.set_scope_date(NEXT_DAY)

    assert [s.is_loading for s in published] == [True, False]
    assert all(s.scope_date == NEXT_DAY for s in published)
    assert published[0].stats.today_reservations == 0
    await controller.close()


@pytest.mark.asyncio
async def test_recent_reservations_limited(fake_source):
    fake_source.records = [
        make_record(f"x{hour}", at=f"{hour}:00") for hour in range(12, 20)
    ]
    controller = DashboardController(fake_source, DAY, recent_limit=5)

    snapshot = await controller.set_scope_date(DAY)

    assert [item.id for item in snapshot.recent_reservations] == ["x19", "x18", "x17", "x16", "x15"]
    await controller.close()


@pytest.mark.asyncio
async def test_advance_date_crosses_month_end(fake_source):
    controller = DashboardController(fake_source, date(2025, 1, 31))

    snapshot = await controller.advance_date(1)

    assert controller.scope_date == date(2025, 2, 1)
    assert snapshot.scope_date == date(2025, 2, 1)

    await controller.advance_date(-1)
    assert controller.scope_date == date(2025, 1, 31)
    await controller.close()


@pytest.mark.asyncio
async def test_advance_date_rejects_other_steps(fake_source):
    controller = DashboardController(fake_source, DAY)

    with pytest.raises(ValueError):
        await controller.advance_date(2)
    with pytest.raises(ValueError):
        await controller.advance_date(0)

    assert controller.scope_date == DAY


@pytest.mark.asyncio
async def test_latest_requested_date_wins(fake_source):
    """The slower load of an earlier selection is dropped"""
    controller = DashboardController(fake_source, DAY)
    gate = asyncio.Event()
    fake_source.gates[DAY] = gate

    slow = asyncio.create_task(controller.set_scope_date(DAY))
    await asyncio.sleep(0.01)
    await controller.set_scope_date(NEXT_DAY)
    gate.set()
    await slow

    assert controller.scope_date == NEXT_DAY
    assert controller.snapshot.scope_date == NEXT_DAY
    assert controller.snapshot.stats.today_reservations == 1
    assert [item.id for item in controller.snapshot.recent_reservations] == ["r5"]
    await controller.close()


@pytest.mark.asyncio
async def test_failed_load_shows_empty_dashboard(fake_source):
    fake_source.fail_fetch = True
    controller = DashboardController(fake_source, DAY)

    snapshot = await controller.set_scope_date(DAY)

    assert snapshot.is_loading is False
    assert snapshot.scope_date == DAY
    assert snapshot.stats.today_reservations == 0
    assert snapshot.stats.occupancy_rate == 0
    assert snapshot.recent_reservations == []
    await controller.close()


@pytest.mark.asyncio
async def test_failed_table_load_shows_empty_dashboard(fake_source):
    fake_source.fail_tables = True
    controller = DashboardController(fake_source, DAY)

    snapshot = await controller.set_scope_date(DAY)

    assert snapshot.stats.today_reservations == 0
    assert snapshot.recent_reservations == []
    await controller.close()


@pytest.mark.asyncio
async def test_no_tables_means_zero_occupancy(fake_source):
    fake_source.tables = []
    controller = DashboardController(fake_source, DAY)

    snapshot = await controller.set_scope_date(DAY)

    assert snapshot.stats.total_tables == 0
    assert snapshot.stats.occupancy_rate == 0
    assert snapshot.stats.active_reservations == 2
    await controller.close()


@pytest.mark.asyncio
async def test_live_change_republishes_snapshot(fake_source):
    controller = DashboardController(fake_source, DAY)
    await controller.start()
    updated = asyncio.Event()
    published = []

    def listener(snapshot):
        published.append(snapshot)
        updated.set()

    controller.add_listener(listener)

    fake_source.records.append(make_record("r9", at="22:30", guests=4, status="confirmed"))
    fake_source.feed.publish(ChangeEvent(table="reservations", operation=ChangeOperation.INSERT))
    await asyncio.wait_for(updated.wait(), timeout=1)

    assert published[-1].stats.today_reservations == 5
    assert published[-1].stats.active_reservations == 3
    assert published[-1].stats.total_guests == 10

    await controller.close()
    assert fake_source.feed.subscriber_count == 0
