"""Tests for ordering window resolution and enforcement"""

from datetime import date, datetime

import pytest

from catering.errors import DayLocked, OrderingWindowClosed
from catering.models import DayLock, Meal, Service
from catering.services.daily_menus import DailyMenuLifecycle
from catering.services.ordering_window import OrderingLockStore, OrderingWindowEvaluator

TODAY = date(2024, 3, 15)


@pytest.mark.asyncio
async def test_no_cutoff_source_is_closed(test_db, clock, catalog):
    """A date with no menu, service or meal has no window at all"""
    evaluator = OrderingWindowEvaluator(test_db, clock)

    assert await evaluator.resolve_window(TODAY) is None
    with pytest.raises(OrderingWindowClosed):
        await evaluator.check_ordering_allowed(TODAY)


@pytest.mark.asyncio
async def test_menu_cutoff_boundary_is_exclusive(test_db, clock, catalog, todays_menu):
    evaluator = OrderingWindowEvaluator(test_db, clock)

    clock.current = datetime(2024, 3, 15, 13, 59, 59)
    window = await evaluator.check_ordering_allowed(TODAY, catalog.express)
    assert window.source == "daily_menu"
    assert window.cutoff == datetime(2024, 3, 15, 14, 0)

    clock.current = datetime(2024, 3, 15, 14, 0)
    with pytest.raises(OrderingWindowClosed, match="14:00"):
        await evaluator.check_ordering_allowed(TODAY, catalog.express)


@pytest.mark.asyncio
async def test_service_window_overrides_menu_cutoff(test_db, clock, catalog, todays_menu):
    evaluator = OrderingWindowEvaluator(test_db, clock)

    window = await evaluator.resolve_window(TODAY, catalog.lunch_box)
    assert window.source == "service"
    assert window.order_start == datetime(2024, 3, 15, 8, 0)
    assert window.cutoff == datetime(2024, 3, 15, 11, 0)

    clock.current = datetime(2024, 3, 15, 7, 59)
    with pytest.raises(OrderingWindowClosed, match="starts at 08:00"):
        await evaluator.check_ordering_allowed(TODAY, catalog.lunch_box)

    clock.current = datetime(2024, 3, 15, 8, 0)
    await evaluator.check_ordering_allowed(TODAY, catalog.lunch_box)

    # Past the service cutoff the legacy pack still follows the menu's 14:00
    clock.current = datetime(2024, 3, 15, 11, 0)
    with pytest.raises(OrderingWindowClosed):
        await evaluator.check_ordering_allowed(TODAY, catalog.lunch_box)
    await evaluator.check_ordering_allowed(TODAY, catalog.express)


@pytest.mark.asyncio
async def test_inactive_service_falls_back_to_menu_cutoff(test_db, clock, catalog, todays_menu):
    service = await test_db.get(Service, catalog.lunch)
    service.is_active = False
    await test_db.commit()

    window = await OrderingWindowEvaluator(test_db, clock).resolve_window(TODAY, catalog.lunch_box)

    assert window.source == "daily_menu"
    assert window.order_start is None
    assert window.cutoff == datetime(2024, 3, 15, 14, 0)


@pytest.mark.asyncio
async def test_meal_fallback_uses_earliest_active_cutoff(test_db, clock, catalog):
    test_db.add_all([
        Meal(name="Couscous", available_date=TODAY, cutoff_time=datetime(2024, 3, 15, 12, 30)),
        Meal(name="Tajine", available_date=TODAY, cutoff_time=datetime(2024, 3, 15, 12, 0)),
        Meal(
            name="Archived",
            available_date=TODAY,
            cutoff_time=datetime(2024, 3, 15, 9, 0),
            status="ARCHIVED",
        ),
    ])
    await test_db.commit()
    evaluator = OrderingWindowEvaluator(test_db, clock)

    window = await evaluator.resolve_window(TODAY)
    assert window.source == "meal"
    assert window.cutoff == datetime(2024, 3, 15, 12, 0)

    clock.current = datetime(2024, 3, 15, 12, 0)
    with pytest.raises(OrderingWindowClosed):
        await evaluator.check_ordering_allowed(TODAY)


@pytest.mark.asyncio
async def test_manual_lock_closes_open_window(test_db, clock, catalog, todays_menu):
    store = OrderingLockStore(test_db)
    evaluator = OrderingWindowEvaluator(test_db, clock, store)

    await store.lock(TODAY)
    assert await store.is_locked(TODAY)
    with pytest.raises(OrderingWindowClosed, match="locked"):
        await evaluator.check_ordering_allowed(TODAY, catalog.express)

    await store.unlock(TODAY)
    assert await store.get_lock_status(TODAY) == {"date": "2024-03-15", "locked": False}
    await evaluator.check_ordering_allowed(TODAY, catalog.express)

    locks = await store.list_locks()
    assert [lock.lock_date for lock in locks] == [TODAY]


@pytest.mark.asyncio
async def test_unknown_date_is_unlocked(test_db):
    store = OrderingLockStore(test_db)

    assert await store.is_locked(date(2030, 1, 1)) is False


@pytest.mark.asyncio
async def test_day_lock_takes_precedence(test_db, clock, catalog, todays_menu):
    test_db.add(DayLock(lock_date=TODAY))
    await test_db.commit()
    evaluator = OrderingWindowEvaluator(test_db, clock)

    with pytest.raises(DayLocked):
        await evaluator.check_ordering_allowed(TODAY, catalog.express)
    assert await evaluator.cutoff_passed(TODAY, catalog.express) is True


@pytest.mark.asyncio
async def test_cutoff_passed_by_date(test_db, clock, catalog, todays_menu):
    evaluator = OrderingWindowEvaluator(test_db, clock)

    assert await evaluator.cutoff_passed(date(2024, 3, 14)) is True
    assert await evaluator.cutoff_passed(date(2024, 3, 16)) is False
    assert await evaluator.cutoff_passed(TODAY, catalog.express) is False

    clock.current = datetime(2024, 3, 15, 11, 0)
    assert await evaluator.cutoff_passed(TODAY, catalog.lunch_box) is True
    assert await evaluator.cutoff_passed(TODAY, catalog.express) is False


@pytest.mark.asyncio
async def test_cutoff_for_date_follows_menu_updates(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY, "12:30")
    evaluator = OrderingWindowEvaluator(test_db, clock)

    assert await evaluator.get_cutoff_for_date(TODAY) == datetime(2024, 3, 15, 12, 30)

    await lifecycle.update_cutoff_hour(menu.id, "15:45")
    assert await evaluator.get_cutoff_for_date(TODAY) == datetime(2024, 3, 15, 15, 45)
