"""Tests for the daily menu lifecycle and publish guardrails"""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from catering.errors import (
    AccessDenied,
    AlreadyExists,
    DuplicateMenuForDate,
    InvalidDate,
    InvalidStateTransition,
    MenuNotEditable,
    NotFound,
    ValidationFailed,
)
from catering.models import DailyMenu, DailyMenuPack, DailyMenuStatus, DailyMenuVariant, OrderStatus
from catering.services.daily_menus import DailyMenuLifecycle

TODAY = date(2024, 3, 15)
YESTERDAY = date(2024, 3, 14)


@pytest.mark.asyncio
async def test_create_menu_defaults(test_db, clock, catalog):
    menu = await DailyMenuLifecycle(test_db, clock).create(TODAY)

    assert menu.status == DailyMenuStatus.DRAFT
    assert menu.cutoff_hour == "14:00"
    assert menu.published_at is None


@pytest.mark.asyncio
async def test_one_menu_per_date(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    await lifecycle.create(TODAY)

    with pytest.raises(DuplicateMenuForDate):
        await lifecycle.create(TODAY, "12:00")


@pytest.mark.asyncio
async def test_concurrent_create_for_same_date(test_db, clock, catalog, monkeypatch):
    """A menu committed after the existence check still maps to DuplicateMenuForDate"""
    lifecycle = DailyMenuLifecycle(test_db, clock)
    await lifecycle.create(TODAY)

    async def not_seen_yet(self, menu_date):
        return False

    monkeypatch.setattr(DailyMenuLifecycle, "_menu_exists", not_seen_yet)

    with pytest.raises(DuplicateMenuForDate):
        await lifecycle.create(TODAY, "12:00")

    result = await test_db.execute(select(DailyMenu).where(DailyMenu.date == TODAY))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("cutoff", ["24:00", "9:30", "noon"])
async def test_create_rejects_bad_cutoff(test_db, clock, catalog, cutoff):
    with pytest.raises(InvalidDate):
        await DailyMenuLifecycle(test_db, clock).create(TODAY, cutoff)


@pytest.mark.asyncio
async def test_lifecycle_transitions(test_db, clock, catalog, super_admin, business_admin):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    menu_id = menu.id

    # Never DRAFT -> LOCKED
    with pytest.raises(InvalidStateTransition):
        await lifecycle.lock(menu_id)

    published = await lifecycle.publish(menu_id)
    assert published.menu.status == DailyMenuStatus.PUBLISHED
    assert published.menu.published_at == datetime(2024, 3, 15, 10, 0)

    with pytest.raises(InvalidStateTransition):
        await lifecycle.publish(menu_id)

    locked = await lifecycle.lock(menu_id)
    assert locked.status == DailyMenuStatus.LOCKED

    with pytest.raises(AccessDenied):
        await lifecycle.unlock(menu_id, business_admin)

    unlocked = await lifecycle.unlock(menu_id, super_admin)
    assert unlocked.status == DailyMenuStatus.PUBLISHED

    with pytest.raises(InvalidStateTransition):
        await lifecycle.unlock(menu_id, super_admin)


@pytest.mark.asyncio
async def test_removals_only_while_draft(test_db, clock, catalog, todays_menu):
    lifecycle = DailyMenuLifecycle(test_db, clock)

    with pytest.raises(MenuNotEditable):
        await lifecycle.remove_variant(todays_menu, catalog.lentil)
    with pytest.raises(MenuNotEditable):
        await lifecycle.remove_pack(todays_menu, catalog.express)
    with pytest.raises(MenuNotEditable):
        await lifecycle.remove_service(todays_menu, catalog.lunch)
    with pytest.raises(MenuNotEditable):
        await lifecycle.remove_service_variant(todays_menu, catalog.lunch, catalog.mint)
    with pytest.raises(MenuNotEditable):
        await lifecycle.delete(todays_menu)

    # Additions and stock changes remain open on a published menu
    await lifecycle.add_variant(todays_menu, catalog.mint, 3)
    row = await lifecycle.update_variant_stock(todays_menu, catalog.lentil, 7)
    assert row.initial_stock == 7


@pytest.mark.asyncio
async def test_locked_menu_refuses_edits(test_db, clock, catalog, todays_menu):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    await lifecycle.lock(todays_menu)

    with pytest.raises(MenuNotEditable):
        await lifecycle.add_variant(todays_menu, catalog.mint, 3)
    with pytest.raises(MenuNotEditable):
        await lifecycle.update_service_variant_stock(todays_menu, catalog.lunch, catalog.mint, 9)
    with pytest.raises(MenuNotEditable):
        await lifecycle.update_cutoff_hour(todays_menu, "15:00")


@pytest.mark.asyncio
async def test_duplicate_attachments_rejected(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    await lifecycle.add_pack(menu.id, catalog.express)
    await lifecycle.add_variant(menu.id, catalog.lentil, 2)

    with pytest.raises(AlreadyExists):
        await lifecycle.add_pack(menu.id, catalog.express)
    with pytest.raises(AlreadyExists):
        await lifecycle.add_variant(menu.id, catalog.lentil, 4)


@pytest.mark.asyncio
async def test_negative_stock_rejected(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)

    with pytest.raises(ValidationFailed):
        await lifecycle.add_variant(menu.id, catalog.lentil, -1)


@pytest.mark.asyncio
async def test_add_variant_uses_default_stock(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)

    row = await lifecycle.add_variant(menu.id, catalog.lentil)

    assert row.initial_stock == 50


@pytest.mark.asyncio
async def test_service_attach_and_detach(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    menu_id = menu.id

    await lifecycle.add_service(menu_id, catalog.lunch)
    await lifecycle.add_service_variant(menu_id, catalog.lunch, catalog.lentil, 4)

    menu = await lifecycle.get_menu(menu_id)
    assert {p.pack_id for p in menu.packs} == {catalog.lunch_box, catalog.lunch_plus}
    assert [v.variant_id for v in menu.services[0].variants] == [catalog.lentil]

    with pytest.raises(AlreadyExists):
        await lifecycle.add_service(menu_id, catalog.lunch)

    await lifecycle.remove_service(menu_id, catalog.lunch)

    menu = await lifecycle.get_menu(menu_id)
    assert menu.packs == []
    assert menu.services == []


@pytest.mark.asyncio
async def test_service_variant_requires_attached_service(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)

    with pytest.raises(NotFound):
        await lifecycle.add_service_variant(menu.id, catalog.lunch, catalog.lentil, 4)


@pytest.mark.asyncio
async def test_delete_draft_removes_children(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    menu_id = menu.id
    await lifecycle.add_pack(menu_id, catalog.express)
    await lifecycle.add_variant(menu_id, catalog.lentil, 2)
    await lifecycle.add_service(menu_id, catalog.lunch)
    await lifecycle.add_service_variant(menu_id, catalog.lunch, catalog.tomato, 2)

    await lifecycle.delete(menu_id)

    assert await lifecycle.get_menu_by_date(TODAY) is None
    for model in (DailyMenuPack, DailyMenuVariant):
        result = await test_db.execute(select(model).where(model.daily_menu_id == menu_id))
        assert result.scalars().all() == []
    with pytest.raises(NotFound):
        await lifecycle.get_menu(menu_id)


@pytest.mark.asyncio
async def test_publish_composition_warnings(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    menu_id = menu.id
    await lifecycle.add_pack(menu_id, catalog.express)
    await lifecycle.add_variant(menu_id, catalog.lentil, 3)
    # Zero stock does not count as available
    await lifecycle.add_variant(menu_id, catalog.tomato, 0)
    await lifecycle.add_service(menu_id, catalog.lunch)
    await lifecycle.add_service_variant(menu_id, catalog.lunch, catalog.lentil, 5)
    await lifecycle.add_service_variant(menu_id, catalog.lunch, catalog.tomato, 5)

    result = await lifecycle.publish(menu_id)

    assert result.menu.status == DailyMenuStatus.PUBLISHED
    assert sorted(result.warnings) == [
        'Component "Soup" in pack "Express" has only 1 variant available',
        'Pack "Lunch Box" is missing required component "Drink"',
    ]


@pytest.mark.asyncio
async def test_publish_warns_when_stock_below_yesterdays_usage(test_db, clock, catalog, order_factory):
    for _ in range(3):
        await order_factory(catalog.business, catalog.express, YESTERDAY, [(catalog.soup, catalog.lentil)])
    # Unlocked orders are not consumption
    await order_factory(
        catalog.business,
        catalog.express,
        YESTERDAY,
        [(catalog.soup, catalog.tomato)],
        status=OrderStatus.CANCELLED,
    )

    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    await lifecycle.add_pack(menu.id, catalog.express)
    await lifecycle.add_variant(menu.id, catalog.lentil, 1)
    await lifecycle.add_variant(menu.id, catalog.tomato, 1)

    result = await lifecycle.publish(menu.id)

    assert "Variant \"Lentil\" has stock 1 which is less than yesterday's usage of 3" in result.warnings
    assert not any("Tomato" in w and "usage" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_published_view_hides_sold_out_variants(test_db, clock, catalog, todays_menu):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    await lifecycle.update_variant_stock(todays_menu, catalog.lentil, 0)

    view = await lifecycle.get_published_menu(TODAY)

    express = next(p for p in view["packs"] if p["id"] == catalog.express)
    soup = next(c for c in express["components"] if c["id"] == catalog.soup)
    assert [v["name"] for v in soup["variants"]] == ["Tomato"]
    assert express["service_id"] is None
    assert express["ordering_open"] is True
    assert express["cutoff"] == datetime(2024, 3, 15, 14, 0)

    lunch_box = next(p for p in view["packs"] if p["id"] == catalog.lunch_box)
    assert lunch_box["service_id"] == catalog.lunch
    assert lunch_box["cutoff"] == datetime(2024, 3, 15, 11, 0)
    soup = next(c for c in lunch_box["components"] if c["id"] == catalog.soup)
    assert {v["name"] for v in soup["variants"]} == {"Lentil", "Tomato"}


@pytest.mark.asyncio
async def test_published_view_requires_published_menu(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)

    with pytest.raises(NotFound):
        await lifecycle.get_published_menu(TODAY)

    await lifecycle.create(TODAY)
    with pytest.raises(NotFound, match="DRAFT"):
        await lifecycle.get_published_menu(TODAY)


@pytest.mark.asyncio
async def test_list_menus_newest_first(test_db, clock, catalog):
    lifecycle = DailyMenuLifecycle(test_db, clock)
    await lifecycle.create(YESTERDAY)
    await lifecycle.create(TODAY)

    menus = await lifecycle.list_menus()

    assert [m.date for m in menus] == [TODAY, YESTERDAY]
    assert isinstance(menus[0], DailyMenu)
