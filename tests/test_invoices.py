"""Tests for invoice generation and invoice status transitions"""

import re
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from catering.errors import (
    AccessDenied,
    InvalidStateTransition,
    InvoiceNumberExhausted,
    NoInvoiceableOrders,
    ValidationFailed,
)
from catering.identity import CallerIdentity, UserRole
from catering.models import Invoice, InvoiceStatus, OrderStatus
from catering.services.invoices import InvoiceGenerator, current_month

MARCH_START = date(2024, 3, 1)
MARCH_END = date(2024, 3, 31)


@pytest.fixture
async def march_orders(catalog, order_factory):
    """Two locked Lunch orders for Acme plus orders that must not be invoiced"""
    lunch_items = [(catalog.soup, catalog.lentil), (catalog.drink, catalog.mint)]
    ids = {
        "lunch": [
            await order_factory(
                catalog.business, catalog.lunch_box, date(2024, 3, day), lunch_items,
                service_id=catalog.lunch, total_amount=Decimal("11.00"),
            )
            for day in (4, 5)
        ],
    }
    # Not yet locked
    ids["created"] = await order_factory(
        catalog.business, catalog.lunch_box, date(2024, 3, 6), lunch_items,
        status=OrderStatus.CREATED, service_id=catalog.lunch, total_amount=Decimal("11.00"),
    )
    # Legacy pack, never invoiced
    ids["legacy"] = await order_factory(
        catalog.business, catalog.express, date(2024, 3, 4), [(catalog.soup, catalog.tomato)],
    )
    # Outside the period
    ids["april"] = await order_factory(
        catalog.business, catalog.lunch_box, date(2024, 4, 1), lunch_items,
        service_id=catalog.lunch, total_amount=Decimal("11.00"),
    )
    return ids


async def invoice_count(db) -> int:
    return (await db.execute(select(func.count(Invoice.id)))).scalar_one()


@pytest.mark.asyncio
async def test_generate_groups_locked_service_orders(test_db, clock, catalog, super_admin, march_orders):
    generator = InvoiceGenerator(test_db, clock)

    [invoice] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)

    assert invoice.business_id == catalog.business
    assert invoice.service_id == catalog.lunch
    assert invoice.status == InvoiceStatus.DRAFT
    assert re.fullmatch(r"INV-20240315-\d{4}", invoice.invoice_number)
    assert {item.order_id for item in invoice.items} == set(march_orders["lunch"])
    assert all(item.quantity == 1 for item in invoice.items)
    assert all(item.unit_price == Decimal("11.00") for item in invoice.items)
    assert all(item.pack_name == "Lunch Box" for item in invoice.items)
    assert invoice.subtotal == Decimal("22.00")
    assert invoice.tax is None
    assert invoice.total == Decimal("22.00")
    assert invoice.due_date == date(2024, 4, 30)


@pytest.mark.asyncio
async def test_generation_is_idempotent(test_db, clock, catalog, super_admin, march_orders):
    """Running generation twice for the same period yields one invoice"""
    generator = InvoiceGenerator(test_db, clock)

    [first] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    first_id = first.id
    [second] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)

    assert second.id == first_id
    assert await invoice_count(test_db) == 1

    # Still the same invoice once issued
    await generator.issue_invoice(first_id, super_admin)
    [third] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    assert third.id == first_id


@pytest.mark.asyncio
async def test_paid_orders_are_not_invoiced_again(test_db, clock, catalog, super_admin, march_orders):
    generator = InvoiceGenerator(test_db, clock)
    [invoice] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    invoice_id = invoice.id
    await generator.issue_invoice(invoice_id, super_admin)
    await generator.mark_as_paid(invoice_id, super_admin)

    with pytest.raises(NoInvoiceableOrders):
        await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)


@pytest.mark.asyncio
async def test_no_locked_orders(test_db, clock, catalog, super_admin):
    with pytest.raises(NoInvoiceableOrders):
        await InvoiceGenerator(test_db, clock).generate_invoices(MARCH_START, MARCH_END, super_admin)


@pytest.mark.asyncio
async def test_legacy_only_period_has_nothing_to_invoice(test_db, clock, catalog, super_admin, order_factory):
    await order_factory(catalog.business, catalog.express, date(2024, 3, 4), [(catalog.soup, catalog.tomato)])

    with pytest.raises(NoInvoiceableOrders):
        await InvoiceGenerator(test_db, clock).generate_invoices(MARCH_START, MARCH_END, super_admin)


@pytest.mark.asyncio
async def test_period_must_be_ordered(test_db, clock, catalog, super_admin):
    with pytest.raises(ValidationFailed):
        await InvoiceGenerator(test_db, clock).generate_invoices(MARCH_END, MARCH_START, super_admin)


@pytest.mark.asyncio
async def test_invoice_transitions(test_db, clock, catalog, super_admin, march_orders):
    generator = InvoiceGenerator(test_db, clock)
    [invoice] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    invoice_id = invoice.id

    with pytest.raises(InvalidStateTransition):
        await generator.mark_as_paid(invoice_id, super_admin)

    issued = await generator.issue_invoice(invoice_id, super_admin)
    assert issued.status == InvoiceStatus.ISSUED
    assert issued.issued_at == datetime(2024, 3, 15, 10, 0)

    with pytest.raises(InvalidStateTransition):
        await generator.issue_invoice(invoice_id, super_admin)

    clock.current = datetime(2024, 4, 2, 9, 30)
    paid = await generator.mark_as_paid(invoice_id, super_admin)
    assert paid.status == InvoiceStatus.PAID
    assert paid.paid_at == datetime(2024, 4, 2, 9, 30)

    with pytest.raises(InvalidStateTransition):
        await generator.mark_as_paid(invoice_id, super_admin)


@pytest.mark.asyncio
async def test_number_collisions_exhaust_attempts(test_db, clock, catalog, super_admin, march_orders, order_factory, monkeypatch):
    generator = InvoiceGenerator(test_db, clock)
    [invoice] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    taken = invoice.invoice_number

    await order_factory(
        catalog.other_business, catalog.lunch_box, date(2024, 3, 4), [(catalog.soup, catalog.lentil)],
        service_id=catalog.lunch, total_amount=Decimal("11.00"),
    )
    monkeypatch.setattr(InvoiceGenerator, "_candidate_number", lambda self: taken)

    with pytest.raises(InvoiceNumberExhausted):
        await generator.generate_business_invoices(catalog.other_business, super_admin, MARCH_START, MARCH_END)
    assert await invoice_count(test_db) == 1


@pytest.mark.asyncio
async def test_number_taken_at_commit_is_retried(test_db, clock, catalog, super_admin, march_orders, order_factory, monkeypatch):
    generator = InvoiceGenerator(test_db, clock)
    [invoice] = await generator.generate_invoices(MARCH_START, MARCH_END, super_admin)
    taken = invoice.invoice_number
    fresh = "INV-20240315-9999" if taken != "INV-20240315-9999" else "INV-20240315-0000"

    await order_factory(
        catalog.other_business, catalog.lunch_box, date(2024, 3, 4), [(catalog.soup, catalog.lentil)],
        service_id=catalog.lunch, total_amount=Decimal("11.00"),
    )
    # The first number looked free but another invoice committed it first
    numbers = iter([taken, fresh])

    async def next_number(self):
        return next(numbers)

    monkeypatch.setattr(InvoiceGenerator, "_next_invoice_number", next_number)

    [created] = await generator.generate_business_invoices(catalog.other_business, super_admin, MARCH_START, MARCH_END)

    assert created.invoice_number == fresh
    assert created.business_id == catalog.other_business
    assert await invoice_count(test_db) == 2


@pytest.mark.asyncio
async def test_business_generation_defaults_to_current_month(test_db, clock, catalog, business_admin, march_orders):
    generator = InvoiceGenerator(test_db, clock)

    [invoice] = await generator.generate_business_invoices(catalog.business, business_admin)

    assert (invoice.period_start, invoice.period_end) == (MARCH_START, MARCH_END)
    assert current_month(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))


@pytest.mark.asyncio
async def test_access_rules(test_db, clock, catalog, super_admin, business_admin, employee, march_orders):
    generator = InvoiceGenerator(test_db, clock)
    outsider = CallerIdentity(user_id=uuid4(), role=UserRole.BUSINESS_ADMIN, business_id=catalog.other_business)

    with pytest.raises(AccessDenied):
        await generator.generate_invoices(MARCH_START, MARCH_END, business_admin)
    with pytest.raises(AccessDenied):
        await generator.generate_business_invoices(catalog.business, outsider)
    with pytest.raises(AccessDenied):
        await generator.generate_business_invoices(catalog.business, employee)

    [invoice] = await generator.generate_business_invoices(catalog.business, business_admin)
    invoice_id = invoice.id

    with pytest.raises(AccessDenied):
        await generator.issue_invoice(invoice_id, business_admin)
    with pytest.raises(AccessDenied):
        await generator.get_invoice(invoice_id, outsider)
    with pytest.raises(AccessDenied):
        await generator.list_invoices(business_admin)

    assert (await generator.get_invoice(invoice_id, business_admin)).id == invoice_id
    assert [i.id for i in await generator.list_business_invoices(business_admin)] == [invoice_id]
    assert await generator.list_business_invoices(outsider) == []
    assert len(await generator.list_invoices(super_admin)) == 1
