"""Test configuration and fixtures"""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from catering.main import app
from catering.api.auth import create_access_token
from catering.clock import Clock, get_clock
from catering.database import Base, get_db
from catering.identity import CallerIdentity, UserRole
from catering.models import (
    Business,
    Component,
    Employee,
    EmployeeStatus,
    Order,
    OrderItem,
    OrderStatus,
    Pack,
    PackComponent,
    Service,
    ServicePack,
    Variant,
)
from catering.models.order import service_scope
from catering.services.daily_menus import DailyMenuLifecycle


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TODAY = date(2024, 3, 15)


class FrozenClock(Clock):
    """Clock pinned to ``current``; tests move it by assignment"""

    def __init__(self, current: datetime):
        super().__init__()
        self.current = current

    def now(self) -> datetime:
        return self.current


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def clock():
    """2024-03-15 10:00 local"""
    return FrozenClock(datetime(2024, 3, 15, 10, 0))


@pytest.fixture
async def catalog(test_db):
    """
    Components, variants, packs, a published Lunch service and two businesses.

    Only ids and plain values are exposed: a rollback inside a service call
    expires every loaded instance.
    """
    ids = SimpleNamespace(**{name: uuid4() for name in (
        "soup", "drink", "lentil", "tomato", "lemonade", "mint",
        "express", "lunch_box", "lunch_plus", "lunch", "dinner", "dinner_pack",
        "business", "other_business", "employee", "employee_2", "inactive_employee", "other_employee",
    )})

    test_db.add_all([
        Component(id=ids.soup, name="Soup"),
        Component(id=ids.drink, name="Drink"),
    ])
    await test_db.flush()

    test_db.add_all([
        Variant(id=ids.lentil, component_id=ids.soup, name="Lentil"),
        Variant(id=ids.tomato, component_id=ids.soup, name="Tomato"),
        Variant(id=ids.lemonade, component_id=ids.drink, name="Lemonade"),
        Variant(id=ids.mint, component_id=ids.drink, name="Mint Tea"),
        Pack(id=ids.express, name="Express", price=Decimal("8.50")),
        Pack(id=ids.lunch_box, name="Lunch Box", price=Decimal("11.00")),
        Pack(id=ids.lunch_plus, name="Lunch Box Plus", price=Decimal("14.00")),
        Pack(id=ids.dinner_pack, name="Dinner Box", price=Decimal("13.00")),
        Service(
            id=ids.lunch,
            name="Lunch",
            order_start_time="08:00",
            cutoff_time="11:00",
            is_active=True,
            is_published=True,
        ),
        Service(id=ids.dinner, name="Dinner", is_active=True, is_published=False),
        Business(id=ids.business, name="Acme"),
        Business(id=ids.other_business, name="Globex"),
    ])
    await test_db.flush()

    test_db.add_all([
        PackComponent(pack_id=ids.express, component_id=ids.soup, required=True, order_index=0),
        PackComponent(pack_id=ids.express, component_id=ids.drink, required=False, order_index=1),
        PackComponent(pack_id=ids.lunch_box, component_id=ids.soup, required=True, order_index=0),
        PackComponent(pack_id=ids.lunch_box, component_id=ids.drink, required=True, order_index=1),
        PackComponent(pack_id=ids.lunch_plus, component_id=ids.soup, required=True, order_index=0),
        PackComponent(pack_id=ids.dinner_pack, component_id=ids.soup, required=True, order_index=0),
        ServicePack(service_id=ids.lunch, pack_id=ids.lunch_box),
        ServicePack(service_id=ids.lunch, pack_id=ids.lunch_plus),
        ServicePack(service_id=ids.dinner, pack_id=ids.dinner_pack),
        Employee(id=ids.employee, business_id=ids.business, email="sam@acme.test", first_name="Sam"),
        Employee(id=ids.employee_2, business_id=ids.business, email="alex@acme.test", first_name="Alex"),
        Employee(
            id=ids.inactive_employee,
            business_id=ids.business,
            email="gone@acme.test",
            status=EmployeeStatus.INACTIVE,
        ),
        Employee(id=ids.other_employee, business_id=ids.other_business, email="kim@globex.test"),
    ])
    await test_db.commit()

    return ids


@pytest.fixture
def super_admin():
    return CallerIdentity(user_id=uuid4(), role=UserRole.SUPER_ADMIN)


@pytest.fixture
def business_admin(catalog):
    return CallerIdentity(user_id=uuid4(), role=UserRole.BUSINESS_ADMIN, business_id=catalog.business)


@pytest.fixture
def employee(catalog):
    return employee_identity(catalog.employee, catalog.business)


def employee_identity(employee_id, business_id):
    return CallerIdentity(
        user_id=uuid4(),
        role=UserRole.EMPLOYEE,
        business_id=business_id,
        employee_id=employee_id,
    )


@pytest.fixture
async def todays_menu(test_db, clock, catalog):
    """
    PUBLISHED menu for 2024-03-15 (cutoff 14:00).

    Legacy Express pack with menu stock Lentil=1, Tomato=5, Lemonade=10.
    Lunch service (08:00-11:00) with service stock of 5 for every variant.
    """
    lifecycle = DailyMenuLifecycle(test_db, clock)
    menu = await lifecycle.create(TODAY)
    await lifecycle.add_pack(menu.id, catalog.express)
    await lifecycle.add_variant(menu.id, catalog.lentil, 1)
    await lifecycle.add_variant(menu.id, catalog.tomato, 5)
    await lifecycle.add_variant(menu.id, catalog.lemonade, 10)
    await lifecycle.add_service(menu.id, catalog.lunch)
    for variant_id in (catalog.lentil, catalog.tomato, catalog.lemonade, catalog.mint):
        await lifecycle.add_service_variant(menu.id, catalog.lunch, variant_id, 5)
    await lifecycle.publish(menu.id)
    return menu.id


@pytest.fixture
def order_factory(test_db):
    """Insert an order directly, creating a throwaway employee when none is given"""

    async def _make(
        business_id,
        pack_id,
        order_date,
        items,
        status=OrderStatus.LOCKED,
        employee_id=None,
        service_id=None,
        total_amount=Decimal("8.50"),
    ):
        if employee_id is None:
            employee_id = uuid4()
            test_db.add(Employee(id=employee_id, business_id=business_id, email=f"{employee_id}@test"))
        order_id = uuid4()
        test_db.add(Order(
            id=order_id,
            employee_id=employee_id,
            business_id=business_id,
            pack_id=pack_id,
            service_id=service_id,
            service_scope=service_scope(service_id),
            order_date=order_date,
            status=status,
            total_amount=total_amount,
            items=[OrderItem(component_id=c, variant_id=v) for c, v in items],
        ))
        await test_db.commit()
        return order_id

    return _make


@pytest.fixture
async def client(test_db, clock):
    """Create test client with overridden database and clock"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def _bearer(identity: CallerIdentity) -> dict:
    token = create_access_token(
        identity.user_id, identity.role, identity.business_id, identity.employee_id
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(super_admin):
    return _bearer(super_admin)


@pytest.fixture
def business_admin_headers(business_admin):
    return _bearer(business_admin)


@pytest.fixture
def employee_headers(employee):
    return _bearer(employee)


@pytest.fixture
def colleague_headers(catalog):
    return _bearer(employee_identity(catalog.employee_2, catalog.business))
