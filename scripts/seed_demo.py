#!/usr/bin/env python3
"""
Seed script to create a demo catalog, business and today's menu
"""

import asyncio
import uuid
from decimal import Decimal


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from catering.api.auth import create_access_token
    from catering.clock import Clock
    from catering.config import settings
    from catering.database import SessionLocal, engine, Base
    from catering.identity import UserRole
    from catering.models import (
        Business,
        BusinessService,
        BusinessServicePack,
        Component,
        Employee,
        Pack,
        PackComponent,
        Service,
        ServicePack,
        Variant,
    )
    from catering.services.daily_menus import DailyMenuLifecycle

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    clock = Clock()

    async with SessionLocal() as db:
        # Check if demo business already exists
        result = await db.execute(select(Business).where(Business.name == "Acme Offices"))
        if result.scalar_one_or_none():
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo catalog...")

        soup = Component(id=uuid.uuid4(), name="Soup")
        main = Component(id=uuid.uuid4(), name="Main")
        drink = Component(id=uuid.uuid4(), name="Drink")
        db.add_all([soup, main, drink])
        await db.flush()

        variants = {
            "Lentil Soup": Variant(id=uuid.uuid4(), component_id=soup.id, name="Lentil Soup"),
            "Tomato Soup": Variant(id=uuid.uuid4(), component_id=soup.id, name="Tomato Soup"),
            "Chicken Couscous": Variant(id=uuid.uuid4(), component_id=main.id, name="Chicken Couscous"),
            "Grilled Fish": Variant(id=uuid.uuid4(), component_id=main.id, name="Grilled Fish"),
            "Lemonade": Variant(id=uuid.uuid4(), component_id=drink.id, name="Lemonade"),
        }
        db.add_all(variants.values())

        express = Pack(id=uuid.uuid4(), name="Express", price=Decimal("8.50"))
        complete = Pack(id=uuid.uuid4(), name="Complete", price=Decimal("12.00"))
        db.add_all([express, complete])
        await db.flush()

        db.add_all([
            PackComponent(pack_id=express.id, component_id=soup.id, required=True, order_index=0),
            PackComponent(pack_id=express.id, component_id=drink.id, required=False, order_index=1),
            PackComponent(pack_id=complete.id, component_id=soup.id, required=True, order_index=0),
            PackComponent(pack_id=complete.id, component_id=main.id, required=True, order_index=1),
            PackComponent(pack_id=complete.id, component_id=drink.id, required=False, order_index=2),
        ])

        lunch = Service(
            id=uuid.uuid4(),
            name="Lunch",
            order_start_time="07:00",
            cutoff_time="11:00",
            is_active=True,
            is_published=True,
        )
        db.add(lunch)
        await db.flush()
        db.add_all([
            ServicePack(service_id=lunch.id, pack_id=express.id),
            ServicePack(service_id=lunch.id, pack_id=complete.id),
        ])

        print("Creating demo business...")

        business = Business(id=uuid.uuid4(), name="Acme Offices", email="office@acme.example")
        db.add(business)
        await db.flush()

        employee = Employee(
            id=uuid.uuid4(),
            business_id=business.id,
            email="sam@acme.example",
            first_name="Sam",
            last_name="Doe",
        )
        db.add(employee)

        subscription = BusinessService(id=uuid.uuid4(), business_id=business.id, service_id=lunch.id)
        db.add(subscription)
        await db.flush()
        db.add(BusinessServicePack(business_service_id=subscription.id, pack_id=express.id, is_active=True))

        await db.commit()

        print("Creating today's menu...")

        lifecycle = DailyMenuLifecycle(db, clock)
        menu = await lifecycle.create(clock.today())
        await lifecycle.add_service(menu.id, lunch.id)
        for variant in variants.values():
            await lifecycle.add_service_variant(menu.id, lunch.id, variant.id, 20)
        published = await lifecycle.publish(menu.id)

        super_admin_token = create_access_token(uuid.uuid4(), UserRole.SUPER_ADMIN)
        business_admin_token = create_access_token(uuid.uuid4(), UserRole.BUSINESS_ADMIN, business_id=business.id)
        employee_token = create_access_token(
            uuid.uuid4(), UserRole.EMPLOYEE, business_id=business.id, employee_id=employee.id
        )

        warnings = "\n".join(f"    - {w}" for w in published.warnings) or "    none"

        print(f"""
Demo data created successfully!

Business: Acme Offices
  ID: {business.id}
  Employee: sam@acme.example (ID: {employee.id})

Service: Lunch (ID: {lunch.id}), ordering 07:00-11:00
  Packs: Express ({express.id}), Complete ({complete.id})

Today's menu: {menu.date.isoformat()} (ID: {menu.id}), PUBLISHED
  Publish warnings:
{warnings}

Bearer tokens (expire after {settings.access_token_expire_minutes} minutes):
  SUPER_ADMIN:    {super_admin_token}
  BUSINESS_ADMIN: {business_admin_token}
  EMPLOYEE:       {employee_token}
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
