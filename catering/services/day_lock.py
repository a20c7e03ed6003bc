"""
Day locking

lock_day is permanent: the DayLock row is never removed and every CREATED
order of the date becomes LOCKED in the same transaction. reconcile_orders
is the lazy counterpart that catches orders whose day is locked, already
over, or past its cutoff without an explicit lock_day call.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catering.clock import Clock
from catering.database import atomic
from catering.errors import AlreadyLocked
from catering.identity import CallerIdentity
from catering.models.business import Business
from catering.models.catalog import Pack, Variant
from catering.models.ops import DayLock
from catering.models.order import Order, OrderItem, OrderStatus
from catering.services.ordering_window import OrderingWindowEvaluator, day_lock_exists

logger = structlog.get_logger()


@dataclass
class DayLockResult:
    lock_date: date
    orders_locked: int
    locked_at: datetime


class DayLockEngine:
    """Locks days and freezes their orders"""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    async def is_day_locked(self, day: date) -> bool:
        return await day_lock_exists(self.db, day)

    async def lock_day(self, day: date, identity: Optional[CallerIdentity] = None) -> DayLockResult:
        if await day_lock_exists(self.db, day):
            raise AlreadyLocked(f"Day {day.isoformat()} is already locked")

        locked_at = self.clock.now()
        try:
            async with atomic(self.db):
                self.db.add(DayLock(
                    lock_date=day,
                    locked_by=identity.user_id if identity else None,
                    locked_at=locked_at,
                ))
                await self.db.flush()
                result = await self.db.execute(
                    update(Order)
                    .where(Order.order_date == day, Order.status == OrderStatus.CREATED)
                    .values(status=OrderStatus.LOCKED, updated_at=datetime.utcnow())
                )
                orders_locked = result.rowcount
        except IntegrityError:
            raise AlreadyLocked(f"Day {day.isoformat()} is already locked")

        logger.info("Day locked", date=day.isoformat(), orders_locked=orders_locked)
        return DayLockResult(lock_date=day, orders_locked=orders_locked, locked_at=locked_at)

    async def reconcile_orders(self, employee_id: Optional[UUID] = None) -> int:
        """
        Flip CREATED orders to LOCKED once their cutoff has passed.

        Idempotent; safe to run on every read and from the periodic job.
        Returns the number of orders locked.
        """
        query = select(Order.id, Order.order_date, Order.pack_id).where(
            Order.status == OrderStatus.CREATED,
            Order.order_date <= self.clock.today(),
        )
        if employee_id is not None:
            query = query.where(Order.employee_id == employee_id)
        candidates = (await self.db.execute(query)).all()
        if not candidates:
            return 0

        evaluator = OrderingWindowEvaluator(self.db, self.clock)
        passed = {}
        due = []
        for order_id, order_date, pack_id in candidates:
            key = (order_date, pack_id)
            if key not in passed:
                passed[key] = await evaluator.cutoff_passed(order_date, pack_id)
            if passed[key]:
                due.append(order_id)

        if not due:
            return 0

        async with atomic(self.db):
            result = await self.db.execute(
                update(Order)
                .where(Order.id.in_(due), Order.status == OrderStatus.CREATED)
                .values(status=OrderStatus.LOCKED, updated_at=datetime.utcnow())
            )
        locked = result.rowcount

        logger.info("Orders locked by reconcile", count=locked)
        return locked

    async def kitchen_summary(self, day: date) -> dict:
        """Per-pack and per-variant counts of the date's LOCKED orders"""
        result = await self.db.execute(
            select(Order.id, Order.pack_id, Pack.name, Order.total_amount, Order.business_id, Business.name)
            .join(Pack, Pack.id == Order.pack_id)
            .join(Business, Business.id == Order.business_id)
            .where(Order.order_date == day, Order.status == OrderStatus.LOCKED)
        )
        orders = result.all()

        packs = {}
        for order_id, pack_id, pack_name, amount, business_id, business_name in orders:
            entry = packs.setdefault(pack_id, {
                "pack_id": pack_id,
                "pack_name": pack_name,
                "total_quantity": 0,
                "total_amount": Decimal("0.00"),
                "businesses": {},
            })
            entry["total_quantity"] += 1
            entry["total_amount"] += amount
            business = entry["businesses"].setdefault(business_id, {
                "business_id": business_id,
                "business_name": business_name,
                "quantity": 0,
            })
            business["quantity"] += 1

        variant_counts = defaultdict(int)
        variant_names = {}
        if orders:
            result = await self.db.execute(
                select(OrderItem.variant_id, Variant.name)
                .join(Variant, Variant.id == OrderItem.variant_id)
                .join(Order, Order.id == OrderItem.order_id)
                .where(Order.order_date == day, Order.status == OrderStatus.LOCKED)
            )
            for variant_id, name in result.all():
                variant_counts[variant_id] += 1
                variant_names[variant_id] = name

        lock = (await self.db.execute(select(DayLock).where(DayLock.lock_date == day))).scalar_one_or_none()

        pack_rows = []
        for entry in packs.values():
            entry["businesses"] = list(entry["businesses"].values())
            pack_rows.append(entry)

        return {
            "date": day,
            "locked_at": lock.locked_at if lock else None,
            "total_orders": len(orders),
            "total_amount": sum((p["total_amount"] for p in pack_rows), Decimal("0.00")),
            "packs": sorted(pack_rows, key=lambda p: p["pack_name"]),
            "variants": sorted(
                (
                    {"variant_id": vid, "variant_name": variant_names[vid], "quantity": count}
                    for vid, count in variant_counts.items()
                ),
                key=lambda v: v["variant_name"],
            ),
        }
