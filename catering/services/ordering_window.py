"""
Ordering window evaluation

Decides whether new orders are acceptable for a date (and optionally a
pack). Resolution order:

1. a persisted DayLock for the date rejects outright
2. a manual ordering lock for the date rejects outright
3. the owning service's order_start_time / cutoff_time
4. the daily menu's cutoff_hour
5. the earliest cutoff among active legacy meals of that date

The cutoff instant itself is already closed.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from catering.clock import Clock, at_time
from catering.database import atomic
from catering.errors import DayLocked, OrderingWindowClosed
from catering.models.catalog import Meal, Service, ServicePack
from catering.models.daily_menu import DailyMenu
from catering.models.ops import DayLock, OrderingLock

logger = structlog.get_logger()


@dataclass
class OrderingWindow:
    cutoff: datetime
    source: str  # service, daily_menu, meal
    order_start: Optional[datetime] = None

    def is_open_at(self, now: datetime) -> bool:
        if self.order_start is not None and now < self.order_start:
            return False
        return now < self.cutoff


async def day_lock_exists(db: AsyncSession, day: date) -> bool:
    result = await db.execute(select(DayLock.id).where(DayLock.lock_date == day))
    return result.scalar_one_or_none() is not None


async def owning_service(db: AsyncSession, pack_id: UUID) -> Optional[Service]:
    """The service a pack belongs to, if any"""
    result = await db.execute(
        select(Service)
        .join(ServicePack, ServicePack.service_id == Service.id)
        .where(ServicePack.pack_id == pack_id)
    )
    return result.scalar_one_or_none()


class OrderingLockStore:
    """
    Manual per-date ordering locks.

    Rows live in the ordering_locks table so every API instance sees the
    same switch. A date without a row is unlocked.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_locked(self, day: date) -> bool:
        result = await self.db.execute(
            select(OrderingLock.locked).where(OrderingLock.lock_date == day)
        )
        return bool(result.scalar_one_or_none())

    async def lock(self, day: date, actor_id: Optional[UUID] = None) -> OrderingLock:
        return await self._set(day, True, actor_id)

    async def unlock(self, day: date, actor_id: Optional[UUID] = None) -> OrderingLock:
        return await self._set(day, False, actor_id)

    async def get_lock_status(self, day: date) -> dict:
        return {"date": day.isoformat(), "locked": await self.is_locked(day)}

    async def list_locks(self) -> List[OrderingLock]:
        result = await self.db.execute(select(OrderingLock).order_by(OrderingLock.lock_date))
        return list(result.scalars().all())

    async def _set(self, day: date, locked: bool, actor_id: Optional[UUID]) -> OrderingLock:
        async with atomic(self.db):
            row = await self.db.get(OrderingLock, day)
            if row is None:
                row = OrderingLock(lock_date=day)
                self.db.add(row)
            row.locked = locked
            row.updated_by = actor_id
        logger.info("Ordering lock changed", date=day.isoformat(), locked=locked)
        return row


class OrderingWindowEvaluator:
    """Resolves and enforces the ordering window for a date"""

    def __init__(self, db: AsyncSession, clock: Clock, lock_store: Optional[OrderingLockStore] = None):
        self.db = db
        self.clock = clock
        self.lock_store = lock_store or OrderingLockStore(db)

    async def resolve_window(self, order_date: date, pack_id: Optional[UUID] = None) -> Optional[OrderingWindow]:
        """Resolve the applicable window, or None when no cutoff source exists"""
        order_start = None
        cutoff = None
        source = None

        if pack_id is not None:
            service = await owning_service(self.db, pack_id)
            if service is not None and service.is_active and service.is_published:
                if service.order_start_time:
                    order_start = at_time(order_date, service.order_start_time)
                if service.cutoff_time:
                    cutoff = at_time(order_date, service.cutoff_time)
                    source = "service"

        if cutoff is None:
            result = await self.db.execute(
                select(DailyMenu.cutoff_hour).where(DailyMenu.date == order_date)
            )
            cutoff_hour = result.scalar_one_or_none()
            if cutoff_hour:
                cutoff = at_time(order_date, cutoff_hour)
                source = "daily_menu"

        if cutoff is None:
            cutoff = await self._earliest_meal_cutoff(order_date)
            if cutoff is not None:
                source = "meal"

        if cutoff is None:
            return None

        return OrderingWindow(cutoff=cutoff, source=source, order_start=order_start)

    async def check_ordering_allowed(self, order_date: date, pack_id: Optional[UUID] = None) -> OrderingWindow:
        """Return the open window or raise OrderingWindowClosed"""
        if await day_lock_exists(self.db, order_date):
            raise DayLocked(f"Day {order_date.isoformat()} is locked")

        if await self.lock_store.is_locked(order_date):
            raise OrderingWindowClosed("Ordering is locked for this date")

        window = await self.resolve_window(order_date, pack_id)
        if window is None:
            raise OrderingWindowClosed(f"No ordering window is configured for {order_date.isoformat()}")

        now = self.clock.now()
        if window.order_start is not None and now < window.order_start:
            raise OrderingWindowClosed(
                f"Ordering starts at {window.order_start.strftime('%H:%M')}. "
                f"Current time: {now.strftime('%H:%M')}"
            )
        if now >= window.cutoff:
            raise OrderingWindowClosed(
                f"Ordering cutoff time ({window.cutoff.strftime('%H:%M')}) has passed"
            )

        return window

    async def cutoff_passed(self, order_date: date, pack_id: Optional[UUID] = None) -> bool:
        """True once orders for the date can no longer change"""
        if await day_lock_exists(self.db, order_date):
            return True

        now = self.clock.now()
        if order_date < now.date():
            return True
        if order_date > now.date():
            return False

        window = await self.resolve_window(order_date, pack_id)
        if window is None:
            return False
        return now >= window.cutoff

    async def get_cutoff_for_date(self, order_date: date) -> Optional[datetime]:
        window = await self.resolve_window(order_date)
        return window.cutoff if window else None

    async def _earliest_meal_cutoff(self, order_date: date) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.min(Meal.cutoff_time)).where(
                Meal.available_date == order_date,
                Meal.is_active == True,
                Meal.status == "ACTIVE",
            )
        )
        return result.scalar_one_or_none()
