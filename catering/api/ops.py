"""Operations API endpoints: day locks, ordering locks, kitchen summary"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.auth import require_role
from catering.clock import Clock, get_clock, parse_local_date
from catering.database import get_db
from catering.identity import CallerIdentity, UserRole
from catering.schemas.ops import (
    DateRequest,
    DayLockResponse,
    DayLockStatus,
    OrderingLockResponse,
    KitchenSummaryResponse,
)
from catering.services.business_services import BusinessServiceScheduler
from catering.services.day_lock import DayLockEngine
from catering.services.ordering_window import OrderingLockStore

router = APIRouter()

admin_only = require_role(UserRole.SUPER_ADMIN)


@router.post("/day-locks", response_model=DayLockResponse, status_code=201)
async def lock_day(
    data: DateRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Permanently lock a date and freeze its CREATED orders"""
    result = await DayLockEngine(db, clock).lock_day(parse_local_date(data.date), identity)
    return DayLockResponse(lock_date=result.lock_date, orders_locked=result.orders_locked, locked_at=result.locked_at)


@router.get("/day-locks/{date}", response_model=DayLockStatus)
async def get_day_lock(
    date: str,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    day = parse_local_date(date)
    return DayLockStatus(date=day, locked=await DayLockEngine(db, clock).is_day_locked(day))


@router.get("/kitchen-summary", response_model=KitchenSummaryResponse)
async def kitchen_summary(
    date: str = Query(..., description="YYYY-MM-DD"),
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Counts of LOCKED orders for the kitchen"""
    return await DayLockEngine(db, clock).kitchen_summary(parse_local_date(date))


@router.get("/ordering-locks", response_model=List[OrderingLockResponse])
async def list_ordering_locks(
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await OrderingLockStore(db).list_locks()


@router.get("/ordering-locks/{date}", response_model=DayLockStatus)
async def get_ordering_lock(
    date: str,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    day = parse_local_date(date)
    return DayLockStatus(date=day, locked=await OrderingLockStore(db).is_locked(day))


@router.post("/ordering-locks/{date}/lock", response_model=OrderingLockResponse)
async def lock_ordering(
    date: str,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    """Manually stop new orders for a date"""
    return await OrderingLockStore(db).lock(parse_local_date(date), identity.user_id)


@router.post("/ordering-locks/{date}/unlock", response_model=OrderingLockResponse)
async def unlock_ordering(
    date: str,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await OrderingLockStore(db).unlock(parse_local_date(date), identity.user_id)


@router.post("/reconcile")
async def reconcile(
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Run the periodic reconcile steps now"""
    pack_changes = await BusinessServiceScheduler(db, clock).apply_pending_pack_changes()
    orders_locked = await DayLockEngine(db, clock).reconcile_orders()
    return {"pack_changes_applied": pack_changes, "orders_locked": orders_locked}
