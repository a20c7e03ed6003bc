"""Background job tasks"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from catering.jobs.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Run a coroutine from a sync worker, releasing pooled connections afterwards"""
    from catering.database import engine

    async def _run():
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_run())


@celery_app.task(name="apply_pending_pack_changes")
def apply_pending_pack_changes(business_id: Optional[str] = None):
    """Apply due BUSINESS_ADMIN pack changes"""

    async def _apply():
        from catering.clock import Clock
        from catering.database import SessionLocal
        from catering.services.business_services import BusinessServiceScheduler

        async with SessionLocal() as db:
            return await BusinessServiceScheduler(db, Clock()).apply_pending_pack_changes(
                UUID(business_id) if business_id else None
            )

    applied = run_async(_apply())
    logger.info("Pending pack changes reconciled", applied=applied)
    return applied


@celery_app.task(name="reconcile_order_locks")
def reconcile_order_locks():
    """Lock CREATED orders whose cutoff has passed"""

    async def _reconcile():
        from catering.clock import Clock
        from catering.database import SessionLocal
        from catering.services.day_lock import DayLockEngine

        async with SessionLocal() as db:
            return await DayLockEngine(db, Clock()).reconcile_orders()

    locked = run_async(_reconcile())
    logger.info("Order locks reconciled", locked=locked)
    return locked
