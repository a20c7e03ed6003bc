"""
Business service subscriptions and pack scheduling

A business subscribes to a service with exactly one active pack. SUPER_ADMIN
pack changes apply immediately; BUSINESS_ADMIN pack changes are scheduled
for tomorrow 00:00 local and applied lazily by apply_pending_pack_changes,
which every read path runs first (and the periodic job runs for everyone).
"""

from typing import List, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catering.clock import Clock
from catering.database import atomic
from catering.errors import (
    AccessDenied,
    InvalidPackSelection,
    NotFound,
    ServiceAlreadyActivated,
    ServiceUnavailable,
)
from catering.identity import CallerIdentity, UserRole
from catering.models.audit import AuditLog
from catering.models.business import Business, BusinessService, BusinessServicePack
from catering.models.catalog import Service, ServicePack

logger = structlog.get_logger()


def _business_service_query():
    return (
        select(BusinessService)
        .options(
            selectinload(BusinessService.service),
            selectinload(BusinessService.packs).selectinload(BusinessServicePack.pack),
            selectinload(BusinessService.packs).selectinload(BusinessServicePack.next_pack),
        )
        .execution_options(populate_existing=True)
    )


class BusinessServiceScheduler:
    """Manages a business's service subscriptions and their packs"""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def activate_service(
        self,
        business_id: UUID,
        service_id: UUID,
        pack_ids: Sequence[UUID],
        identity: CallerIdentity,
    ) -> BusinessService:
        self._check_write_access(identity, business_id)

        if await self.db.get(Business, business_id) is None:
            raise NotFound(f"Business with ID {business_id} not found")

        service = await self.db.get(Service, service_id)
        if service is None:
            raise NotFound(f"Service with ID {service_id} not found")
        if not service.is_published:
            raise ServiceUnavailable("Service is not published and cannot be activated")
        if not service.is_active:
            raise ServiceUnavailable("Service is not active and cannot be activated")

        pack_id = await self._single_service_pack(service_id, pack_ids)

        if await self._find(business_id, service_id) is not None:
            raise ServiceAlreadyActivated("Service is already activated for this business")

        business_service = BusinessService(business_id=business_id, service_id=service_id, is_active=True)
        try:
            async with atomic(self.db):
                self.db.add(business_service)
                await self.db.flush()
                self.db.add(BusinessServicePack(
                    business_service_id=business_service.id,
                    pack_id=pack_id,
                    is_active=True,
                ))
                self._audit(identity, business_id, "activate_service", "business_service", business_service.id, {
                    "service_id": str(service_id),
                    "pack_id": str(pack_id),
                })
        except IntegrityError:
            raise ServiceAlreadyActivated("Service is already activated for this business")

        logger.info(
            "Service activated",
            business_id=str(business_id),
            service_id=str(service_id),
            pack_id=str(pack_id),
        )
        return await self._load(business_service.id)

    async def update_service(
        self,
        business_id: UUID,
        service_id: UUID,
        identity: CallerIdentity,
        is_active: Optional[bool] = None,
        pack_ids: Optional[Sequence[UUID]] = None,
    ) -> BusinessService:
        """
        Toggle a subscription (SUPER_ADMIN) or change its pack.

        SUPER_ADMIN pack changes are immediate. BUSINESS_ADMIN pack changes
        are scheduled for tomorrow; re-submitting the active pack clears any
        pending change instead.
        """
        self._check_write_access(identity, business_id)

        business_service = await self._find(business_id, service_id)
        if business_service is None:
            raise NotFound("Service is not activated for this business")

        if is_active is not None and not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can change service activation status")

        if is_active is not None:
            async with atomic(self.db):
                business_service.is_active = is_active
                self._audit(identity, business_id, "toggle_service", "business_service", business_service.id, {
                    "is_active": is_active,
                })
            logger.info("Service activation toggled", business_service_id=str(business_service.id), is_active=is_active)

        if pack_ids is not None:
            new_pack_id = await self._single_service_pack(service_id, pack_ids)
            rows = await self._pack_rows(business_service.id)
            current = next((row for row in rows if row.is_active), None)

            if current is not None and current.pack_id == new_pack_id:
                await self._clear_pending(identity, business_service, rows)
            elif identity.is_super_admin:
                await self._change_pack_now(identity, business_service, rows, new_pack_id)
            else:
                await self._schedule_pack_change(identity, business_service, current, new_pack_id)

        await self.apply_pending_pack_changes(business_id)
        return await self._load(business_service.id)

    async def deactivate_service(self, business_id: UUID, service_id: UUID, identity: CallerIdentity) -> BusinessService:
        self._check_write_access(identity, business_id)

        business_service = await self._find(business_id, service_id)
        if business_service is None:
            raise NotFound("Service is not activated for this business")

        async with atomic(self.db):
            business_service.is_active = False
            self._audit(identity, business_id, "deactivate_service", "business_service", business_service.id, {})

        logger.info("Service deactivated", business_id=str(business_id), service_id=str(service_id))
        return await self._load(business_service.id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_business_services(self, business_id: UUID, identity: CallerIdentity) -> List[BusinessService]:
        self._check_read_access(identity, business_id)
        await self.apply_pending_pack_changes(business_id)

        result = await self.db.execute(
            _business_service_query()
            .where(BusinessService.business_id == business_id)
            .order_by(BusinessService.created_at)
        )
        return list(result.scalars().all())

    async def get_business_service(self, business_id: UUID, service_id: UUID, identity: CallerIdentity) -> BusinessService:
        self._check_read_access(identity, business_id)
        await self.apply_pending_pack_changes(business_id)

        business_service = await self._find(business_id, service_id)
        if business_service is None:
            raise NotFound("Service is not activated for this business")
        return await self._load(business_service.id)

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------

    async def apply_pending_pack_changes(self, business_id: Optional[UUID] = None) -> int:
        """
        Apply every pending change whose effective date has been reached.

        Each pending row is applied in its own transaction. Without a
        business_id every business is reconciled. Returns the number of
        changes applied.
        """
        query = (
            select(BusinessServicePack)
            .join(BusinessService, BusinessService.id == BusinessServicePack.business_service_id)
            .where(
                BusinessServicePack.next_pack_id.is_not(None),
                BusinessServicePack.effective_date <= self.clock.now(),
            )
            .execution_options(populate_existing=True)
        )
        if business_id is not None:
            query = query.where(BusinessService.business_id == business_id)
        pending = list((await self.db.execute(query)).scalars().all())

        for row in pending:
            business_service_id = row.business_service_id
            old_pack_id, new_pack_id = row.pack_id, row.next_pack_id
            owner = await self.db.get(BusinessService, business_service_id)

            async with atomic(self.db):
                for other in await self._pack_rows(business_service_id):
                    if other.is_active and other.id != row.id and other.pack_id != new_pack_id:
                        other.is_active = False

                row.is_active = False
                row.next_pack_id = None
                row.effective_date = None

                target = row if row.pack_id == new_pack_id else await self._find_pack_row(business_service_id, new_pack_id)
                if target is None:
                    target = BusinessServicePack(business_service_id=business_service_id, pack_id=new_pack_id)
                    self.db.add(target)
                target.is_active = True
                target.next_pack_id = None
                target.effective_date = None

                self.db.add(AuditLog(
                    business_id=owner.business_id,
                    actor_type="system",
                    action="apply_pending_pack_change",
                    resource_type="business_service",
                    resource_id=business_service_id,
                    data_json={"before": {"pack_id": str(old_pack_id)}, "after": {"pack_id": str(new_pack_id)}},
                ))

            logger.info(
                "Pending pack change applied",
                business_service_id=str(business_service_id),
                pack_id=str(new_pack_id),
            )

        return len(pending)

    # ------------------------------------------------------------------
    # Pack changes
    # ------------------------------------------------------------------

    async def _clear_pending(self, identity, business_service, rows) -> None:
        pending = [row for row in rows if row.next_pack_id is not None]
        if not pending:
            return

        async with atomic(self.db):
            for row in pending:
                self._audit(identity, business_service.business_id, "clear_pending_pack_change", "business_service_pack", row.id, {
                    "before": {
                        "next_pack_id": str(row.next_pack_id),
                        "effective_date": row.effective_date.isoformat() if row.effective_date else None,
                    },
                    "after": {"next_pack_id": None, "effective_date": None},
                })
                row.next_pack_id = None
                row.effective_date = None

        logger.info(
            "Pending pack change cleared",
            business_service_id=str(business_service.id),
            cleared_by=str(identity.user_id),
            role=identity.role.value,
        )

    async def _change_pack_now(self, identity, business_service, rows, new_pack_id) -> None:
        previous = next((row.pack_id for row in rows if row.is_active), None)

        async with atomic(self.db):
            target = None
            for row in rows:
                row.is_active = False
                row.next_pack_id = None
                row.effective_date = None
                if row.pack_id == new_pack_id:
                    target = row
            if target is None:
                target = BusinessServicePack(business_service_id=business_service.id, pack_id=new_pack_id)
                self.db.add(target)
            target.is_active = True
            self._audit(identity, business_service.business_id, "change_pack", "business_service", business_service.id, {
                "before": {"pack_id": str(previous) if previous else None},
                "after": {"pack_id": str(new_pack_id)},
            })

        logger.info("Pack changed", business_service_id=str(business_service.id), pack_id=str(new_pack_id))

    async def _schedule_pack_change(self, identity, business_service, current, new_pack_id) -> None:
        effective_date = self.clock.tomorrow_start()

        async with atomic(self.db):
            if current is not None:
                current.next_pack_id = new_pack_id
                current.effective_date = effective_date
                resource_id = current.id
            else:
                placeholder = await self._find_pack_row(business_service.id, new_pack_id)
                if placeholder is None:
                    placeholder = BusinessServicePack(business_service_id=business_service.id, pack_id=new_pack_id)
                    self.db.add(placeholder)
                    await self.db.flush()
                placeholder.is_active = False
                placeholder.next_pack_id = new_pack_id
                placeholder.effective_date = effective_date
                resource_id = placeholder.id
            self._audit(identity, business_service.business_id, "schedule_pack_change", "business_service_pack", resource_id, {
                "next_pack_id": str(new_pack_id),
                "effective_date": effective_date.isoformat(),
            })

        logger.info(
            "Pack change scheduled",
            business_service_id=str(business_service.id),
            pack_id=str(new_pack_id),
            effective_date=effective_date.isoformat(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_read_access(identity: CallerIdentity, business_id: UUID) -> None:
        if not identity.can_access_business(business_id):
            raise AccessDenied("Access denied")

    @staticmethod
    def _check_write_access(identity: CallerIdentity, business_id: UUID) -> None:
        if identity.role == UserRole.EMPLOYEE or not identity.can_access_business(business_id):
            raise AccessDenied("Access denied")

    async def _single_service_pack(self, service_id: UUID, pack_ids: Sequence[UUID]) -> UUID:
        if len(pack_ids) != 1:
            raise InvalidPackSelection("A business can only activate one pack per service")

        result = await self.db.execute(
            select(ServicePack.id).where(ServicePack.service_id == service_id, ServicePack.pack_id == pack_ids[0])
        )
        if result.scalar_one_or_none() is None:
            raise InvalidPackSelection("Pack does not exist or does not belong to this service")
        return pack_ids[0]

    def _audit(self, identity: CallerIdentity, business_id, action: str, resource_type: str, resource_id, data: dict) -> None:
        self.db.add(AuditLog(
            business_id=business_id,
            actor_id=identity.user_id,
            actor_type="user",
            actor_role=identity.role.value,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            data_json=data,
        ))

    async def _find(self, business_id: UUID, service_id: UUID) -> Optional[BusinessService]:
        result = await self.db.execute(
            select(BusinessService).where(
                BusinessService.business_id == business_id,
                BusinessService.service_id == service_id,
            )
        )
        return result.scalar_one_or_none()

    async def _load(self, business_service_id: UUID) -> BusinessService:
        result = await self.db.execute(_business_service_query().where(BusinessService.id == business_service_id))
        return result.scalar_one()

    async def _pack_rows(self, business_service_id: UUID) -> List[BusinessServicePack]:
        result = await self.db.execute(
            select(BusinessServicePack)
            .where(BusinessServicePack.business_service_id == business_service_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _find_pack_row(self, business_service_id: UUID, pack_id: UUID) -> Optional[BusinessServicePack]:
        result = await self.db.execute(
            select(BusinessServicePack).where(
                BusinessServicePack.business_service_id == business_service_id,
                BusinessServicePack.pack_id == pack_id,
            )
        )
        return result.scalar_one_or_none()
