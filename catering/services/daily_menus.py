"""
Daily menu lifecycle

State machine DRAFT -> PUBLISHED -> LOCKED, with LOCKED -> PUBLISHED as a
SUPER_ADMIN-only unlock. A menu never goes back to DRAFT. Packs, variants
and services can be removed only while the menu is a DRAFT; additions and
stock changes are refused once it is LOCKED.

Publishing evaluates guardrails and returns warnings. Warnings never block
publishing.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catering.clock import Clock, parse_hhmm
from catering.config import settings
from catering.database import atomic
from catering.errors import (
    AccessDenied,
    AlreadyExists,
    DuplicateMenuForDate,
    InvalidStateTransition,
    MenuNotEditable,
    NotFound,
    ValidationFailed,
)
from catering.identity import CallerIdentity
from catering.models.catalog import Pack, PackComponent, Service, ServicePack, Variant
from catering.models.daily_menu import (
    DailyMenu,
    DailyMenuStatus,
    DailyMenuPack,
    DailyMenuVariant,
    DailyMenuService,
    DailyMenuServiceVariant,
)
from catering.models.order import Order, OrderItem, OrderStatus
from catering.services.ordering_window import OrderingWindowEvaluator

logger = structlog.get_logger()


@dataclass
class PublishResult:
    menu: DailyMenu
    warnings: List[str] = field(default_factory=list)


def detailed_menu_query():
    return select(DailyMenu).options(
        selectinload(DailyMenu.packs)
        .selectinload(DailyMenuPack.pack)
        .selectinload(Pack.pack_components)
        .selectinload(PackComponent.component),
        selectinload(DailyMenu.variants)
        .selectinload(DailyMenuVariant.variant)
        .selectinload(Variant.component),
        selectinload(DailyMenu.services).selectinload(DailyMenuService.service),
        selectinload(DailyMenu.services)
        .selectinload(DailyMenuService.variants)
        .selectinload(DailyMenuServiceVariant.variant)
        .selectinload(Variant.component),
    ).execution_options(populate_existing=True)


class DailyMenuLifecycle:
    """Creates, edits and transitions daily menus"""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_menus(self) -> List[DailyMenu]:
        result = await self.db.execute(select(DailyMenu).order_by(DailyMenu.date.desc()))
        return list(result.scalars().all())

    async def get_menu(self, menu_id: UUID) -> DailyMenu:
        result = await self.db.execute(detailed_menu_query().where(DailyMenu.id == menu_id))
        menu = result.scalar_one_or_none()
        if menu is None:
            raise NotFound(f"Daily menu with ID {menu_id} not found")
        return menu

    async def get_menu_by_date(self, menu_date: date) -> Optional[DailyMenu]:
        result = await self.db.execute(detailed_menu_query().where(DailyMenu.date == menu_date))
        return result.scalar_one_or_none()

    async def get_published_menu(self, menu_date: date) -> dict:
        """
        Employee view of a PUBLISHED menu: active packs with their components
        and only the variants that still have stock.
        """
        menu = await self.get_menu_by_date(menu_date)
        if menu is None:
            raise NotFound(f"No menu found for date {menu_date.isoformat()}")
        if menu.status != DailyMenuStatus.PUBLISHED:
            raise NotFound(
                f"No published menu found for date {menu_date.isoformat()}. Current status: {menu.status.value}"
            )

        pack_services = await self._pack_service_map([p.pack_id for p in menu.packs])
        legacy_stock, service_stock = self._available_stock(menu)
        evaluator = OrderingWindowEvaluator(self.db, self.clock)
        now = self.clock.now()

        packs = []
        for dmp in menu.packs:
            pack = dmp.pack
            if not pack.is_active:
                continue
            service_id = pack_services.get(pack.id)
            available = service_stock.get(service_id, {}) if service_id else legacy_stock
            window = await evaluator.resolve_window(menu.date, pack.id)
            packs.append({
                "id": pack.id,
                "name": pack.name,
                "price": pack.price,
                "service_id": service_id,
                "cutoff": window.cutoff if window else None,
                "order_start": window.order_start if window else None,
                "ordering_open": bool(window and window.is_open_at(now)),
                "components": [
                    {
                        "id": pc.component_id,
                        "name": pc.component.name,
                        "required": pc.required,
                        "order_index": pc.order_index,
                        "variants": [
                            {
                                "id": row.variant_id,
                                "name": row.variant.name,
                                "image_url": row.variant.image_url,
                                "stock": row.initial_stock,
                            }
                            for row in available.get(pc.component_id, [])
                        ],
                    }
                    for pc in pack.pack_components
                ],
            })

        return {
            "id": menu.id,
            "date": menu.date,
            "status": menu.status,
            "cutoff": await evaluator.get_cutoff_for_date(menu.date),
            "packs": packs,
        }

    # ------------------------------------------------------------------
    # Creation and edits
    # ------------------------------------------------------------------

    async def create(self, menu_date: date, cutoff_hour: Optional[str] = None) -> DailyMenu:
        cutoff_hour = cutoff_hour or settings.default_cutoff_hour
        parse_hhmm(cutoff_hour)

        if await self._menu_exists(menu_date):
            raise DuplicateMenuForDate(f"Daily menu already exists for date {menu_date.isoformat()}")

        menu = DailyMenu(date=menu_date, status=DailyMenuStatus.DRAFT, cutoff_hour=cutoff_hour)
        try:
            async with atomic(self.db):
                self.db.add(menu)
        except IntegrityError:
            raise DuplicateMenuForDate(f"Daily menu already exists for date {menu_date.isoformat()}")

        logger.info("Daily menu created", menu_id=str(menu.id), date=menu_date.isoformat())
        return menu

    async def _menu_exists(self, menu_date: date) -> bool:
        result = await self.db.execute(select(DailyMenu.id).where(DailyMenu.date == menu_date))
        return result.scalar_one_or_none() is not None

    async def add_pack(self, menu_id: UUID, pack_id: UUID) -> DailyMenuPack:
        menu = await self._get_editable(menu_id)
        pack = await self.db.get(Pack, pack_id)
        if pack is None:
            raise NotFound(f"Pack with ID {pack_id} not found")

        if await self._find_menu_pack(menu.id, pack_id) is not None:
            raise AlreadyExists("Pack is already added to this daily menu")

        row = DailyMenuPack(daily_menu_id=menu.id, pack_id=pack_id)
        async with atomic(self.db):
            self.db.add(row)
        return row

    async def remove_pack(self, menu_id: UUID, pack_id: UUID) -> None:
        menu = await self._get_draft(menu_id, "pack removal")
        row = await self._find_menu_pack(menu.id, pack_id)
        if row is None:
            raise NotFound(f"Pack with ID {pack_id} is not associated with this daily menu")

        async with atomic(self.db):
            await self.db.execute(delete(DailyMenuPack).where(DailyMenuPack.id == row.id))

    async def add_variant(self, menu_id: UUID, variant_id: UUID, initial_stock: Optional[int] = None) -> DailyMenuVariant:
        menu = await self._get_editable(menu_id)
        await self._get_variant(variant_id)
        stock = self._validate_stock(settings.default_variant_stock if initial_stock is None else initial_stock)

        if await self._find_menu_variant(menu.id, variant_id) is not None:
            raise AlreadyExists("Variant is already added to this daily menu")

        row = DailyMenuVariant(daily_menu_id=menu.id, variant_id=variant_id, initial_stock=stock)
        async with atomic(self.db):
            self.db.add(row)
        return row

    async def update_variant_stock(self, menu_id: UUID, variant_id: UUID, stock: int) -> DailyMenuVariant:
        menu = await self._get_editable(menu_id)
        row = await self._find_menu_variant(menu.id, variant_id)
        if row is None:
            raise NotFound(f"Variant with ID {variant_id} is not associated with this daily menu")

        async with atomic(self.db):
            row.initial_stock = self._validate_stock(stock)
        return row

    async def remove_variant(self, menu_id: UUID, variant_id: UUID) -> None:
        menu = await self._get_draft(menu_id, "variant removal")
        row = await self._find_menu_variant(menu.id, variant_id)
        if row is None:
            raise NotFound(f"Variant with ID {variant_id} is not associated with this daily menu")

        async with atomic(self.db):
            await self.db.execute(delete(DailyMenuVariant).where(DailyMenuVariant.id == row.id))

    async def add_service(self, menu_id: UUID, service_id: UUID) -> DailyMenuService:
        """Attach a service and every pack it owns"""
        menu = await self._get_editable(menu_id)
        service = await self.db.get(Service, service_id)
        if service is None:
            raise NotFound(f"Service with ID {service_id} not found")

        if await self._find_menu_service(menu.id, service_id) is not None:
            raise AlreadyExists("Service is already added to this daily menu")

        result = await self.db.execute(select(ServicePack.pack_id).where(ServicePack.service_id == service_id))
        service_pack_ids = list(result.scalars().all())

        row = DailyMenuService(daily_menu_id=menu.id, service_id=service_id)
        async with atomic(self.db):
            self.db.add(row)
            for pack_id in service_pack_ids:
                if await self._find_menu_pack(menu.id, pack_id) is None:
                    self.db.add(DailyMenuPack(daily_menu_id=menu.id, pack_id=pack_id))

        logger.info("Service added to daily menu", menu_id=str(menu.id), service_id=str(service_id))
        return row

    async def remove_service(self, menu_id: UUID, service_id: UUID) -> None:
        menu = await self._get_draft(menu_id, "service removal")
        row = await self._find_menu_service(menu.id, service_id)
        if row is None:
            raise NotFound(f"Service with ID {service_id} is not associated with this daily menu")

        result = await self.db.execute(select(ServicePack.pack_id).where(ServicePack.service_id == service_id))
        service_pack_ids = list(result.scalars().all())

        async with atomic(self.db):
            await self.db.execute(
                delete(DailyMenuServiceVariant).where(DailyMenuServiceVariant.daily_menu_service_id == row.id)
            )
            await self.db.execute(delete(DailyMenuService).where(DailyMenuService.id == row.id))
            if service_pack_ids:
                await self.db.execute(
                    delete(DailyMenuPack).where(
                        DailyMenuPack.daily_menu_id == menu.id,
                        DailyMenuPack.pack_id.in_(service_pack_ids),
                    )
                )

    async def add_service_variant(
        self,
        menu_id: UUID,
        service_id: UUID,
        variant_id: UUID,
        initial_stock: Optional[int] = None,
    ) -> DailyMenuServiceVariant:
        menu = await self._get_editable(menu_id)
        menu_service = await self._find_menu_service(menu.id, service_id)
        if menu_service is None:
            raise NotFound(f"Service with ID {service_id} is not associated with this daily menu")
        await self._get_variant(variant_id)
        stock = self._validate_stock(settings.default_variant_stock if initial_stock is None else initial_stock)

        if await self._find_service_variant(menu_service.id, variant_id) is not None:
            raise AlreadyExists("Variant is already added to this service for the daily menu")

        row = DailyMenuServiceVariant(daily_menu_service_id=menu_service.id, variant_id=variant_id, initial_stock=stock)
        async with atomic(self.db):
            self.db.add(row)
        return row

    async def update_service_variant_stock(
        self,
        menu_id: UUID,
        service_id: UUID,
        variant_id: UUID,
        stock: int,
    ) -> DailyMenuServiceVariant:
        menu = await self._get_editable(menu_id)
        menu_service = await self._find_menu_service(menu.id, service_id)
        row = await self._find_service_variant(menu_service.id, variant_id) if menu_service else None
        if row is None:
            raise NotFound(f"Variant with ID {variant_id} is not associated with this service")

        async with atomic(self.db):
            row.initial_stock = self._validate_stock(stock)
        return row

    async def remove_service_variant(self, menu_id: UUID, service_id: UUID, variant_id: UUID) -> None:
        menu = await self._get_draft(menu_id, "variant removal")
        menu_service = await self._find_menu_service(menu.id, service_id)
        row = await self._find_service_variant(menu_service.id, variant_id) if menu_service else None
        if row is None:
            raise NotFound(f"Variant with ID {variant_id} is not associated with this service")

        async with atomic(self.db):
            await self.db.execute(delete(DailyMenuServiceVariant).where(DailyMenuServiceVariant.id == row.id))

    async def update_cutoff_hour(self, menu_id: UUID, cutoff_hour: str) -> DailyMenu:
        menu = await self._get_plain(menu_id)
        if menu.status == DailyMenuStatus.LOCKED:
            raise MenuNotEditable(
                f"Cannot update cutoff hour for menu with status {menu.status.value}. "
                "Only DRAFT and PUBLISHED menus can have their cutoff hour updated."
            )
        parse_hhmm(cutoff_hour)

        async with atomic(self.db):
            menu.cutoff_hour = cutoff_hour
        return menu

    async def delete(self, menu_id: UUID) -> None:
        menu = await self._get_draft(menu_id, "deletion")

        service_ids = select(DailyMenuService.id).where(DailyMenuService.daily_menu_id == menu.id)
        async with atomic(self.db):
            await self.db.execute(
                delete(DailyMenuServiceVariant).where(DailyMenuServiceVariant.daily_menu_service_id.in_(service_ids))
            )
            await self.db.execute(delete(DailyMenuService).where(DailyMenuService.daily_menu_id == menu.id))
            await self.db.execute(delete(DailyMenuVariant).where(DailyMenuVariant.daily_menu_id == menu.id))
            await self.db.execute(delete(DailyMenuPack).where(DailyMenuPack.daily_menu_id == menu.id))
            await self.db.execute(delete(DailyMenu).where(DailyMenu.id == menu.id))

        logger.info("Daily menu deleted", menu_id=str(menu_id))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def publish(self, menu_id: UUID) -> PublishResult:
        """DRAFT -> PUBLISHED. Guardrail warnings are returned, never raised."""
        menu = await self.get_menu(menu_id)
        if menu.status != DailyMenuStatus.DRAFT:
            raise InvalidStateTransition(
                f"Cannot publish menu with status {menu.status.value}. Only DRAFT menus can be published."
            )

        warnings = await self._composition_warnings(menu)
        warnings.extend(await self._yesterday_usage_warnings(menu))

        async with atomic(self.db):
            menu.status = DailyMenuStatus.PUBLISHED
            menu.published_at = self.clock.now()

        logger.info(
            "Daily menu published",
            menu_id=str(menu.id),
            date=menu.date.isoformat(),
            warnings=len(warnings),
        )
        return PublishResult(menu=menu, warnings=warnings)

    async def lock(self, menu_id: UUID) -> DailyMenu:
        """PUBLISHED -> LOCKED"""
        menu = await self._get_plain(menu_id)
        if menu.status != DailyMenuStatus.PUBLISHED:
            raise InvalidStateTransition(
                f"Cannot lock menu with status {menu.status.value}. Only PUBLISHED menus can be locked."
            )

        async with atomic(self.db):
            menu.status = DailyMenuStatus.LOCKED

        logger.info("Daily menu locked", menu_id=str(menu.id))
        return menu

    async def unlock(self, menu_id: UUID, identity: CallerIdentity) -> DailyMenu:
        """LOCKED -> PUBLISHED, SUPER_ADMIN only"""
        if not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can unlock daily menus")

        menu = await self._get_plain(menu_id)
        if menu.status != DailyMenuStatus.LOCKED:
            raise InvalidStateTransition(
                f"Cannot unlock menu with status {menu.status.value}. Only LOCKED menus can be unlocked."
            )

        async with atomic(self.db):
            menu.status = DailyMenuStatus.PUBLISHED

        logger.info("Daily menu unlocked", menu_id=str(menu.id), by=str(identity.user_id))
        return menu

    # ------------------------------------------------------------------
    # Guardrails
    # ------------------------------------------------------------------

    async def _composition_warnings(self, menu: DailyMenu) -> List[str]:
        """Required-component coverage and single-variant components, per pack"""
        warnings = []
        pack_services = await self._pack_service_map([p.pack_id for p in menu.packs])
        legacy_stock, service_stock = self._available_stock(menu)

        for dmp in menu.packs:
            pack = dmp.pack
            service_id = pack_services.get(pack.id)
            available = service_stock.get(service_id, {}) if service_id else legacy_stock

            for pc in pack.pack_components:
                count = len(available.get(pc.component_id, []))
                if pc.required and count == 0:
                    warnings.append(
                        f'Pack "{pack.name}" is missing required component "{pc.component.name}"'
                    )
                elif count == 1:
                    warnings.append(
                        f'Component "{pc.component.name}" in pack "{pack.name}" has only 1 variant available'
                    )

        return warnings

    async def _yesterday_usage_warnings(self, menu: DailyMenu) -> List[str]:
        """Flag variants whose stock today is below yesterday's locked consumption"""
        yesterday = menu.date - timedelta(days=1)
        result = await self.db.execute(
            select(OrderItem.variant_id, func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.order_date == yesterday, Order.status == OrderStatus.LOCKED)
            .group_by(OrderItem.variant_id)
        )
        usage = {variant_id: count for variant_id, count in result.all()}
        if not usage:
            return []

        stock: Dict[UUID, int] = defaultdict(int)
        names: Dict[UUID, str] = {}
        for row in menu.variants:
            stock[row.variant_id] += row.initial_stock
            names[row.variant_id] = row.variant.name
        for menu_service in menu.services:
            for row in menu_service.variants:
                stock[row.variant_id] += row.initial_stock
                names[row.variant_id] = row.variant.name

        warnings = []
        for variant_id, used in usage.items():
            if variant_id in stock and stock[variant_id] < used:
                warnings.append(
                    f'Variant "{names[variant_id]}" has stock {stock[variant_id]} '
                    f"which is less than yesterday's usage of {used}"
                )
        return warnings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _available_stock(menu: DailyMenu):
        """Variants with stock > 0, keyed by component: legacy level and per service"""
        legacy = defaultdict(list)
        for row in menu.variants:
            if row.initial_stock > 0:
                legacy[row.variant.component_id].append(row)

        per_service = {}
        for menu_service in menu.services:
            by_component = defaultdict(list)
            for row in menu_service.variants:
                if row.initial_stock > 0:
                    by_component[row.variant.component_id].append(row)
            per_service[menu_service.service_id] = by_component

        return legacy, per_service

    async def _pack_service_map(self, pack_ids: List[UUID]) -> Dict[UUID, UUID]:
        if not pack_ids:
            return {}
        result = await self.db.execute(
            select(ServicePack.pack_id, ServicePack.service_id).where(ServicePack.pack_id.in_(pack_ids))
        )
        return {pack_id: service_id for pack_id, service_id in result.all()}

    @staticmethod
    def _validate_stock(stock: int) -> int:
        if stock is None or stock < 0:
            raise ValidationFailed("Stock must be a non-negative integer")
        return stock

    async def _get_plain(self, menu_id: UUID) -> DailyMenu:
        menu = await self.db.get(DailyMenu, menu_id, populate_existing=True)
        if menu is None:
            raise NotFound(f"Daily menu with ID {menu_id} not found")
        return menu

    async def _get_editable(self, menu_id: UUID) -> DailyMenu:
        menu = await self._get_plain(menu_id)
        if menu.status == DailyMenuStatus.LOCKED:
            raise MenuNotEditable("Cannot modify a LOCKED daily menu")
        return menu

    async def _get_draft(self, menu_id: UUID, action: str) -> DailyMenu:
        menu = await self._get_plain(menu_id)
        if menu.status != DailyMenuStatus.DRAFT:
            raise MenuNotEditable(
                f"Cannot perform {action} on menu with status {menu.status.value}. Only DRAFT menus allow it."
            )
        return menu

    async def _get_variant(self, variant_id: UUID) -> Variant:
        variant = await self.db.get(Variant, variant_id)
        if variant is None:
            raise NotFound(f"Variant with ID {variant_id} not found")
        return variant

    async def _find_menu_pack(self, menu_id: UUID, pack_id: UUID) -> Optional[DailyMenuPack]:
        result = await self.db.execute(
            select(DailyMenuPack).where(DailyMenuPack.daily_menu_id == menu_id, DailyMenuPack.pack_id == pack_id)
        )
        return result.scalar_one_or_none()

    async def _find_menu_variant(self, menu_id: UUID, variant_id: UUID) -> Optional[DailyMenuVariant]:
        result = await self.db.execute(
            select(DailyMenuVariant).where(
                DailyMenuVariant.daily_menu_id == menu_id,
                DailyMenuVariant.variant_id == variant_id,
            )
        )
        return result.scalar_one_or_none()

    async def _find_menu_service(self, menu_id: UUID, service_id: UUID) -> Optional[DailyMenuService]:
        result = await self.db.execute(
            select(DailyMenuService).where(
                DailyMenuService.daily_menu_id == menu_id,
                DailyMenuService.service_id == service_id,
            )
        )
        return result.scalar_one_or_none()

    async def _find_service_variant(self, menu_service_id: UUID, variant_id: UUID) -> Optional[DailyMenuServiceVariant]:
        result = await self.db.execute(
            select(DailyMenuServiceVariant).where(
                DailyMenuServiceVariant.daily_menu_service_id == menu_service_id,
                DailyMenuServiceVariant.variant_id == variant_id,
            )
        )
        return result.scalar_one_or_none()
