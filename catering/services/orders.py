"""
Order placement

One order per employee per service per day (legacy packs without a service
share a single daily scope). Placement is split in two phases:

- ``prepare`` validates the request against the published menu and pins the
  stock rows the order will consume
- ``allocate`` re-reads those rows inside one transaction, re-checks stock,
  inserts the order with its items and decrements each row by one

Duplicate-order resolution strategy: when two requests for the same
(employee, date, scope) both pass the existence check, the store's unique
constraint rejects the second insert. That IntegrityError is absorbed by
rolling back and returning the order that won, so a retried or doubled
submission observes the same result as an idempotent hit.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Type
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
    DuplicateComponentSelection,
    InactiveAccount,
    InvalidPackSelection,
    MenuNotPublished,
    MissingRequiredComponent,
    NotFound,
    NotTodaysMenu,
    OutOfStock,
    PackUnavailable,
    ServiceUnavailable,
    VariantComponentMismatch,
    VariantUnavailable,
)
from catering.identity import CallerIdentity, UserRole
from catering.models.business import Business, BusinessStatus, Employee, EmployeeStatus
from catering.models.catalog import Pack
from catering.models.daily_menu import (
    DailyMenu,
    DailyMenuStatus,
    DailyMenuVariant,
    DailyMenuServiceVariant,
)
from catering.models.order import Order, OrderItem, OrderStatus, service_scope
from catering.services.daily_menus import detailed_menu_query
from catering.services.day_lock import DayLockEngine
from catering.services.ordering_window import OrderingWindowEvaluator, owning_service

logger = structlog.get_logger()


@dataclass
class PreparedOrder:
    """A validated order request, ready to be allocated"""
    employee_id: UUID
    business_id: UUID
    daily_menu_id: UUID
    order_date: date
    pack_id: UUID
    pack_price: Decimal
    service_id: Optional[UUID]
    # (component_id, variant_id) in submission order
    selections: List[tuple] = field(default_factory=list)
    stock_model: Type = DailyMenuVariant
    stock_row_ids: List[UUID] = field(default_factory=list)
    # Names of selected variants with no stock left when validated
    sold_out: List[str] = field(default_factory=list)


def _order_query():
    return (
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.pack))
        .execution_options(populate_existing=True)
    )


class OrderPlacementEngine:
    """Validates and places employee orders against today's menu"""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    async def create_order(
        self,
        identity: CallerIdentity,
        daily_menu_id: UUID,
        pack_id: UUID,
        selections: Sequence,
    ) -> Order:
        """
        Place an order, or return the one the employee already has for the
        same date and scope.

        ``selections`` are objects exposing ``component_id`` and ``variant_id``.
        """
        prepared = await self.prepare(identity, daily_menu_id, pack_id, selections)

        existing = await self.find_existing(prepared.employee_id, prepared.order_date, prepared.service_id)
        if existing is not None:
            logger.info(
                "Existing order returned",
                order_id=str(existing.id),
                employee_id=str(prepared.employee_id),
            )
            return existing

        if prepared.sold_out:
            raise OutOfStock(f'Variant "{prepared.sold_out[0]}" is out of stock')

        return await self.allocate(prepared)

    async def prepare(
        self,
        identity: CallerIdentity,
        daily_menu_id: UUID,
        pack_id: UUID,
        selections: Sequence,
    ) -> PreparedOrder:
        employee = await self._resolve_employee(identity)

        result = await self.db.execute(detailed_menu_query().where(DailyMenu.id == daily_menu_id))
        menu = result.scalar_one_or_none()
        if menu is None:
            raise NotFound(f"Daily menu with ID {daily_menu_id} not found")
        if menu.status != DailyMenuStatus.PUBLISHED:
            raise MenuNotPublished(f"Daily menu is not published. Current status: {menu.status.value}")
        if menu.date != self.clock.today():
            raise NotTodaysMenu(
                "Orders can only be placed for today's menu. The selected menu is for a different date."
            )

        await OrderingWindowEvaluator(self.db, self.clock).check_ordering_allowed(menu.date, pack_id)

        menu_pack = next((p for p in menu.packs if p.pack_id == pack_id), None)
        if menu_pack is None:
            raise PackUnavailable(f"Pack with ID {pack_id} is not available in this daily menu")
        pack = menu_pack.pack
        if not pack.is_active:
            raise PackUnavailable("Pack is not active")

        service = await owning_service(self.db, pack.id)
        if service is not None and not (service.is_active and service.is_published):
            raise ServiceUnavailable(f'Service "{service.name}" is not available')

        pairs = self._check_components(pack, selections)

        if service is not None:
            menu_service = next((s for s in menu.services if s.service_id == service.id), None)
            stock_rows = {row.variant_id: row for row in menu_service.variants} if menu_service else {}
            stock_model = DailyMenuServiceVariant
        else:
            stock_rows = {row.variant_id: row for row in menu.variants}
            stock_model = DailyMenuVariant

        row_ids = []
        sold_out = []
        for component_id, variant_id in pairs:
            row = stock_rows.get(variant_id)
            if row is None:
                raise VariantUnavailable(f"Variant {variant_id} is not available in this daily menu")
            if row.variant.component_id != component_id:
                raise VariantComponentMismatch(
                    f'Variant "{row.variant.name}" does not belong to component {component_id}'
                )
            if row.initial_stock <= 0:
                sold_out.append(row.variant.name)
            row_ids.append(row.id)

        return PreparedOrder(
            employee_id=employee.id,
            business_id=employee.business_id,
            daily_menu_id=menu.id,
            order_date=menu.date,
            pack_id=pack.id,
            pack_price=pack.price,
            service_id=service.id if service else None,
            selections=pairs,
            stock_model=stock_model,
            stock_row_ids=row_ids,
            sold_out=sold_out,
        )

    async def allocate(self, prepared: PreparedOrder) -> Order:
        """Insert the order and consume stock in one transaction"""
        model = prepared.stock_model
        try:
            async with atomic(self.db):
                result = await self.db.execute(
                    select(model)
                    .where(model.id.in_(prepared.stock_row_ids))
                    .options(selectinload(model.variant))
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                rows = {row.id: row for row in result.scalars().all()}

                for row_id in prepared.stock_row_ids:
                    row = rows.get(row_id)
                    if row is None or row.initial_stock <= 0:
                        name = row.variant.name if row is not None else row_id
                        raise OutOfStock(f'Variant "{name}" is out of stock')

                order = Order(
                    employee_id=prepared.employee_id,
                    business_id=prepared.business_id,
                    daily_menu_id=prepared.daily_menu_id,
                    pack_id=prepared.pack_id,
                    service_id=prepared.service_id,
                    service_scope=service_scope(prepared.service_id),
                    order_date=prepared.order_date,
                    status=OrderStatus.CREATED,
                    total_amount=prepared.pack_price,
                    items=[
                        OrderItem(component_id=component_id, variant_id=variant_id)
                        for component_id, variant_id in prepared.selections
                    ],
                )
                self.db.add(order)

                for row_id in prepared.stock_row_ids:
                    rows[row_id].initial_stock -= 1

                await self.db.flush()
        except OutOfStock:
            # The unit may have gone to this employee's own concurrent request
            winner = await self.find_existing(prepared.employee_id, prepared.order_date, prepared.service_id)
            if winner is None:
                raise
            logger.info(
                "Duplicate order race resolved",
                order_id=str(winner.id),
                employee_id=str(prepared.employee_id),
            )
            return winner
        except IntegrityError:
            winner = await self.find_existing(prepared.employee_id, prepared.order_date, prepared.service_id)
            if winner is None:
                raise
            logger.info(
                "Duplicate order race resolved",
                order_id=str(winner.id),
                employee_id=str(prepared.employee_id),
            )
            return winner

        logger.info(
            "Order created",
            order_id=str(order.id),
            employee_id=str(prepared.employee_id),
            order_date=prepared.order_date.isoformat(),
            service_id=str(prepared.service_id) if prepared.service_id else None,
            total_amount=str(prepared.pack_price),
        )
        return await self.get_order_by_id(order.id)

    async def find_existing(self, employee_id: UUID, order_date, service_id: Optional[UUID]) -> Optional[Order]:
        """
        The employee's order already covering this request.

        Service packs are scoped to their service. A legacy pack is satisfied
        by any order the employee holds for the date.
        """
        query = _order_query().where(Order.employee_id == employee_id, Order.order_date == order_date)
        if service_id is not None:
            query = query.where(Order.service_scope == service_scope(service_id))
        result = await self.db.execute(query.order_by(Order.created_at).limit(1))
        return result.scalar_one_or_none()

    async def get_order_by_id(self, order_id: UUID) -> Order:
        result = await self.db.execute(_order_query().where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound(f"Order with ID {order_id} not found")
        return order

    async def get_order(self, identity: CallerIdentity, order_id: UUID) -> Order:
        order = await self.get_order_by_id(order_id)
        self._check_order_access(identity, order)
        return order

    async def get_today_orders(self, identity: CallerIdentity) -> List[Order]:
        """The employee's orders for today, after lazy locking has run"""
        employee_id = self._require_employee_id(identity)
        today = self.clock.today()

        await DayLockEngine(self.db, self.clock).reconcile_orders(employee_id=employee_id)

        result = await self.db.execute(
            _order_query()
            .where(Order.employee_id == employee_id, Order.order_date == today)
            .order_by(Order.created_at)
        )
        return list(result.scalars().all())

    async def list_orders(
        self,
        identity: CallerIdentity,
        order_date=None,
        business_id: Optional[UUID] = None,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        """Admin listing, scoped to the caller's business unless SUPER_ADMIN"""
        if identity.role == UserRole.EMPLOYEE:
            raise AccessDenied("Employees can only access their own orders")
        if not identity.is_super_admin:
            business_id = identity.business_id

        query = _order_query()
        if business_id is not None:
            query = query.where(Order.business_id == business_id)
        if order_date is not None:
            query = query.where(Order.order_date == order_date)
        if status is not None:
            query = query.where(Order.status == status)

        result = await self.db.execute(query.order_by(Order.order_date.desc(), Order.created_at))
        return list(result.scalars().all())

    async def can_modify_order(self, identity: CallerIdentity, order_id: UUID) -> bool:
        """
        Whether the order is still modifiable.

        A CREATED order found past its cutoff (or on a locked day) is flipped
        to LOCKED here, so status may change between two reads.
        """
        order = await self.get_order_by_id(order_id)
        self._check_order_access(identity, order)

        if order.status != OrderStatus.CREATED:
            return False

        evaluator = OrderingWindowEvaluator(self.db, self.clock)
        if not await evaluator.cutoff_passed(order.order_date, order.pack_id):
            return True

        async with atomic(self.db):
            order.status = OrderStatus.LOCKED
        logger.info("Order locked lazily", order_id=str(order.id), order_date=order.order_date.isoformat())
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_employee_id(identity: CallerIdentity) -> UUID:
        if identity.role != UserRole.EMPLOYEE:
            raise AccessDenied("Only employees can access this resource")
        if identity.employee_id is None:
            raise AccessDenied("Employee ID not found")
        return identity.employee_id

    async def _resolve_employee(self, identity: CallerIdentity) -> Employee:
        if identity.role != UserRole.EMPLOYEE:
            raise AccessDenied("Only employees can create orders")
        if identity.business_id is None:
            raise AccessDenied("Employee must be associated with a business")
        employee_id = self._require_employee_id(identity)

        employee = await self.db.get(Employee, employee_id)
        if employee is None:
            raise NotFound("Employee not found")
        if employee.business_id != identity.business_id:
            raise AccessDenied("Employee does not belong to this business")
        if employee.status != EmployeeStatus.ACTIVE:
            raise InactiveAccount("Employee is not active")

        business = await self.db.get(Business, employee.business_id)
        if business is None or business.status != BusinessStatus.ACTIVE:
            raise InactiveAccount("Business is disabled and cannot place orders")
        return employee

    @staticmethod
    def _check_components(pack: Pack, selections: Sequence) -> List[tuple]:
        pairs = [(s.component_id, s.variant_id) for s in selections]
        if not pairs:
            raise InvalidPackSelection("At least one variant must be selected")

        selected = {component_id for component_id, _ in pairs}
        for pc in pack.pack_components:
            if pc.required and pc.component_id not in selected:
                raise MissingRequiredComponent(f'Required component "{pc.component.name}" is missing')

        if len(selected) != len(pairs):
            raise DuplicateComponentSelection("Duplicate component selections are not allowed")

        pack_components = {pc.component_id for pc in pack.pack_components}
        for component_id, _ in pairs:
            if component_id not in pack_components:
                raise InvalidPackSelection(f"Component {component_id} is not part of pack \"{pack.name}\"")

        return pairs

    @staticmethod
    def _check_order_access(identity: CallerIdentity, order: Order) -> None:
        if identity.role == UserRole.EMPLOYEE:
            if identity.employee_id != order.employee_id:
                raise AccessDenied("Access denied to this order")
        elif not identity.can_access_business(order.business_id):
            raise AccessDenied("Access denied to this order")
