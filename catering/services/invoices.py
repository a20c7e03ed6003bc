"""
Invoice generation

Invoices group LOCKED orders by (business, service, period_start,
period_end). Orders whose pack belongs to no service are never invoiced.
Generation is idempotent: a live (DRAFT or ISSUED) invoice for the same key
is returned unchanged instead of creating another one.
"""

import calendar
import random
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catering.clock import Clock
from catering.config import settings
from catering.database import atomic
from catering.errors import (
    AccessDenied,
    DuplicateInvoice,
    InvalidStateTransition,
    InvoiceNumberExhausted,
    NoInvoiceableOrders,
    NotFound,
    ValidationFailed,
)
from catering.identity import CallerIdentity, UserRole
from catering.models.catalog import Pack, ServicePack
from catering.models.invoice import Invoice, InvoiceItem, InvoiceStatus, LIVE_INVOICE_STATUSES
from catering.models.order import Order, OrderStatus

logger = structlog.get_logger()


def _invoice_query():
    return (
        select(Invoice)
        .options(selectinload(Invoice.items))
        .execution_options(populate_existing=True)
    )


def current_month(today: date):
    """First and last day of the month containing today"""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


class InvoiceGenerator:
    """Builds invoices from locked orders and moves them DRAFT -> ISSUED -> PAID"""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_invoices(
        self,
        period_start: date,
        period_end: date,
        identity: CallerIdentity,
    ) -> List[Invoice]:
        """Generate invoices for every business, SUPER_ADMIN only"""
        if not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can generate invoices")
        return await self._generate(period_start, period_end)

    async def generate_business_invoices(
        self,
        business_id: UUID,
        identity: CallerIdentity,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> List[Invoice]:
        """Generate one business's invoices; the period defaults to the current month"""
        if identity.role == UserRole.EMPLOYEE or not identity.can_access_business(business_id):
            raise AccessDenied("Access denied to this business's invoices")

        default_start, default_end = current_month(self.clock.today())
        return await self._generate(period_start or default_start, period_end or default_end, business_id)

    async def _generate(self, period_start: date, period_end: date, business_id: Optional[UUID] = None) -> List[Invoice]:
        if period_start > period_end:
            raise ValidationFailed("period_start must be before period_end")

        query = (
            select(Order.id, Order.business_id, Order.order_date, Order.total_amount, Pack.name, ServicePack.service_id)
            .join(Pack, Pack.id == Order.pack_id)
            .outerjoin(ServicePack, ServicePack.pack_id == Order.pack_id)
            .where(
                Order.order_date >= period_start,
                Order.order_date <= period_end,
                Order.status == OrderStatus.LOCKED,
            )
            .order_by(Order.business_id, Order.order_date, Order.created_at)
        )
        if business_id is not None:
            query = query.where(Order.business_id == business_id)
        rows = (await self.db.execute(query)).all()

        invoiced = set()
        if rows:
            result = await self.db.execute(
                select(InvoiceItem.order_id)
                .join(Invoice, Invoice.id == InvoiceItem.invoice_id)
                .where(
                    InvoiceItem.order_id.in_([row.id for row in rows]),
                    Invoice.status != InvoiceStatus.DRAFT,
                )
            )
            invoiced = set(result.scalars().all())

        groups = OrderedDict()
        for row in rows:
            if row.service_id is None:
                continue
            groups.setdefault((row.business_id, row.service_id), []).append(row)

        invoices = []
        for (group_business_id, service_id), group in groups.items():
            existing = await self._find_live(group_business_id, service_id, period_start, period_end)
            if existing is not None:
                logger.info("Existing invoice returned", invoice_id=str(existing.id))
                invoices.append(existing)
                continue

            available = [row for row in group if row.id not in invoiced]
            if not available:
                continue

            invoices.append(
                await self._create_invoice(group_business_id, service_id, period_start, period_end, available)
            )

        if not invoices:
            raise NoInvoiceableOrders("No LOCKED orders found for the specified period")
        return invoices

    async def _create_invoice(
        self,
        business_id: UUID,
        service_id: UUID,
        period_start: date,
        period_end: date,
        orders: list,
    ) -> Invoice:
        # A number free at lookup can still be taken before commit
        for _ in range(settings.invoice_number_max_attempts):
            invoice_number = await self._next_invoice_number()
            try:
                return await self._insert_invoice(
                    invoice_number, business_id, service_id, period_start, period_end, orders
                )
            except IntegrityError as exc:
                if "invoice_number" not in str(exc.orig):
                    raise DuplicateInvoice("Invoice already exists for this business, service and period")
                logger.warning("Invoice number collision", invoice_number=invoice_number)
        raise InvoiceNumberExhausted("Failed to generate unique invoice number")

    async def _insert_invoice(
        self,
        invoice_number: str,
        business_id: UUID,
        service_id: UUID,
        period_start: date,
        period_end: date,
        orders: list,
    ) -> Invoice:
        items = [
            InvoiceItem(
                order_id=row.id,
                order_date=row.order_date,
                pack_name=row.name,
                quantity=1,
                unit_price=row.total_amount,
                total_price=row.total_amount,
            )
            for row in orders
        ]
        subtotal = sum((item.total_price for item in items), Decimal("0.00"))

        async with atomic(self.db):
            existing = await self._find_live(business_id, service_id, period_start, period_end)
            if existing is not None:
                return existing

            result = await self.db.execute(
                select(InvoiceItem.order_id).where(InvoiceItem.order_id.in_([row.id for row in orders]))
            )
            taken = list(result.scalars().all())
            if taken:
                raise DuplicateInvoice(
                    f"Some orders are already included in other invoices: {', '.join(str(t) for t in taken)}"
                )

            invoice = Invoice(
                business_id=business_id,
                service_id=service_id,
                invoice_number=invoice_number,
                period_start=period_start,
                period_end=period_end,
                status=InvoiceStatus.DRAFT,
                subtotal=subtotal,
                tax=None,
                total=subtotal,
                due_date=period_end + timedelta(days=settings.invoice_due_days),
                items=items,
            )
            self.db.add(invoice)
            await self.db.flush()

        logger.info(
            "Invoice created",
            invoice_id=str(invoice.id),
            invoice_number=invoice_number,
            business_id=str(business_id),
            service_id=str(service_id),
            items=len(items),
            total=str(subtotal),
        )
        return await self._load(invoice.id)

    def _candidate_number(self) -> str:
        return f"INV-{self.clock.today():%Y%m%d}-{random.randint(0, 9999):04d}"

    async def _next_invoice_number(self) -> str:
        for _ in range(settings.invoice_number_max_attempts):
            candidate = self._candidate_number()
            result = await self.db.execute(select(Invoice.id).where(Invoice.invoice_number == candidate))
            if result.scalar_one_or_none() is None:
                return candidate
        raise InvoiceNumberExhausted("Failed to generate unique invoice number")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def issue_invoice(self, invoice_id: UUID, identity: CallerIdentity) -> Invoice:
        """DRAFT -> ISSUED"""
        if not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can issue invoices")

        invoice = await self._load(invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvalidStateTransition(
                f"Cannot issue invoice with status {invoice.status.value}. Only DRAFT invoices can be issued."
            )

        async with atomic(self.db):
            invoice.status = InvoiceStatus.ISSUED
            invoice.issued_at = self.clock.now()

        logger.info("Invoice issued", invoice_id=str(invoice.id), invoice_number=invoice.invoice_number)
        return invoice

    async def mark_as_paid(self, invoice_id: UUID, identity: CallerIdentity) -> Invoice:
        """ISSUED -> PAID"""
        if not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can mark invoices as paid")

        invoice = await self._load(invoice_id)
        if invoice.status != InvoiceStatus.ISSUED:
            raise InvalidStateTransition(
                f"Cannot mark invoice as paid with status {invoice.status.value}. Only ISSUED invoices can be marked as paid."
            )

        async with atomic(self.db):
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = self.clock.now()

        logger.info("Invoice paid", invoice_id=str(invoice.id), invoice_number=invoice.invoice_number)
        return invoice

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_invoices(self, identity: CallerIdentity) -> List[Invoice]:
        if not identity.is_super_admin:
            raise AccessDenied("Only SUPER_ADMIN can view all invoices")
        result = await self.db.execute(_invoice_query().order_by(Invoice.created_at.desc()))
        return list(result.scalars().all())

    async def list_business_invoices(self, identity: CallerIdentity, business_id: Optional[UUID] = None) -> List[Invoice]:
        if identity.role == UserRole.EMPLOYEE:
            raise AccessDenied("Only SUPER_ADMIN and BUSINESS_ADMIN can view invoices")
        if not identity.is_super_admin:
            business_id = identity.business_id
        if business_id is None:
            raise AccessDenied("User must be associated with a business")

        result = await self.db.execute(
            _invoice_query().where(Invoice.business_id == business_id).order_by(Invoice.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_invoice(self, invoice_id: UUID, identity: CallerIdentity) -> Invoice:
        if identity.role == UserRole.EMPLOYEE:
            raise AccessDenied("Only SUPER_ADMIN and BUSINESS_ADMIN can view invoices")

        invoice = await self._load(invoice_id)
        if not identity.can_access_business(invoice.business_id):
            raise AccessDenied("Access denied to this invoice")
        return invoice

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, invoice_id: UUID) -> Invoice:
        result = await self.db.execute(_invoice_query().where(Invoice.id == invoice_id))
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFound(f"Invoice with ID {invoice_id} not found")
        return invoice

    async def _find_live(self, business_id: UUID, service_id: UUID, period_start: date, period_end: date) -> Optional[Invoice]:
        result = await self.db.execute(
            _invoice_query().where(
                Invoice.business_id == business_id,
                Invoice.service_id == service_id,
                Invoice.period_start == period_start,
                Invoice.period_end == period_end,
                Invoice.status.in_(LIVE_INVOICE_STATUSES),
            )
        )
        return result.scalar_one_or_none()
