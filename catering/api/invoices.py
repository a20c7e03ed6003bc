"""Invoice API endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.auth import get_current_identity, require_role, verify_business_access
from catering.clock import Clock, get_clock, parse_local_date
from catering.database import get_db
from catering.identity import CallerIdentity, UserRole
from catering.schemas.invoice import (
    GenerateInvoicesRequest,
    GenerateBusinessInvoicesRequest,
    InvoiceResponse,
)
from catering.services.invoices import InvoiceGenerator

router = APIRouter()

admin_only = require_role(UserRole.SUPER_ADMIN)


@router.post("/generate", response_model=List[InvoiceResponse])
async def generate_invoices(
    data: GenerateInvoicesRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Generate invoices for a period; idempotent per business, service and period"""
    return await InvoiceGenerator(db, clock).generate_invoices(
        parse_local_date(data.period_start), parse_local_date(data.period_end), identity
    )


@router.post("/businesses/{business_id}/generate", response_model=List[InvoiceResponse])
async def generate_business_invoices(
    business_id: UUID,
    data: GenerateBusinessInvoicesRequest,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await InvoiceGenerator(db, clock).generate_business_invoices(
        business_id,
        identity,
        parse_local_date(data.period_start) if data.period_start else None,
        parse_local_date(data.period_end) if data.period_end else None,
    )


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await InvoiceGenerator(db, clock).list_invoices(identity)


@router.get("/business", response_model=List[InvoiceResponse])
async def list_business_invoices(
    identity: CallerIdentity = Depends(require_role(UserRole.BUSINESS_ADMIN)),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Invoices of the caller's business"""
    return await InvoiceGenerator(db, clock).list_business_invoices(identity)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await InvoiceGenerator(db, clock).get_invoice(invoice_id, identity)


@router.post("/{invoice_id}/issue", response_model=InvoiceResponse)
async def issue_invoice(
    invoice_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await InvoiceGenerator(db, clock).issue_invoice(invoice_id, identity)


@router.post("/{invoice_id}/pay", response_model=InvoiceResponse)
async def mark_invoice_paid(
    invoice_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await InvoiceGenerator(db, clock).mark_as_paid(invoice_id, identity)
