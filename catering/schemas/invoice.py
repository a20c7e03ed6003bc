"""Invoice schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel

from catering.models.invoice import InvoiceStatus


class GenerateInvoicesRequest(BaseModel):
    period_start: str  # YYYY-MM-DD
    period_end: str


class GenerateBusinessInvoicesRequest(BaseModel):
    """Period defaults to the current month"""
    period_start: Optional[str] = None
    period_end: Optional[str] = None


class InvoiceItemResponse(BaseModel):
    id: UUID
    order_id: UUID
    order_date: date
    pack_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    business_id: UUID
    service_id: UUID
    invoice_number: str
    period_start: date
    period_end: date
    status: InvoiceStatus
    subtotal: Decimal
    tax: Optional[Decimal]
    total: Decimal
    due_date: date
    issued_at: Optional[datetime]
    paid_at: Optional[datetime]
    created_at: Optional[datetime]
    items: List[InvoiceItemResponse]

    class Config:
        from_attributes = True
