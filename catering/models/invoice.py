"""Invoice models"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, String, Integer, DateTime, Date, ForeignKey, Numeric, Uuid, Enum, Index, text,
)
from sqlalchemy.orm import relationship

from catering.database import Base


class InvoiceStatus(str, enum.Enum):
    """Strictly forward: DRAFT -> ISSUED -> PAID"""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"


LIVE_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.ISSUED)


class Invoice(Base):
    """Invoice for one (business, service, period)"""
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)
    invoice_number = Column(String(32), nullable=False, unique=True)  # INV-YYYYMMDD-####
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(Enum(InvoiceStatus, name="invoice_status"), default=InvoiceStatus.DRAFT, nullable=False)

    # Amounts
    subtotal = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    tax = Column(Numeric(10, 2))  # single optional flat tax
    total = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    due_date = Column(Date, nullable=False)
    issued_at = Column(DateTime)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        # One live (DRAFT/ISSUED) invoice per grouping key
        Index(
            "uq_invoices_live_business_service_period",
            "business_id", "service_id", "period_start", "period_end",
            unique=True,
            postgresql_where=text("status IN ('DRAFT', 'ISSUED')"),
            sqlite_where=text("status IN ('DRAFT', 'ISSUED')"),
        ),
    )


class InvoiceItem(Base):
    """One line per order: quantity 1 at the order's pack price"""
    __tablename__ = "invoice_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, unique=True)
    order_date = Column(Date, nullable=False)
    pack_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")
