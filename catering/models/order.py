"""Order model"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Numeric, Uuid, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from catering.database import Base

# Scope used for orders whose pack belongs to no service
LEGACY_SCOPE = "legacy"


class OrderStatus(str, enum.Enum):
    """CREATED -> LOCKED (day lock or cutoff), CREATED -> CANCELLED"""
    CREATED = "CREATED"
    LOCKED = "LOCKED"
    CANCELLED = "CANCELLED"


def service_scope(service_id) -> str:
    """Uniqueness scope of an order: its service, or the single legacy scope"""
    return str(service_id) if service_id else LEGACY_SCOPE


class Order(Base):
    """One order per employee per service per day"""
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id = Column(Uuid, ForeignKey("employees.id"), nullable=False)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    daily_menu_id = Column(Uuid, ForeignKey("daily_menus.id"))
    pack_id = Column(Uuid, ForeignKey("packs.id"))
    service_id = Column(Uuid, ForeignKey("services.id"))
    service_scope = Column(String(64), nullable=False, default=LEGACY_SCOPE)
    order_date = Column(Date, nullable=False)

    # Status
    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.CREATED, nullable=False)

    # Pack price captured at creation, never recomputed
    total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    pack = relationship("Pack")

    __table_args__ = (
        UniqueConstraint("employee_id", "order_date", "service_scope", name="uq_orders_employee_date_scope"),
        Index("idx_orders_date_status", "order_date", "status"),
    )


class OrderItem(Base):
    """Append-only (component, variant) selection of an order"""
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    component_id = Column(Uuid, ForeignKey("components.id"), nullable=False)
    variant_id = Column(Uuid, ForeignKey("variants.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="items")
