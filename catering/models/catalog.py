"""Catalog models: components, variants, packs, services and legacy meals"""

import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Date, ForeignKey, Numeric, Text, Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from catering.database import Base


class Component(Base):
    """A menu category such as "Soup" or "Drink" """
    __tablename__ = "components"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    variants = relationship("Variant", back_populates="component", cascade="all, delete-orphan")


class Variant(Base):
    """A concrete choice within a component, e.g. "Lentil Soup" """
    __tablename__ = "variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    component_id = Column(Uuid, ForeignKey("components.id"), nullable=False)
    name = Column(String(255), nullable=False)
    image_url = Column(String(500))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    component = relationship("Component", back_populates="variants")


class Pack(Base):
    """A priced, fixed meal bundle"""
    __tablename__ = "packs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    pack_components = relationship(
        "PackComponent",
        back_populates="pack",
        cascade="all, delete-orphan",
        order_by="PackComponent.order_index",
    )
    service_pack = relationship("ServicePack", back_populates="pack", uselist=False)


class PackComponent(Base):
    """Declares that a pack contains a component, and whether it is required"""
    __tablename__ = "pack_components"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pack_id = Column(Uuid, ForeignKey("packs.id"), nullable=False)
    component_id = Column(Uuid, ForeignKey("components.id"), nullable=False)
    required = Column(Boolean, default=True, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    # Relationships
    pack = relationship("Pack", back_populates="pack_components")
    component = relationship("Component")

    __table_args__ = (
        UniqueConstraint("pack_id", "component_id", name="uq_pack_components_pack_component"),
    )


class Service(Base):
    """A sellable offering (Lunch, Dinner...) with its own ordering window"""
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    order_start_time = Column(String(5))  # HH:MM, no lower bound when empty
    cutoff_time = Column(String(5))  # HH:MM, overrides DailyMenu.cutoff_hour
    is_active = Column(Boolean, default=True)
    is_published = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    service_packs = relationship("ServicePack", back_populates="service", cascade="all, delete-orphan")


class ServicePack(Base):
    """Binds a pack to its single owning service"""
    __tablename__ = "service_packs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)
    pack_id = Column(Uuid, ForeignKey("packs.id"), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    service = relationship("Service", back_populates="service_packs")
    pack = relationship("Pack", back_populates="service_pack")


class Meal(Base):
    """Legacy dated meal; only consulted as a last-resort cutoff source"""
    __tablename__ = "meals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    available_date = Column(Date, nullable=False, index=True)
    cutoff_time = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    status = Column(String(20), default="ACTIVE")  # ACTIVE, ARCHIVED
    created_at = Column(DateTime, default=datetime.utcnow)
