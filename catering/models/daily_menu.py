"""Daily menu models and the per-day stock ledger"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, DateTime, Date, ForeignKey, Uuid, Enum,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from catering.database import Base


class DailyMenuStatus(str, enum.Enum):
    """DRAFT -> PUBLISHED -> LOCKED, and LOCKED -> PUBLISHED on unlock"""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    LOCKED = "LOCKED"


class DailyMenu(Base):
    """One publication unit per calendar date"""
    __tablename__ = "daily_menus"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, unique=True)
    status = Column(Enum(DailyMenuStatus, name="daily_menu_status"), default=DailyMenuStatus.DRAFT, nullable=False)
    cutoff_hour = Column(String(5), default="14:00")  # HH:MM
    published_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    packs = relationship("DailyMenuPack", back_populates="daily_menu", cascade="all, delete-orphan")
    variants = relationship("DailyMenuVariant", back_populates="daily_menu", cascade="all, delete-orphan")
    services = relationship("DailyMenuService", back_populates="daily_menu", cascade="all, delete-orphan")


class DailyMenuPack(Base):
    __tablename__ = "daily_menu_packs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    daily_menu_id = Column(Uuid, ForeignKey("daily_menus.id", ondelete="CASCADE"), nullable=False)
    pack_id = Column(Uuid, ForeignKey("packs.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    daily_menu = relationship("DailyMenu", back_populates="packs")
    pack = relationship("Pack")

    __table_args__ = (
        UniqueConstraint("daily_menu_id", "pack_id", name="uq_daily_menu_packs_menu_pack"),
    )


class DailyMenuVariant(Base):
    """
    Menu-level stock for legacy packs.

    initial_stock is the live remaining counter: it is decremented once per
    order item and can never go below zero.
    """
    __tablename__ = "daily_menu_variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    daily_menu_id = Column(Uuid, ForeignKey("daily_menus.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Uuid, ForeignKey("variants.id"), nullable=False)
    initial_stock = Column(Integer, nullable=False, default=50)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    daily_menu = relationship("DailyMenu", back_populates="variants")
    variant = relationship("Variant")

    __table_args__ = (
        UniqueConstraint("daily_menu_id", "variant_id", name="uq_daily_menu_variants_menu_variant"),
        CheckConstraint("initial_stock >= 0", name="ck_daily_menu_variants_stock_non_negative"),
    )


class DailyMenuService(Base):
    """A service offered on a given day, with its own variant stock"""
    __tablename__ = "daily_menu_services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    daily_menu_id = Column(Uuid, ForeignKey("daily_menus.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    daily_menu = relationship("DailyMenu", back_populates="services")
    service = relationship("Service")
    variants = relationship("DailyMenuServiceVariant", back_populates="daily_menu_service", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("daily_menu_id", "service_id", name="uq_daily_menu_services_menu_service"),
    )


class DailyMenuServiceVariant(Base):
    """Service-level stock; same live-counter semantics as DailyMenuVariant"""
    __tablename__ = "daily_menu_service_variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    daily_menu_service_id = Column(Uuid, ForeignKey("daily_menu_services.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Uuid, ForeignKey("variants.id"), nullable=False)
    initial_stock = Column(Integer, nullable=False, default=50)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    daily_menu_service = relationship("DailyMenuService", back_populates="variants")
    variant = relationship("Variant")

    __table_args__ = (
        UniqueConstraint("daily_menu_service_id", "variant_id", name="uq_daily_menu_service_variants_service_variant"),
        CheckConstraint("initial_stock >= 0", name="ck_daily_menu_service_variants_stock_non_negative"),
    )
