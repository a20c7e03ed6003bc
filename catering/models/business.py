"""Business, employee and service subscription models"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from catering.database import Base


class BusinessStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Business(Base):
    """Client business whose employees order meals"""
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    status = Column(Enum(BusinessStatus, name="business_status"), default=BusinessStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    employees = relationship("Employee", back_populates="business")
    business_services = relationship("BusinessService", back_populates="business", cascade="all, delete-orphan")


class Employee(Base):
    """Employee of a business, the only role that places orders"""
    __tablename__ = "employees"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    status = Column(Enum(EmployeeStatus, name="employee_status"), default=EmployeeStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    business = relationship("Business", back_populates="employees")


class BusinessService(Base):
    """A business's subscription to a service"""
    __tablename__ = "business_services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    business = relationship("Business", back_populates="business_services")
    service = relationship("Service")
    packs = relationship("BusinessServicePack", back_populates="business_service", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("business_id", "service_id", name="uq_business_services_business_service"),
    )


class BusinessServicePack(Base):
    """
    Pack selection for a subscription.

    At most one row per subscription is active. A pending change is carried
    by next_pack_id + effective_date and is applied lazily once the
    effective date is reached.
    """
    __tablename__ = "business_service_packs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_service_id = Column(Uuid, ForeignKey("business_services.id"), nullable=False)
    pack_id = Column(Uuid, ForeignKey("packs.id"), nullable=False)
    is_active = Column(Boolean, default=False)
    next_pack_id = Column(Uuid, ForeignKey("packs.id"))
    effective_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    business_service = relationship("BusinessService", back_populates="packs")
    pack = relationship("Pack", foreign_keys=[pack_id])
    next_pack = relationship("Pack", foreign_keys=[next_pack_id])

    __table_args__ = (
        UniqueConstraint("business_service_id", "pack_id", name="uq_business_service_packs_service_pack"),
    )
