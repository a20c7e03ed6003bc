"""Operations models: permanent day locks and manual ordering locks"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Boolean, DateTime, Date, Uuid

from catering.database import Base


class DayLock(Base):
    """Presence of a row means the date is permanently locked. Never deleted."""
    __tablename__ = "day_locks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lock_date = Column(Date, nullable=False, unique=True)
    locked_by = Column(Uuid)
    locked_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class OrderingLock(Base):
    """Manual per-date ordering switch, shared by every API instance"""
    __tablename__ = "ordering_locks"

    lock_date = Column(Date, primary_key=True)
    locked = Column(Boolean, nullable=False, default=False)
    updated_by = Column(Uuid)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
