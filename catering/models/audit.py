"""Audit log model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid

from catering.database import Base


class AuditLog(Base):
    """Audit trail for important actions"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id"))

    # Actor information
    actor_id = Column(Uuid)  # User ID or null for system
    actor_type = Column(String(50))  # user, system
    actor_role = Column(String(50))

    # Action details
    action = Column(String(100), nullable=False)  # schedule_pack_change, clear_pending_pack_change, etc.
    resource_type = Column(String(50))  # business_service_pack, business_service, etc.
    resource_id = Column(Uuid)

    # Change data
    data_json = Column(JSON)  # {"before": {...}, "after": {...}}

    created_at = Column(DateTime, default=datetime.utcnow)
