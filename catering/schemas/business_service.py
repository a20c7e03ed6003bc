"""Business service subscription schemas"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel


class ActivateServiceRequest(BaseModel):
    service_id: UUID
    pack_ids: List[UUID]


class UpdateServiceRequest(BaseModel):
    """Only SUPER_ADMIN may send is_active"""
    is_active: Optional[bool] = None
    pack_ids: Optional[List[UUID]] = None


class PackRef(BaseModel):
    id: UUID
    name: str


class BusinessServiceResponse(BaseModel):
    id: UUID
    business_id: UUID
    service_id: UUID
    service_name: str
    is_active: bool
    active_pack: Optional[PackRef] = None
    pending_pack: Optional[PackRef] = None
    effective_date: Optional[datetime] = None
