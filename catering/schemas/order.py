"""Order schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from catering.models.order import OrderStatus


class VariantSelection(BaseModel):
    """One (component, variant) choice"""
    component_id: UUID
    variant_id: UUID


class OrderCreate(BaseModel):
    """Create order request"""
    daily_menu_id: UUID
    pack_id: UUID
    selected_variants: List[VariantSelection] = Field(min_length=1)


class OrderItemResponse(BaseModel):
    id: UUID
    component_id: UUID
    variant_id: UUID

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response"""
    id: UUID
    employee_id: UUID
    business_id: UUID
    daily_menu_id: Optional[UUID]
    pack_id: Optional[UUID]
    pack_name: Optional[str] = None
    service_id: Optional[UUID]
    order_date: date
    status: OrderStatus
    total_amount: Decimal
    items: List[OrderItemResponse]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class CanModifyResponse(BaseModel):
    order_id: UUID
    can_modify: bool
    status: OrderStatus
