"""Operations schemas: day locks, ordering locks, kitchen summary"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel


class DateRequest(BaseModel):
    date: str  # YYYY-MM-DD


class DayLockResponse(BaseModel):
    lock_date: date
    orders_locked: int
    locked_at: datetime


class DayLockStatus(BaseModel):
    date: date
    locked: bool


class OrderingLockResponse(BaseModel):
    lock_date: date
    locked: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class KitchenBusinessLine(BaseModel):
    business_id: UUID
    business_name: str
    quantity: int


class KitchenPackLine(BaseModel):
    pack_id: UUID
    pack_name: str
    total_quantity: int
    total_amount: Decimal
    businesses: List[KitchenBusinessLine]


class KitchenVariantLine(BaseModel):
    variant_id: UUID
    variant_name: str
    quantity: int


class KitchenSummaryResponse(BaseModel):
    date: date
    locked_at: Optional[datetime]
    total_orders: int
    total_amount: Decimal
    packs: List[KitchenPackLine]
    variants: List[KitchenVariantLine]
