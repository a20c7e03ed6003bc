"""Daily menu schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from catering.models.daily_menu import DailyMenuStatus


class DailyMenuCreate(BaseModel):
    """Create daily menu request"""
    date: str  # YYYY-MM-DD, local calendar date
    cutoff_hour: Optional[str] = None  # HH:MM


class CutoffHourUpdate(BaseModel):
    cutoff_hour: str


class AddPackRequest(BaseModel):
    pack_id: UUID


class AddVariantRequest(BaseModel):
    variant_id: UUID
    initial_stock: Optional[int] = Field(default=None, ge=0)


class StockUpdate(BaseModel):
    stock: int = Field(ge=0)


class AddServiceRequest(BaseModel):
    service_id: UUID


class DailyMenuPackResponse(BaseModel):
    pack_id: UUID
    name: str
    price: Decimal
    is_active: bool


class DailyMenuVariantResponse(BaseModel):
    variant_id: UUID
    name: str
    component_id: UUID
    component_name: str
    stock: int


class DailyMenuServiceResponse(BaseModel):
    service_id: UUID
    name: str
    variants: List[DailyMenuVariantResponse]


class DailyMenuSummary(BaseModel):
    """Daily menu in lists"""
    id: UUID
    date: date
    status: DailyMenuStatus
    cutoff_hour: Optional[str]
    published_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class DailyMenuResponse(DailyMenuSummary):
    """Daily menu with packs, variants and services"""
    packs: List[DailyMenuPackResponse] = []
    variants: List[DailyMenuVariantResponse] = []
    services: List[DailyMenuServiceResponse] = []


class PublishResponse(BaseModel):
    menu: DailyMenuResponse
    warnings: List[str]


class PublishedVariant(BaseModel):
    id: UUID
    name: str
    image_url: Optional[str]
    stock: int


class PublishedComponent(BaseModel):
    id: UUID
    name: str
    required: bool
    order_index: int
    variants: List[PublishedVariant]


class PublishedPack(BaseModel):
    id: UUID
    name: str
    price: Decimal
    service_id: Optional[UUID]
    cutoff: Optional[datetime]
    order_start: Optional[datetime]
    ordering_open: bool
    components: List[PublishedComponent]


class PublishedMenuResponse(BaseModel):
    """Employee view of today's menu"""
    id: UUID
    date: date
    status: DailyMenuStatus
    cutoff: Optional[datetime]
    packs: List[PublishedPack]
