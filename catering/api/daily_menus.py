"""Daily menu API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.auth import get_current_identity, require_role
from catering.clock import Clock, get_clock, parse_local_date
from catering.database import get_db
from catering.identity import CallerIdentity, UserRole
from catering.models.daily_menu import DailyMenu
from catering.schemas.daily_menu import (
    DailyMenuCreate,
    CutoffHourUpdate,
    AddPackRequest,
    AddVariantRequest,
    StockUpdate,
    AddServiceRequest,
    DailyMenuSummary,
    DailyMenuResponse,
    PublishResponse,
    PublishedMenuResponse,
)
from catering.services.daily_menus import DailyMenuLifecycle

router = APIRouter()

admin_only = require_role(UserRole.SUPER_ADMIN)


def _variant_line(row) -> dict:
    return {
        "variant_id": row.variant_id,
        "name": row.variant.name,
        "component_id": row.variant.component_id,
        "component_name": row.variant.component.name,
        "stock": row.initial_stock,
    }


def menu_response(menu: DailyMenu) -> DailyMenuResponse:
    return DailyMenuResponse(
        id=menu.id,
        date=menu.date,
        status=menu.status,
        cutoff_hour=menu.cutoff_hour,
        published_at=menu.published_at,
        created_at=menu.created_at,
        packs=[
            {
                "pack_id": row.pack_id,
                "name": row.pack.name,
                "price": row.pack.price,
                "is_active": row.pack.is_active,
            }
            for row in menu.packs
        ],
        variants=[_variant_line(row) for row in menu.variants],
        services=[
            {
                "service_id": row.service_id,
                "name": row.service.name,
                "variants": [_variant_line(v) for v in row.variants],
            }
            for row in menu.services
        ],
    )


@router.get("", response_model=List[DailyMenuSummary])
async def list_menus(
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """List daily menus, newest first"""
    return await DailyMenuLifecycle(db, clock).list_menus()


@router.post("", response_model=DailyMenuResponse, status_code=201)
async def create_menu(
    data: DailyMenuCreate,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Create a DRAFT menu for a date"""
    lifecycle = DailyMenuLifecycle(db, clock)
    menu = await lifecycle.create(parse_local_date(data.date), data.cutoff_hour)
    return menu_response(await lifecycle.get_menu(menu.id))


@router.get("/published", response_model=PublishedMenuResponse)
async def get_published_menu(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Employee view of the published menu"""
    menu_date = parse_local_date(date) if date else clock.today()
    return await DailyMenuLifecycle(db, clock).get_published_menu(menu_date)


@router.get("/{menu_id}", response_model=DailyMenuResponse)
async def get_menu(
    menu_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return menu_response(await DailyMenuLifecycle(db, clock).get_menu(menu_id))


@router.patch("/{menu_id}/cutoff-hour", response_model=DailyMenuResponse)
async def update_cutoff_hour(
    menu_id: UUID,
    data: CutoffHourUpdate,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.update_cutoff_hour(menu_id, data.cutoff_hour)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.delete("/{menu_id}", status_code=204)
async def delete_menu(
    menu_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Delete a DRAFT menu"""
    await DailyMenuLifecycle(db, clock).delete(menu_id)
    return Response(status_code=204)


# Packs

@router.post("/{menu_id}/packs", response_model=DailyMenuResponse, status_code=201)
async def add_pack(
    menu_id: UUID,
    data: AddPackRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.add_pack(menu_id, data.pack_id)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.delete("/{menu_id}/packs/{pack_id}", response_model=DailyMenuResponse)
async def remove_pack(
    menu_id: UUID,
    pack_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.remove_pack(menu_id, pack_id)
    return menu_response(await lifecycle.get_menu(menu_id))


# Menu-level variants

@router.post("/{menu_id}/variants", response_model=DailyMenuResponse, status_code=201)
async def add_variant(
    menu_id: UUID,
    data: AddVariantRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.add_variant(menu_id, data.variant_id, data.initial_stock)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.patch("/{menu_id}/variants/{variant_id}", response_model=DailyMenuResponse)
async def update_variant_stock(
    menu_id: UUID,
    variant_id: UUID,
    data: StockUpdate,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.update_variant_stock(menu_id, variant_id, data.stock)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.delete("/{menu_id}/variants/{variant_id}", response_model=DailyMenuResponse)
async def remove_variant(
    menu_id: UUID,
    variant_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.remove_variant(menu_id, variant_id)
    return menu_response(await lifecycle.get_menu(menu_id))


# Services and their variants

@router.post("/{menu_id}/services", response_model=DailyMenuResponse, status_code=201)
async def add_service(
    menu_id: UUID,
    data: AddServiceRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.add_service(menu_id, data.service_id)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.delete("/{menu_id}/services/{service_id}", response_model=DailyMenuResponse)
async def remove_service(
    menu_id: UUID,
    service_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.remove_service(menu_id, service_id)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.post("/{menu_id}/services/{service_id}/variants", response_model=DailyMenuResponse, status_code=201)
async def add_service_variant(
    menu_id: UUID,
    service_id: UUID,
    data: AddVariantRequest,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.add_service_variant(menu_id, service_id, data.variant_id, data.initial_stock)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.patch("/{menu_id}/services/{service_id}/variants/{variant_id}", response_model=DailyMenuResponse)
async def update_service_variant_stock(
    menu_id: UUID,
    service_id: UUID,
    variant_id: UUID,
    data: StockUpdate,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.update_service_variant_stock(menu_id, service_id, variant_id, data.stock)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.delete("/{menu_id}/services/{service_id}/variants/{variant_id}", response_model=DailyMenuResponse)
async def remove_service_variant(
    menu_id: UUID,
    service_id: UUID,
    variant_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.remove_service_variant(menu_id, service_id, variant_id)
    return menu_response(await lifecycle.get_menu(menu_id))


# Transitions

@router.post("/{menu_id}/publish", response_model=PublishResponse)
async def publish_menu(
    menu_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Publish a DRAFT menu; guardrail warnings are returned, never raised"""
    lifecycle = DailyMenuLifecycle(db, clock)
    result = await lifecycle.publish(menu_id)
    return PublishResponse(menu=menu_response(await lifecycle.get_menu(menu_id)), warnings=result.warnings)


@router.post("/{menu_id}/lock", response_model=DailyMenuResponse)
async def lock_menu(
    menu_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.lock(menu_id)
    return menu_response(await lifecycle.get_menu(menu_id))


@router.post("/{menu_id}/unlock", response_model=DailyMenuResponse)
async def unlock_menu(
    menu_id: UUID,
    identity: CallerIdentity = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = DailyMenuLifecycle(db, clock)
    await lifecycle.unlock(menu_id, identity)
    return menu_response(await lifecycle.get_menu(menu_id))
