"""Order API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.auth import get_current_identity, require_role
from catering.clock import Clock, get_clock, parse_local_date
from catering.database import get_db
from catering.identity import CallerIdentity, UserRole
from catering.models.order import Order, OrderStatus
from catering.schemas.order import OrderCreate, OrderResponse, CanModifyResponse
from catering.services.orders import OrderPlacementEngine

router = APIRouter()


def order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        employee_id=order.employee_id,
        business_id=order.business_id,
        daily_menu_id=order.daily_menu_id,
        pack_id=order.pack_id,
        pack_name=order.pack.name if order.pack else None,
        service_id=order.service_id,
        order_date=order.order_date,
        status=order.status,
        total_amount=order.total_amount,
        items=order.items,
        created_at=order.created_at,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    identity: CallerIdentity = Depends(require_role(UserRole.EMPLOYEE)),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Place today's order; repeating the call returns the same order"""
    order = await OrderPlacementEngine(db, clock).create_order(
        identity, data.daily_menu_id, data.pack_id, data.selected_variants
    )
    return order_response(order)


@router.get("/today", response_model=List[OrderResponse])
async def get_today_orders(
    identity: CallerIdentity = Depends(require_role(UserRole.EMPLOYEE)),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    orders = await OrderPlacementEngine(db, clock).get_today_orders(identity)
    return [order_response(order) for order in orders]


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    business_id: Optional[UUID] = None,
    status: Optional[OrderStatus] = None,
    identity: CallerIdentity = Depends(require_role(UserRole.SUPER_ADMIN, UserRole.BUSINESS_ADMIN)),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """List orders; BUSINESS_ADMIN only sees their own business"""
    order_date = parse_local_date(date) if date else None
    orders = await OrderPlacementEngine(db, clock).list_orders(identity, order_date, business_id, status)
    return [order_response(order) for order in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return order_response(await OrderPlacementEngine(db, clock).get_order(identity, order_id))


@router.get("/{order_id}/can-modify", response_model=CanModifyResponse)
async def can_modify_order(
    order_id: UUID,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Whether the order is still modifiable; may lock it as a side effect"""
    engine = OrderPlacementEngine(db, clock)
    can_modify = await engine.can_modify_order(identity, order_id)
    order = await engine.get_order_by_id(order_id)
    return CanModifyResponse(order_id=order.id, can_modify=can_modify, status=order.status)
