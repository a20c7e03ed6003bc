"""Business service subscription API endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catering.api.auth import verify_business_access
from catering.clock import Clock, get_clock
from catering.database import get_db
from catering.identity import CallerIdentity
from catering.models.business import BusinessService
from catering.schemas.business_service import (
    ActivateServiceRequest,
    UpdateServiceRequest,
    BusinessServiceResponse,
)
from catering.services.business_services import BusinessServiceScheduler

router = APIRouter()


def business_service_response(business_service: BusinessService) -> BusinessServiceResponse:
    active = next((row for row in business_service.packs if row.is_active), None)
    pending = next((row for row in business_service.packs if row.next_pack_id is not None), None)
    return BusinessServiceResponse(
        id=business_service.id,
        business_id=business_service.business_id,
        service_id=business_service.service_id,
        service_name=business_service.service.name,
        is_active=business_service.is_active,
        active_pack={"id": active.pack.id, "name": active.pack.name} if active else None,
        pending_pack={"id": pending.next_pack.id, "name": pending.next_pack.name} if pending else None,
        effective_date=pending.effective_date if pending else None,
    )


@router.get("", response_model=List[BusinessServiceResponse])
async def list_business_services(
    business_id: UUID,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Subscriptions of a business, with due pack changes applied"""
    services = await BusinessServiceScheduler(db, clock).get_business_services(business_id, identity)
    return [business_service_response(bs) for bs in services]


@router.post("", response_model=BusinessServiceResponse, status_code=201)
async def activate_service(
    business_id: UUID,
    data: ActivateServiceRequest,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    business_service = await BusinessServiceScheduler(db, clock).activate_service(
        business_id, data.service_id, data.pack_ids, identity
    )
    return business_service_response(business_service)


@router.get("/{service_id}", response_model=BusinessServiceResponse)
async def get_business_service(
    business_id: UUID,
    service_id: UUID,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    business_service = await BusinessServiceScheduler(db, clock).get_business_service(business_id, service_id, identity)
    return business_service_response(business_service)


@router.patch("/{service_id}", response_model=BusinessServiceResponse)
async def update_business_service(
    business_id: UUID,
    service_id: UUID,
    data: UpdateServiceRequest,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """SUPER_ADMIN changes apply now; BUSINESS_ADMIN pack changes apply tomorrow"""
    business_service = await BusinessServiceScheduler(db, clock).update_service(
        business_id, service_id, identity, is_active=data.is_active, pack_ids=data.pack_ids
    )
    return business_service_response(business_service)


@router.delete("/{service_id}", response_model=BusinessServiceResponse)
async def deactivate_business_service(
    business_id: UUID,
    service_id: UUID,
    identity: CallerIdentity = Depends(verify_business_access),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    business_service = await BusinessServiceScheduler(db, clock).deactivate_service(business_id, service_id, identity)
    return business_service_response(business_service)
