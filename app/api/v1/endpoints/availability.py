"""Availability rule management and slot listing.

- GET    /api/v1/availability/me                    → Caller's rules
- POST   /api/v1/availability/                      → Create rule
- POST   /api/v1/availability/provision             → Seed default Mon-Fri rules
- PUT    /api/v1/availability/{rule_id}             → Partial update
- DELETE /api/v1/availability/{rule_id}             → Delete rule
- GET    /api/v1/availability/{provider_id}/slots   → Slots with availability flag
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.deps import get_availability_service, get_current_user, require_provider
from app.core.seed import ensure_default_availability
from app.models.user import User
from app.schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleOut,
    AvailabilityRuleUpdate,
    AvailableSlotsResponse,
    TimeSlot,
)
from app.services.availability_service import AvailabilityService

router = APIRouter()
logger = logging.getLogger(__name__)


async def slots_response(
    service: AvailabilityService,
    db: AsyncSession,
    provider_id: UUID,
    start_date: date,
    end_date: date,
) -> AvailableSlotsResponse:
    """Shared by the authenticated and public slot endpoints."""
    if settings.AUTO_PROVISION_DEFAULT_AVAILABILITY:
        await ensure_default_availability(db, provider_id)

    slots = await service.list_available_slots(provider_id, start_date, end_date)
    return AvailableSlotsResponse(
        provider_id=provider_id,
        start_date=start_date,
        end_date=end_date,
        slots=[TimeSlot.model_validate(slot) for slot in slots],
    )


@router.get("/me", response_model=list[AvailabilityRuleOut])
async def list_my_rules(
    current_user: User = Depends(require_provider),
    service: AvailabilityService = Depends(get_availability_service),
):
    """List the caller's availability rules."""
    return await service.list_rules(current_user.id)


@router.post("/", response_model=AvailabilityRuleOut, status_code=201)
async def create_rule(
    data: AvailabilityRuleCreate,
    current_user: User = Depends(require_provider),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Create an availability rule for the caller."""
    return await service.create_rule(current_user, data)


@router.post("/provision", response_model=list[AvailabilityRuleOut])
async def provision_default_rules(
    current_user: User = Depends(require_provider),
    db: AsyncSession = Depends(get_db),
):
    """Seed Mon-Fri 09:00-17:00 rules if the caller has none yet."""
    return await ensure_default_availability(db, current_user.id)


@router.put("/{rule_id}", response_model=AvailabilityRuleOut)
async def update_rule(
    rule_id: UUID,
    data: AvailabilityRuleUpdate,
    current_user: User = Depends(require_provider),
    service: AvailabilityService = Depends(get_availability_service),
):
    return await service.update_rule(rule_id, current_user, data)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: UUID,
    current_user: User = Depends(require_provider),
    service: AvailabilityService = Depends(get_availability_service),
):
    await service.delete_rule(rule_id, current_user)


@router.get("/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    provider_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Get slots for a provider between two dates (inclusive)."""
    return await slots_response(service, db, provider_id, start_date, end_date)
