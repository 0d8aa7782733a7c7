"""Unauthenticated booking endpoints.

Anonymous clients book with contact details and then reach their
appointment only through the public token returned at creation.

- GET /api/v1/public/providers                        → Active providers
- GET /api/v1/public/providers/{provider_id}/slots    → Slot listing
- POST /api/v1/public/book                            → Anonymous booking
- GET /api/v1/public/appointment/{token}              → View by token
- PUT /api/v1/public/appointment/{token}/cancel       → Cancel by token
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.availability import slots_response
from app.core.database import get_db
from app.core.deps import get_availability_service, get_booking_service
from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentOut,
    ProviderOut,
    PublicAppointmentCreate,
    PublicAppointmentOut,
)
from app.schemas.availability import AvailableSlotsResponse
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/providers", response_model=list[ProviderOut])
async def list_public_providers(
    response: Response,
    service: BookingService = Depends(get_booking_service),
):
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return await service.list_providers()


@router.get("/providers/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def get_public_slots(
    provider_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
    service: AvailabilityService = Depends(get_availability_service),
):
    return await slots_response(service, db, provider_id, start_date, end_date)


@router.post("/book", response_model=PublicAppointmentOut, status_code=201)
async def book_public_appointment(
    data: PublicAppointmentCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Book without logging in. The response carries the access token."""
    return await service.create_public_appointment(data)


@router.get("/appointment/{token}", response_model=AppointmentOut)
async def get_public_appointment(
    token: str,
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_by_public_token(token)


@router.put("/appointment/{token}/cancel", response_model=AppointmentOut)
async def cancel_public_appointment(
    token: str,
    data: AppointmentCancel | None = None,
    service: BookingService = Depends(get_booking_service),
):
    reason = data.reason if data else None
    return await service.cancel_by_public_token(token, reason)
