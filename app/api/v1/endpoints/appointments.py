"""Authenticated appointment booking and lifecycle endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.deps import get_booking_service, get_current_user, require_provider
from app.models.user import User
from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentOut,
    AppointmentUpdate,
    ProviderOut,
)
from app.services.booking_service import BookingService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/providers", response_model=list[ProviderOut])
async def list_providers(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.list_providers()


@router.get("/me", response_model=list[AppointmentOut])
async def list_my_appointments(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Appointments where the caller is the provider (providers) or the client."""
    return await service.list_for_user(current_user)


@router.post("/", response_model=AppointmentOut, status_code=201)
async def book_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Book a new appointment (starts PENDING)."""
    return await service.create_appointment(data, current_user)


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_appointment(appointment_id, current_user)


@router.put("/{appointment_id}/confirm", response_model=AppointmentOut)
async def confirm_appointment(
    appointment_id: UUID,
    current_user: User = Depends(require_provider),
    service: BookingService = Depends(get_booking_service),
):
    """Confirm a pending appointment (owning provider only)."""
    return await service.confirm(appointment_id, current_user)


@router.put("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel | None = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel an appointment (sets status to CANCELLED)."""
    reason = data.reason if data else None
    return await service.cancel(appointment_id, current_user, reason)


@router.put("/{appointment_id}/complete", response_model=AppointmentOut)
async def complete_appointment(
    appointment_id: UUID,
    current_user: User = Depends(require_provider),
    service: BookingService = Depends(get_booking_service),
):
    """Mark an appointment as completed."""
    return await service.complete(appointment_id, current_user)


@router.put("/{appointment_id}/no-show", response_model=AppointmentOut)
async def no_show_appointment(
    appointment_id: UUID,
    current_user: User = Depends(require_provider),
    service: BookingService = Depends(get_booking_service),
):
    return await service.mark_no_show(appointment_id, current_user)


@router.put("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Update details; a new start time or duration is re-checked for conflicts."""
    return await service.update(appointment_id, current_user, data)
