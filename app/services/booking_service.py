"""Booking engine: creates appointments against a provider's live
availability and moves them through their lifecycle.

Appointment lifecycle::

    PENDING --confirm--> CONFIRMED
    PENDING/CONFIRMED --cancel--> CANCELLED
    PENDING/CONFIRMED --complete/no_show--> COMPLETED / NO_SHOW

CANCELLED, COMPLETED and NO_SHOW are terminal.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    SlotUnavailableError,
)
from app.core.seed import ensure_default_availability
from app.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from app.models.user import User, UserRole
from app.schemas.appointment import AppointmentCreate, AppointmentUpdate, PublicAppointmentCreate
from app.services.availability_service import AvailabilityService
from app.services.booking_lock import provider_booking_lock
from app.services.slots import SlotAvailability
from app.utils.time_utils import to_utc_naive, utc_now

logger = logging.getLogger(__name__)

# Target states reachable from each non-terminal state
TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
}

DESCRIPTIVE_FIELDS = ("service_type", "title", "description", "location", "meeting_link")


@dataclass(frozen=True)
class RegisteredClient:
    client_id: UUID


@dataclass(frozen=True)
class AnonymousClient:
    name: str
    email: str
    phone: Optional[str] = None


ClientRef = Union[RegisteredClient, AnonymousClient]


def generate_public_token() -> str:
    """256-bit URL-safe bearer token for anonymous access to one booking."""
    return secrets.token_urlsafe(32)


def _descriptive(data) -> dict:
    values = {field: getattr(data, field) for field in DESCRIPTIVE_FIELDS}
    if values["meeting_link"] is not None:
        values["meeting_link"] = str(values["meeting_link"])
    return values


class BookingService:
    """Appointment creation, access control and state transitions."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        notifier=None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.background_tasks = background_tasks
        self.availability = AvailabilityService(db, clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate, caller: User) -> Appointment:
        """Book for the caller, or for ``client_id`` when a provider books on a client's behalf."""
        client_id = caller.id
        if data.client_id and data.client_id != caller.id:
            if not caller.is_provider:
                raise ForbiddenError("Only providers can book on behalf of another client")
            result = await self.db.execute(select(User).where(User.id == data.client_id))
            if result.scalar_one_or_none() is None:
                raise NotFoundError("Client not found")
            client_id = data.client_id

        return await self._book(
            provider_id=data.provider_id,
            start_time=data.start_time,
            duration=data.duration,
            client=RegisteredClient(client_id),
            details=_descriptive(data),
        )

    async def create_public_appointment(self, data: PublicAppointmentCreate) -> Appointment:
        """Book without an account; the returned appointment carries its public token."""
        return await self._book(
            provider_id=data.provider_id,
            start_time=data.start_time,
            duration=data.duration,
            client=AnonymousClient(data.client_name, str(data.client_email), data.client_phone),
            details=_descriptive(data),
        )

    async def _book(
        self,
        provider_id: UUID,
        start_time: datetime,
        duration: int,
        client: ClientRef,
        details: dict,
    ) -> Appointment:
        if not 5 <= duration <= 480:
            raise InvalidInputError("Duration must be between 5 and 480 minutes")

        now = self.clock()
        start = to_utc_naive(start_time)
        if start < now:
            raise InvalidInputError("Cannot book an appointment in the past")

        provider = await self.availability.get_provider(provider_id)
        if settings.AUTO_PROVISION_DEFAULT_AVAILABILITY:
            await ensure_default_availability(self.db, provider.id)
        end = start + timedelta(minutes=duration)

        appointment = Appointment(
            provider_id=provider.id,
            start_time=start,
            end_time=end,
            duration=duration,
            status=AppointmentStatus.PENDING,
            **details,
        )
        if isinstance(client, RegisteredClient):
            appointment.client_id = client.client_id
        else:
            appointment.client_name = client.name
            appointment.client_email = client.email
            appointment.client_phone = client.phone
            appointment.public_token = generate_public_token()

        async with provider_booking_lock(self.db, provider.id):
            await self._assert_no_overlap(provider.id, start, end)
            slot = await self._assert_slot_open(provider.id, start, now)

            self.db.add(appointment)
            await self._commit_or_conflict()

        await self.db.refresh(appointment)
        logger.info(
            "Appointment %s booked with provider %s at %s (%d min)",
            appointment.id, provider.id, start.isoformat(), duration,
        )

        await self._send_confirmation(appointment, provider, client, slot)
        return appointment

    async def _assert_no_overlap(
        self,
        provider_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(Appointment).where(
            Appointment.provider_id == provider_id,
            Appointment.start_time < end,
            Appointment.end_time > start,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)

        result = await self.db.execute(query.limit(1))
        clash = result.scalars().first()
        if clash is not None:
            logger.warning(
                "Booking conflict for provider %s: %s-%s overlaps appointment %s",
                provider_id, start.isoformat(), end.isoformat(), clash.id,
            )
            raise ConflictError("There is already an appointment at this time")

    async def _assert_slot_open(self, provider_id: UUID, start: datetime, now: datetime) -> SlotAvailability:
        """The requested start must be a generated slot that is still open."""
        day = start.date()
        slots = await self.availability.compute_slots(
            provider_id, day - timedelta(days=1), day + timedelta(days=1), now=now
        )
        slot = next((s for s in slots if s.start == start), None)
        if slot is None or not slot.available:
            raise SlotUnavailableError("The requested time is not available")
        return slot

    async def _commit_or_conflict(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Insert rejected by the active-slot index; treating as conflict")
            raise ConflictError("There is already an appointment at this time")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _send_confirmation(
        self,
        appointment: Appointment,
        provider: User,
        client: ClientRef,
        slot: SlotAvailability,
    ) -> None:
        if self.notifier is None:
            return

        if isinstance(client, AnonymousClient):
            to, client_name = client.email, client.name
        else:
            result = await self.db.execute(select(User).where(User.id == client.client_id))
            client_user = result.scalar_one_or_none()
            if client_user is None or not client_user.email:
                return
            to, client_name = client_user.email, client_user.name or "Client"

        payload = {
            "to": to,
            "client_name": client_name,
            "provider_name": provider.name,
            "date": slot.date,
            "time": slot.time,
            "duration": appointment.duration,
            "location": appointment.location,
            "public_token": appointment.public_token,
        }

        if self.background_tasks is not None:
            self.background_tasks.add_task(self._deliver, appointment.id, payload)
        else:
            await self._deliver(appointment.id, payload)

    async def _deliver(self, appointment_id: UUID, payload: dict) -> None:
        """Best-effort send; failures are logged and never raised."""
        try:
            sent = await self.notifier.send_appointment_confirmation(**payload)
        except Exception:
            logger.exception("Failed to send confirmation for appointment %s", appointment_id)
            return
        if not sent:
            logger.warning("Confirmation email for appointment %s was not sent", appointment_id)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def _get(self, appointment_id: UUID) -> Appointment:
        result = await self.db.execute(select(Appointment).where(Appointment.id == appointment_id))
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    @staticmethod
    def _can_access(appointment: Appointment, user: User) -> bool:
        return (
            user.role == UserRole.ADMIN
            or appointment.provider_id == user.id
            or (appointment.client_id is not None and appointment.client_id == user.id)
        )

    async def _get_accessible(self, appointment_id: UUID, user: User, action: str) -> Appointment:
        appointment = await self._get(appointment_id)
        if not self._can_access(appointment, user):
            raise ForbiddenError(f"You do not have permission to {action} this appointment")
        return appointment

    async def get_appointment(self, appointment_id: UUID, user: User) -> Appointment:
        return await self._get_accessible(appointment_id, user, "view")

    async def list_for_user(self, user: User) -> list[Appointment]:
        """Appointments the user provides (providers/admins) or attends (clients)."""
        query = select(Appointment)
        if user.is_provider:
            query = query.where(Appointment.provider_id == user.id)
        else:
            query = query.where(Appointment.client_id == user.id)
        result = await self.db.execute(query.order_by(Appointment.start_time))
        return list(result.scalars().all())

    async def list_providers(self) -> list[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role.in_([UserRole.PROVIDER, UserRole.ADMIN]), User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())

    async def get_by_public_token(self, token: str) -> Appointment:
        if not token:
            raise NotFoundError("Appointment not found")
        result = await self.db.execute(select(Appointment).where(Appointment.public_token == token))
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(appointment: Appointment, target: AppointmentStatus) -> None:
        current = appointment.status
        if target in TRANSITIONS.get(current, set()):
            appointment.status = target
            return

        if target == AppointmentStatus.CANCELLED and current == AppointmentStatus.CANCELLED:
            detail = "Appointment is already cancelled"
        elif target == AppointmentStatus.CONFIRMED:
            detail = f"Only pending appointments can be confirmed. Current status: {current.value}"
        elif target == AppointmentStatus.CANCELLED:
            detail = f"Cannot cancel an appointment with status {current.value}"
        else:
            detail = f"Cannot mark an appointment with status {current.value} as {target.value}"
        raise InvalidTransitionError(detail, current_status=current.value)

    async def confirm(self, appointment_id: UUID, provider: User) -> Appointment:
        appointment = await self._get(appointment_id)
        if appointment.provider_id != provider.id:
            raise ForbiddenError("You do not have permission to confirm this appointment")

        self._transition(appointment, AppointmentStatus.CONFIRMED)
        appointment.confirmation_sent = True
        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info("Appointment %s confirmed by provider %s", appointment.id, provider.id)
        return appointment

    def _mark_cancelled(self, appointment: Appointment, cancelled_by: Optional[UUID], reason: Optional[str]) -> None:
        self._transition(appointment, AppointmentStatus.CANCELLED)
        appointment.cancelled_at = self.clock()
        appointment.cancelled_by = cancelled_by
        appointment.cancellation_reason = reason

    async def cancel(self, appointment_id: UUID, user: User, reason: Optional[str] = None) -> Appointment:
        appointment = await self._get_accessible(appointment_id, user, "cancel")
        self._mark_cancelled(appointment, user.id, reason)
        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info("Appointment %s cancelled by %s", appointment.id, user.id)
        return appointment

    async def cancel_by_public_token(self, token: str, reason: Optional[str] = None) -> Appointment:
        appointment = await self.get_by_public_token(token)
        self._mark_cancelled(appointment, None, reason)
        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info("Appointment %s cancelled through its public link", appointment.id)
        return appointment

    async def _close(self, appointment_id: UUID, user: User, target: AppointmentStatus) -> Appointment:
        appointment = await self._get(appointment_id)
        if appointment.provider_id != user.id and user.role != UserRole.ADMIN:
            raise ForbiddenError("Only the provider can close this appointment")

        self._transition(appointment, target)
        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info("Appointment %s marked %s by %s", appointment.id, target.value, user.id)
        return appointment

    async def complete(self, appointment_id: UUID, user: User) -> Appointment:
        return await self._close(appointment_id, user, AppointmentStatus.COMPLETED)

    async def mark_no_show(self, appointment_id: UUID, user: User) -> Appointment:
        return await self._close(appointment_id, user, AppointmentStatus.NO_SHOW)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update(self, appointment_id: UUID, user: User, data: AppointmentUpdate) -> Appointment:
        """Patch an open appointment; a new start or duration is re-checked for overlaps."""
        appointment = await self._get_accessible(appointment_id, user, "update")
        if appointment.is_terminal:
            raise InvalidTransitionError(
                f"Cannot update an appointment with status {appointment.status.value}",
                current_status=appointment.status.value,
            )

        changes = data.model_dump(exclude_unset=True)
        for field in DESCRIPTIVE_FIELDS:
            if field in changes:
                value = changes[field]
                setattr(appointment, field, str(value) if field == "meeting_link" and value is not None else value)

        if changes.get("start_time") is None and changes.get("duration") is None:
            await self.db.commit()
            await self.db.refresh(appointment)
            return appointment

        start = appointment.start_time
        if changes.get("start_time") is not None:
            start = to_utc_naive(changes["start_time"])
            if start < self.clock():
                raise InvalidInputError("Cannot book an appointment in the past")
        duration = changes.get("duration") or appointment.duration
        end = start + timedelta(minutes=duration)

        async with provider_booking_lock(self.db, appointment.provider_id):
            await self._assert_no_overlap(appointment.provider_id, start, end, exclude_id=appointment.id)
            appointment.start_time = start
            appointment.duration = duration
            appointment.end_time = end
            await self._commit_or_conflict()

        await self.db.refresh(appointment)
        logger.info("Appointment %s rescheduled to %s (%d min)", appointment.id, start.isoformat(), duration)
        return appointment
