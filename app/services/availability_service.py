"""Availability rules and slot listing for providers."""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from app.models.appointment import ACTIVE_STATUSES, Appointment
from app.models.availability import AvailabilityRule
from app.models.user import User, UserRole
from app.schemas.availability import AvailabilityRuleCreate, AvailabilityRuleUpdate
from app.services.slots import SlotAvailability, generate_slots, mark_availability
from app.utils.time_utils import time_to_minutes, utc_now

logger = logging.getLogger(__name__)

# Longest range a single slot query may cover
MAX_RANGE_DAYS = 92


class AvailabilityService:
    """Rule CRUD plus the read-only slot computation."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def get_provider(self, provider_id: UUID) -> User:
        """Load a user and make sure they can offer appointments."""
        result = await self.db.execute(select(User).where(User.id == provider_id))
        provider = result.scalar_one_or_none()
        if provider is None:
            raise NotFoundError("Provider not found")
        if not provider.is_provider:
            raise InvalidStateError("User is not a provider")
        return provider

    async def list_rules(self, provider_id: UUID) -> list[AvailabilityRule]:
        result = await self.db.execute(
            select(AvailabilityRule)
            .where(AvailabilityRule.provider_id == provider_id)
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
        )
        return list(result.scalars().all())

    async def get_active_rules(self, provider_id: UUID) -> list[AvailabilityRule]:
        result = await self.db.execute(
            select(AvailabilityRule)
            .where(
                AvailabilityRule.provider_id == provider_id,
                AvailabilityRule.is_active.is_(True),
            )
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time, AvailabilityRule.created_at)
        )
        return list(result.scalars().all())

    async def _assert_day_free(self, provider_id: UUID, day: int, exclude_id: Optional[UUID] = None) -> None:
        """Only one active rule per weekday."""
        query = select(AvailabilityRule).where(
            AvailabilityRule.provider_id == provider_id,
            AvailabilityRule.day_of_week == day,
            AvailabilityRule.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.where(AvailabilityRule.id != exclude_id)
        result = await self.db.execute(query)
        if result.scalars().first() is not None:
            raise ConflictError("An active availability rule already exists for this day of week")

    async def create_rule(self, provider: User, data: AvailabilityRuleCreate) -> AvailabilityRule:
        if data.is_active:
            await self._assert_day_free(provider.id, data.day_of_week)

        rule = AvailabilityRule(provider_id=provider.id, **data.model_dump())
        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info("Availability rule %s created for provider %s (day %d)", rule.id, provider.id, rule.day_of_week)
        return rule

    async def _get_owned_rule(self, rule_id: UUID, user: User, action: str) -> AvailabilityRule:
        result = await self.db.execute(select(AvailabilityRule).where(AvailabilityRule.id == rule_id))
        rule = result.scalar_one_or_none()
        if rule is None:
            raise NotFoundError("Availability rule not found")
        if rule.provider_id != user.id and user.role != UserRole.ADMIN:
            raise ForbiddenError(f"You do not have permission to {action} this availability rule")
        return rule

    async def update_rule(self, rule_id: UUID, user: User, data: AvailabilityRuleUpdate) -> AvailabilityRule:
        rule = await self._get_owned_rule(rule_id, user, "update")
        changes = data.model_dump(exclude_unset=True)

        start_time = changes.get("start_time", rule.start_time)
        end_time = changes.get("end_time", rule.end_time)
        if time_to_minutes(end_time) <= time_to_minutes(start_time):
            raise InvalidInputError("end_time must be after start_time")

        start_date = changes.get("start_date", rule.start_date)
        end_date = changes.get("end_date", rule.end_date)
        if start_date and end_date and end_date < start_date:
            raise InvalidInputError("end_date must not be before start_date")

        if changes.keys() & {"day_of_week", "is_active"} and changes.get("is_active", rule.is_active):
            await self._assert_day_free(rule.provider_id, changes.get("day_of_week", rule.day_of_week), exclude_id=rule.id)

        for key, value in changes.items():
            setattr(rule, key, value)

        await self.db.commit()
        await self.db.refresh(rule)

        logger.info("Availability rule %s updated: %s", rule.id, sorted(changes))
        return rule

    async def delete_rule(self, rule_id: UUID, user: User) -> None:
        rule = await self._get_owned_rule(rule_id, user, "delete")
        await self.db.delete(rule)
        await self.db.commit()
        logger.info("Availability rule %s deleted by %s", rule_id, user.id)

    async def _appointments_between(self, provider_id: UUID, start: datetime, end: datetime) -> list[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(
                Appointment.provider_id == provider_id,
                Appointment.start_time < end,
                Appointment.end_time > start,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
        )
        return list(result.scalars().all())

    async def compute_slots(
        self,
        provider_id: UUID,
        start_date: date,
        end_date: date,
        now: Optional[datetime] = None,
    ) -> list[SlotAvailability]:
        """Expand the provider's active rules over the date range and mark
        every slot available or not. Never writes."""
        rules = await self.get_active_rules(provider_id)
        if not rules:
            return []

        # Rule windows are local to each rule's timezone; widen the
        # appointment query by a day on each side to cover any offset.
        window_start = datetime.combine(start_date, datetime.min.time()) - timedelta(days=1)
        window_end = datetime.combine(end_date, datetime.min.time()) + timedelta(days=2)
        appointments = await self._appointments_between(provider_id, window_start, window_end)

        slots = generate_slots(rules, start_date, end_date)
        return mark_availability(slots, appointments, now or self.clock())

    async def list_available_slots(self, provider_id: UUID, start_date: date, end_date: date) -> list[SlotAvailability]:
        if end_date < start_date:
            raise InvalidInputError("end_date must not be before start_date")
        if (end_date - start_date).days > MAX_RANGE_DAYS:
            raise InvalidInputError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

        await self.get_provider(provider_id)
        return await self.compute_slots(provider_id, start_date, end_date)
