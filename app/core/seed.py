"""Default availability provisioning for new providers."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.availability import AvailabilityRule
from app.models.user import User
from app.services.booking_lock import provider_booking_lock

logger = logging.getLogger(__name__)

DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5]  # Monday to Friday
DEFAULT_RULE = {
    "start_time": "09:00",
    "end_time": "17:00",
    "is_recurring": True,
    "slot_duration": 60,
    "buffer_time": 0,
    "max_bookings_per_slot": 1,
    "is_active": True,
}


async def _rules_of(db: AsyncSession, provider_id: UUID) -> list[AvailabilityRule]:
    result = await db.execute(select(AvailabilityRule).where(AvailabilityRule.provider_id == provider_id))
    return list(result.scalars().all())


async def ensure_default_availability(db: AsyncSession, provider_id: UUID) -> list[AvailabilityRule]:
    """Give a provider Mon-Fri 09:00-17:00 hourly slots if they have no rules at all.

    Idempotent: a provider with any rule, active or not, is left untouched.
    Returns the provider's rules afterwards (empty for a non-provider).
    """
    result = await db.execute(select(User).where(User.id == provider_id))
    provider = result.scalar_one_or_none()
    if provider is None or not provider.is_provider:
        return []

    existing = await _rules_of(db, provider_id)
    if existing:
        return existing

    async with provider_booking_lock(db, provider_id):
        # Another request may have provisioned while we waited
        existing = await _rules_of(db, provider_id)
        if existing:
            return existing

        rules = [
            AvailabilityRule(
                provider_id=provider_id,
                day_of_week=day,
                timezone=settings.DEFAULT_TIMEZONE,
                **DEFAULT_RULE,
            )
            for day in DEFAULT_WORKING_DAYS
        ]
        db.add_all(rules)
        await db.commit()

    logger.info("Provisioned default availability for provider %s (%d rules)", provider_id, len(rules))
    return rules
