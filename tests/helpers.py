"""Constants and factories shared by the test modules."""

from datetime import date, datetime, timedelta

from app.models.appointment import Appointment, AppointmentStatus
from app.models.availability import AvailabilityRule
from app.models.user import User, UserRole
from app.services.auth import create_user_token

# Monday 7 January 2030, 08:00 UTC
NOW = datetime(2030, 1, 7, 8, 0)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


async def create_user(db, email: str, name: str, role: UserRole) -> User:
    user = User(email=email, name=name, role=role, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


async def add_rule(
    db,
    provider: User,
    day_of_week: int = 1,
    start_time: str = "09:00",
    end_time: str = "12:00",
    slot_duration: int = 30,
    buffer_time: int = 0,
    **kwargs,
) -> AvailabilityRule:
    rule = AvailabilityRule(
        provider_id=provider.id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        slot_duration=slot_duration,
        buffer_time=buffer_time,
        timezone=kwargs.pop("timezone", "UTC"),
        **kwargs,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def add_appointment(
    db,
    provider: User,
    client: User,
    start: datetime,
    duration: int = 30,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
) -> Appointment:
    appointment = Appointment(
        provider_id=provider.id,
        client_id=client.id,
        start_time=start,
        end_time=start + timedelta(minutes=duration),
        duration=duration,
        status=status,
    )
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)
    return appointment
