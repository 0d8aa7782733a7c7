"""Pydantic schemas for availability rules and slots."""

from datetime import date, datetime
from uuid import UUID
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.config import settings
from app.utils.time_utils import is_valid_time, time_to_minutes


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_time(value):
        raise ValueError("Invalid format. Use HH:mm")
    return value


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value}")
    return value


class AvailabilityRuleCreate(BaseModel):
    """Schema for creating an availability rule."""
    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday
    start_time: str  # "09:00"
    end_time: str  # "17:00"
    is_recurring: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: str = Field(default_factory=lambda: settings.DEFAULT_TIMEZONE)
    slot_duration: int = Field(default_factory=lambda: settings.DEFAULT_SLOT_DURATION, ge=5, le=480)
    buffer_time: int = Field(default=0, ge=0, le=60)
    max_bookings_per_slot: int = Field(default=1, ge=1)
    is_active: bool = True

    check_times = field_validator("start_time", "end_time")(_check_time)
    check_timezone = field_validator("timezone")(_check_timezone)

    @model_validator(mode="after")
    def end_after_start(self):
        if time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AvailabilityRuleUpdate(BaseModel):
    """Partial update; the start/end ordering is checked against the stored rule."""
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_recurring: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: Optional[str] = None
    slot_duration: Optional[int] = Field(default=None, ge=5, le=480)
    buffer_time: Optional[int] = Field(default=None, ge=0, le=60)
    max_bookings_per_slot: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None

    check_times = field_validator("start_time", "end_time")(_check_time)
    check_timezone = field_validator("timezone")(_check_timezone)

    @model_validator(mode="after")
    def no_null_required_fields(self):
        # Only the date bounds may be cleared
        nulls = sorted(
            name for name in self.model_fields_set
            if name not in ("start_date", "end_date") and getattr(self, name) is None
        )
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self


class AvailabilityRuleOut(BaseModel):
    id: UUID
    provider_id: UUID
    day_of_week: int
    start_time: str
    end_time: str
    is_recurring: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: str
    slot_duration: int
    buffer_time: int
    max_bookings_per_slot: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    """One candidate slot in the provider's local time."""
    date: str  # "2026-03-02"
    time: str  # "09:00"
    start: datetime  # UTC
    available: bool

    class Config:
        from_attributes = True


class AvailableSlotsResponse(BaseModel):
    provider_id: UUID
    start_date: date
    end_date: date
    slots: list[TimeSlot]
