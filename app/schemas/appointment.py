"""Pydantic schemas for Appointments."""

from datetime import datetime
from uuid import UUID
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from app.models.appointment import AppointmentStatus


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _AppointmentDetails(BaseModel):
    service_type: Optional[str] = Field(default=None, max_length=100)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=200)
    meeting_link: Optional[HttpUrl] = None

    blank_link = field_validator("meeting_link", mode="before")(_blank_to_none)


class AppointmentCreate(_AppointmentDetails):
    """Authenticated booking. ``client_id`` is only honoured for providers
    booking on behalf of a registered client."""
    provider_id: UUID
    client_id: Optional[UUID] = None
    start_time: datetime
    duration: int = Field(ge=5, le=480)  # minutes


class PublicAppointmentCreate(_AppointmentDetails):
    """Anonymous booking; the client is identified by contact details only."""
    provider_id: UUID
    start_time: datetime
    duration: int = Field(ge=5, le=480)
    client_name: str = Field(min_length=2, max_length=100)
    client_email: EmailStr
    client_phone: Optional[str] = Field(default=None, max_length=20)


class AppointmentUpdate(_AppointmentDetails):
    start_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=5, le=480)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentOut(BaseModel):
    """Schema for returning appointment details."""
    id: UUID
    provider_id: UUID
    client_id: Optional[UUID] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int
    status: AppointmentStatus
    service_type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    confirmation_sent: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicAppointmentOut(AppointmentOut):
    """Returned to the anonymous client; carries the access token."""
    public_token: str


class ProviderOut(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True
