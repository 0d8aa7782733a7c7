"""Appointment model for booking system."""

from sqlalchemy import (
    Column, String, DateTime, Integer, Boolean, ForeignKey, Text, Index, CheckConstraint,
    Enum as SQLEnum, text,
)
from sqlalchemy.dialects.postgresql import UUID
import uuid
from datetime import datetime
import enum
from app.core.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a provider's time
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

# No transition or field change is allowed out of these
TERMINAL_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW)

_ACTIVE_WHERE = text("status IN ('PENDING', 'CONFIRMED')")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # Exactly one client form: registered (client_id) or anonymous (name + email)
        CheckConstraint(
            "(client_id IS NOT NULL AND client_name IS NULL AND client_email IS NULL) OR "
            "(client_id IS NULL AND client_name IS NOT NULL AND client_email IS NOT NULL)",
            name="ck_appointments_client_ref",
        ),
        Index(
            "uq_appointments_active_provider_start",
            "provider_id",
            "start_time",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index("ix_appointments_provider_window", "provider_id", "start_time", "end_time"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    public_token = Column(String, unique=True, nullable=True, index=True)

    provider_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Registered client
    client_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    # Anonymous client
    client_name = Column(String, nullable=True)
    client_email = Column(String, nullable=True)
    client_phone = Column(String, nullable=True)

    # Naive UTC
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    status = Column(SQLEnum(AppointmentStatus, name="appointment_status"), default=AppointmentStatus.PENDING, nullable=False, index=True)

    service_type = Column(String, nullable=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    meeting_link = Column(String, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(UUID(as_uuid=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    confirmation_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
