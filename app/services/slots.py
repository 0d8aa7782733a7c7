"""Slot computation: expand availability rules into candidate slots and
mark each one available or taken.

Pure functions only; nothing here touches the database. Rules and
appointments are duck-typed so the ORM rows and plain test doubles both
work.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Protocol

from app.models.appointment import ACTIVE_STATUSES
from app.utils.time_utils import (
    combine_date_time,
    day_of_week,
    has_overlap,
    iter_days,
    minutes_to_time,
    time_to_minutes,
)


class RuleLike(Protocol):
    day_of_week: int
    start_time: str
    end_time: str
    is_recurring: bool
    start_date: date | None
    end_date: date | None
    timezone: str
    slot_duration: int
    buffer_time: int
    is_active: bool


@dataclass(frozen=True)
class CandidateSlot:
    """A bookable start time produced by one rule on one day."""

    date: date
    time: str
    duration: int
    buffer: int
    timezone: str

    @property
    def key(self) -> tuple[str, str]:
        return self.date.isoformat(), self.time

    @property
    def start(self) -> datetime:
        """Absolute start, naive UTC."""
        return combine_date_time(self.date, self.time, self.timezone)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration)


@dataclass(frozen=True)
class SlotAvailability:
    date: str
    time: str
    start: datetime
    end: datetime
    timezone: str
    available: bool


def window_start_times(start_time: str, end_time: str, slot_duration: int, buffer_time: int = 0) -> Iterator[str]:
    """Start times inside one open window.

    A slot that would run past ``end_time`` is never emitted.
    """
    if slot_duration <= 0:
        raise ValueError("slot_duration must be positive")
    if buffer_time < 0:
        raise ValueError("buffer_time cannot be negative")

    current = time_to_minutes(start_time)
    end_minutes = time_to_minutes(end_time)
    while current + slot_duration <= end_minutes:
        yield minutes_to_time(current)
        current += slot_duration + buffer_time


def rule_applies_on(rule: RuleLike, day: date) -> bool:
    """Weekday match plus the date bounds of a non-recurring rule."""
    if not rule.is_active or rule.day_of_week != day_of_week(day):
        return False
    if not rule.is_recurring:
        if rule.start_date and day < rule.start_date:
            return False
        if rule.end_date and day > rule.end_date:
            return False
    return True


def generate_slots(rules: Iterable[RuleLike], range_start: date, range_end: date) -> Iterator[CandidateSlot]:
    """Lazily expand ``rules`` over every day in [range_start, range_end].

    Rules sharing a day are expanded independently, so the same
    (date, time) can come out more than once; see ``mark_availability``.
    """
    rules = list(rules)
    for day in iter_days(range_start, range_end):
        for rule in rules:
            if not rule_applies_on(rule, day):
                continue
            for slot_time in window_start_times(rule.start_time, rule.end_time, rule.slot_duration, rule.buffer_time):
                yield CandidateSlot(
                    date=day,
                    time=slot_time,
                    duration=rule.slot_duration,
                    buffer=rule.buffer_time,
                    timezone=rule.timezone,
                )


def busy_intervals(appointments: Iterable) -> list[tuple[datetime, datetime]]:
    """[start, end) of every appointment still holding the provider's time.

    The end is derived from the appointment's own duration.
    """
    intervals = []
    for appt in appointments:
        if appt.status not in ACTIVE_STATUSES:
            continue
        intervals.append((appt.start_time, appt.start_time + timedelta(minutes=appt.duration)))
    return intervals


def mark_availability(
    slots: Iterable[CandidateSlot],
    appointments: Iterable,
    now: datetime,
) -> list[SlotAvailability]:
    """Flag each slot as available unless it is in the past or collides
    with a pending/confirmed appointment.

    Output is unique per (date, time); the first occurrence wins.
    """
    busy = busy_intervals(appointments)
    seen: set[tuple[str, str]] = set()
    marked: list[SlotAvailability] = []

    for slot in slots:
        if slot.key in seen:
            continue
        seen.add(slot.key)

        start, end = slot.start, slot.end
        is_past = start < now
        has_conflict = any(has_overlap(start, end, b_start, b_end) for b_start, b_end in busy)

        marked.append(
            SlotAvailability(
                date=slot.key[0],
                time=slot.time,
                start=start,
                end=end,
                timezone=slot.timezone,
                available=not is_past and not has_conflict,
            )
        )

    return marked
