"""
Domain models for time ranges, staff schedules, services and appointments.
"""

from dataclasses import dataclass, field, replace
from datetime import time
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_start(cls, start: DateTime, duration_minutes: int) -> "TimeRange":
        """Build a range of ``duration_minutes`` beginning at ``start``."""
        return cls(start=start, end=start.add(minutes=duration_minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def expand(self, before_minutes: int = 0, after_minutes: int = 0) -> "TimeRange":
        """Pad the range on both sides, e.g. to model buffer time."""
        return TimeRange(
            start=self.start.subtract(minutes=before_minutes),
            end=self.end.add(minutes=after_minutes),
        )

    def shift_to(self, new_start: DateTime) -> "TimeRange":
        """Move the range to ``new_start`` keeping its duration."""
        return TimeRange.from_start(new_start, self.duration_minutes())

    def in_timezone(self, tz: str) -> "TimeRange":
        return TimeRange(start=self.start.in_timezone(tz), end=self.end.in_timezone(tz))

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class DayHours:
    """Opening and closing time of one weekday, with optional breaks."""
    open_time: time
    close_time: time
    breaks: Tuple[Tuple[time, time], ...] = ()

    def __post_init__(self):
        if self.open_time >= self.close_time:
            raise ValueError(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )
        for start, end in self.breaks:
            if start >= end:
                raise ValueError(f"Break start {start} must be before break end {end}")


def _at(day: Date, moment: time, tz: str) -> DateTime:
    return pendulum.datetime(day.year, day.month, day.day, moment.hour, moment.minute, tz=tz)


@dataclass
class WorkingHours:
    """
    Weekly working hours of a staff member.

    ``days`` maps a weekday (0=Monday, 6=Sunday) to its hours. Missing
    weekdays are days off.
    """
    days: Dict[int, DayHours] = field(default_factory=dict)
    timezone: str = "Europe/Berlin"

    def is_working_day(self, day: Date) -> bool:
        """Check if a given date falls on a working day."""
        return day.weekday() in self.days

    def get_working_hours_for_day(self, day: Date) -> TimeRange | None:
        """
        Get the working hours range for a specific day.
        Returns None if it's not a working day.
        """
        hours = self.days.get(day.weekday())
        if hours is None:
            return None

        return TimeRange(
            start=_at(day, hours.open_time, self.timezone),
            end=_at(day, hours.close_time, self.timezone),
        )

    def get_breaks_for_day(self, day: Date) -> List[TimeRange]:
        hours = self.days.get(day.weekday())
        if hours is None:
            return []
        return [
            TimeRange(start=_at(day, start, self.timezone), end=_at(day, end, self.timezone))
            for start, end in hours.breaks
        ]


@dataclass(frozen=True)
class Service:
    """A bookable service from the tenant's catalog."""
    id: str
    name: str
    duration_minutes: int
    price: Decimal
    category: Optional[str] = None
    active: bool = True

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service {self.id} must have a positive duration")
        if self.price < 0:
            raise ValueError(f"Service {self.id} must not have a negative price")


@dataclass
class StaffMember:
    """A staff member together with the schedule rules used for booking."""
    id: str
    name: str
    working_hours: WorkingHours
    active: bool = True
    can_book: bool = True
    buffer_before: int = 0
    buffer_after: int = 0

    @property
    def bookable(self) -> bool:
        return self.active and self.can_book

    def bookable_window(self, day: Date) -> TimeRange | None:
        """
        Working hours for ``day`` narrowed by the configured buffers.

        Returns None on days off, for inactive staff, or when the buffers
        consume the whole day.
        """
        if not self.bookable:
            return None
        hours = self.working_hours.get_working_hours_for_day(day)
        if hours is None:
            return None
        start = hours.start.add(minutes=self.buffer_before)
        end = hours.end.subtract(minutes=self.buffer_after)
        if start >= end:
            return None
        return TimeRange(start=start, end=end)

    def blocked_zone(self, booked: TimeRange) -> TimeRange:
        """The range an existing appointment keeps free, buffers included."""
        return booked.expand(self.buffer_before, self.buffer_after)


class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def blocks_time(self) -> bool:
        """Confirmed and completed appointments occupy the staff calendar."""
        return self in (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)

    @property
    def is_terminal(self) -> bool:
        return self is not AppointmentStatus.CONFIRMED


BLOCKING_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)


@dataclass(frozen=True)
class CustomerInfo:
    """Contact details entered by the customer."""
    name: str
    email: str
    phone: Optional[str] = None
    notes: Optional[str] = None
    terms_accepted: bool = False
    marketing_consent: bool = False


@dataclass(frozen=True)
class AppointmentRequest:
    """Everything needed to book one appointment."""
    tenant_id: str
    staff_id: str
    start: DateTime
    service_ids: Tuple[str, ...]
    customer: CustomerInfo
    source: str = "online"


@dataclass(frozen=True)
class Appointment:
    """A committed appointment as returned by the store."""
    id: str
    tenant_id: str
    staff_id: str
    time_range: TimeRange
    status: AppointmentStatus
    customer_name: str
    customer_email: str
    service_ids: Tuple[str, ...] = ()
    total_price: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    source: str = "online"

    def with_range(self, time_range: TimeRange) -> "Appointment":
        return replace(self, time_range=time_range)


@dataclass(frozen=True)
class Slot:
    """
    A candidate time range for display, flagged as bookable or not.
    """
    time_range: TimeRange
    available: bool

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
            "available": self.available,
        }

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM
        """
        start = self.time_range.start
        marker = "free" if self.available else "taken"
        return (
            f"{start.format('dddd, DD.MM.YYYY')} | "
            f"{start.format('HH:mm')} - {self.time_range.end.format('HH:mm')} ({marker})"
        )
