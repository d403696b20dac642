"""
Core business logic for calculating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no database, no I/O). Everything the calculation
needs is passed in, so it is safe to call concurrently and repeatedly.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from pendulum import Date, DateTime

from .models import Appointment, Slot, StaffMember, TimeRange


@dataclass(frozen=True)
class TimeOption:
    """A start time together with every staff member free at that time."""
    time_range: TimeRange
    staff_ids: List[str]

    @property
    def available(self) -> bool:
        return bool(self.staff_ids)


class SlotCalculator:
    """
    Calculates candidate appointment slots for one staff member and day.

    Algorithm:
    1. Resolve the working-hours window for the weekday (minus buffers)
    2. Collect blocked zones: existing appointments padded by the staff
       buffers, plus breaks
    3. Step through the window at a fixed granularity, forming a candidate
       range of the requested duration at each step
    4. Flag candidates overlapping a blocked zone or starting before
       ``now + lead time`` as unavailable
    5. Return every candidate, available or not, ordered by start
    """

    def __init__(self, granularity_minutes: int = 15, lead_time_minutes: int = 0):
        if granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        if lead_time_minutes < 0:
            raise ValueError("lead_time_minutes must not be negative")
        self.granularity_minutes = granularity_minutes
        self.lead_time_minutes = lead_time_minutes

    def compute_slots(
        self,
        staff: StaffMember,
        day: Date,
        duration_minutes: int,
        appointments: Iterable[Appointment],
        now: DateTime,
        tenant_id: Optional[str] = None,
    ) -> List[Slot]:
        """
        Compute all candidate slots for ``staff`` on ``day``.

        Args:
            staff: The staff member, including working hours and buffers
            day: Calendar date, interpreted in the staff member's timezone
            duration_minutes: Aggregate duration of the requested services
            appointments: Existing appointments of that staff member
            now: Current instant, used for the lead-time cut-off
            tenant_id: When given, only appointments of this tenant block time

        Returns:
            List of Slot objects; an empty list when the staff member does
            not work that day or the duration does not fit the window
        """
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

        window = staff.bookable_window(day)
        if window is None:
            return []

        blocked = self._blocked_zones(staff, day, appointments, tenant_id)
        earliest_start = now.add(minutes=self.lead_time_minutes)

        slots: List[Slot] = []
        for start in self._candidate_starts(window, duration_minutes):
            candidate = TimeRange.from_start(start, duration_minutes)
            available = (
                candidate.start >= earliest_start
                and not any(zone.overlaps(candidate) for zone in blocked)
            )
            slots.append(Slot(time_range=candidate, available=available))

        return slots

    def available_slots(self, *args, **kwargs) -> List[Slot]:
        """Same as ``compute_slots`` but keeps only bookable slots."""
        return [slot for slot in self.compute_slots(*args, **kwargs) if slot.available]

    def _candidate_starts(self, window: TimeRange, duration_minutes: int) -> List[DateTime]:
        """
        Generate start instants from the window start through
        ``window.end - duration`` inclusive.
        """
        starts: List[DateTime] = []
        last_start = window.end.subtract(minutes=duration_minutes)
        current = window.start

        while current <= last_start:
            starts.append(current)
            current = current.add(minutes=self.granularity_minutes)

        return starts

    def _blocked_zones(
        self,
        staff: StaffMember,
        day: Date,
        appointments: Iterable[Appointment],
        tenant_id: Optional[str] = None,
    ) -> List[TimeRange]:
        zones: List[TimeRange] = [
            staff.blocked_zone(appointment.time_range)
            for appointment in appointments
            if appointment.staff_id == staff.id
            and (tenant_id is None or appointment.tenant_id == tenant_id)
            and appointment.status.blocks_time
        ]
        zones.extend(staff.working_hours.get_breaks_for_day(day))
        return self._merge_adjacent_ranges(zones)

    def _merge_adjacent_ranges(self, ranges: List[TimeRange]) -> List[TimeRange]:
        """
        Merge overlapping or adjacent time ranges.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not ranges:
            return []

        sorted_ranges = sorted(ranges, key=lambda r: r.start)
        merged: List[TimeRange] = [sorted_ranges[0]]

        for current in sorted_ranges[1:]:
            last = merged[-1]

            if current.start <= last.end:
                merged[-1] = TimeRange(start=last.start, end=max(last.end, current.end))
            else:
                merged.append(current)

        return merged


def group_slots_by_time(slots_by_staff: Dict[str, List[Slot]]) -> List[TimeOption]:
    """
    Combine per-staff slot lists into one list of start times for display.

    Each option lists the staff members for whom that slot is available; a
    time no one can take is kept with an empty list. Picking one of the
    staff members is left to the caller.
    """
    options: Dict[DateTime, TimeOption] = {}

    for staff_id, slots in slots_by_staff.items():
        for slot in slots:
            option = options.get(slot.start)
            if option is None:
                option = TimeOption(time_range=slot.time_range, staff_ids=[])
                options[slot.start] = option
            if slot.available:
                option.staff_ids.append(staff_id)

    return [options[start] for start in sorted(options)]
