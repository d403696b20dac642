"""
Tests for domain models.
"""

from datetime import time
from decimal import Decimal

import pendulum
import pytest

from salon_scheduler.domain.models import (
    AppointmentStatus,
    DayHours,
    Service,
    Slot,
    TimeRange,
    WorkingHours,
)

from conftest import at, make_staff


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        tr = TimeRange(start=at("09:00"), end=at("17:00"))

        assert tr.start == at("09:00")
        assert tr.end == at("17:00")
        assert tr.duration_minutes() == 480  # 8 hours

    def test_invalid_time_range_raises_error(self):
        """Start after end is rejected."""
        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=at("17:00"), end=at("09:00"))

    def test_empty_time_range_raises_error(self):
        """Zero-length ranges are rejected."""
        with pytest.raises(ValueError):
            TimeRange(start=at("09:00"), end=at("09:00"))

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange(start=at("09:00"), end=at("12:00"))
        tr2 = TimeRange(start=at("11:00"), end=at("14:00"))
        tr3 = TimeRange(start=at("14:00"), end=at("17:00"))

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)

    def test_touching_ranges_do_not_overlap(self):
        """Half-open ranges: an end equal to the next start is no overlap."""
        tr1 = TimeRange(start=at("09:00"), end=at("10:00"))
        tr2 = TimeRange(start=at("10:00"), end=at("11:00"))

        assert not tr1.overlaps(tr2)
        assert not tr2.overlaps(tr1)

    def test_overlap_across_timezones(self):
        """Ranges given in different zones compare as instants."""
        berlin = TimeRange(start=at("10:00"), end=at("11:00"))
        utc = TimeRange(
            start=pendulum.datetime(2024, 11, 25, 9, 30, tz="UTC"),
            end=pendulum.datetime(2024, 11, 25, 10, 30, tz="UTC"),
        )

        assert berlin.overlaps(utc)

    def test_intersect(self):
        """Test intersection calculation."""
        tr1 = TimeRange(start=at("09:00"), end=at("12:00"))
        tr2 = TimeRange(start=at("11:00"), end=at("14:00"))

        intersection = tr1.intersect(tr2)

        assert intersection is not None
        assert intersection.start == at("11:00")
        assert intersection.end == at("12:00")

    def test_intersect_no_overlap(self):
        """Test intersection with no overlap returns None."""
        tr1 = TimeRange(start=at("09:00"), end=at("12:00"))
        tr2 = TimeRange(start=at("14:00"), end=at("17:00"))

        assert tr1.intersect(tr2) is None

    def test_contains(self):
        outer = TimeRange(start=at("09:00"), end=at("19:00"))

        assert outer.contains(TimeRange(start=at("09:00"), end=at("19:00")))
        assert outer.contains(TimeRange(start=at("10:00"), end=at("11:00")))
        assert not outer.contains(TimeRange(start=at("18:30"), end=at("19:30")))

    def test_expand_and_shift(self):
        """Padding and moving keep the duration semantics."""
        tr = TimeRange.from_start(at("10:00"), 40)

        padded = tr.expand(10, 5)
        moved = tr.shift_to(at("14:15"))

        assert padded.start == at("09:50")
        assert padded.end == at("10:45")
        assert moved.start == at("14:15")
        assert moved.duration_minutes() == 40


class TestWorkingHours:
    """Tests for WorkingHours model."""

    def test_is_working_day(self):
        """Only configured weekdays are working days."""
        hours = WorkingHours(days={0: DayHours(time(9, 0), time(17, 0))})

        assert hours.is_working_day(pendulum.date(2024, 11, 25))  # Monday
        assert not hours.is_working_day(pendulum.date(2024, 11, 26))  # Tuesday

    def test_get_working_hours_for_day(self):
        """Test getting working hours for a specific day."""
        hours = WorkingHours(
            days={0: DayHours(time(9, 0), time(17, 0))},
            timezone="Europe/Berlin",
        )

        result = hours.get_working_hours_for_day(pendulum.date(2024, 11, 25))

        assert result is not None
        assert result.start == at("09:00")
        assert result.end == at("17:00")
        assert hours.get_working_hours_for_day(pendulum.date(2024, 11, 24)) is None

    def test_working_hours_across_dst_change(self):
        """Local opening times hold on the day clocks move back."""
        hours = WorkingHours(days={6: DayHours(time(9, 0), time(17, 0))}, timezone="Europe/Berlin")

        result = hours.get_working_hours_for_day(pendulum.date(2024, 10, 27))

        assert result.start.in_timezone("UTC").hour == 8
        assert result.end.in_timezone("UTC").hour == 16

    def test_breaks(self):
        hours = WorkingHours(
            days={0: DayHours(time(9, 0), time(17, 0), breaks=((time(13, 0), time(13, 30)),))},
        )

        breaks = hours.get_breaks_for_day(pendulum.date(2024, 11, 25))

        assert breaks == [TimeRange(start=at("13:00"), end=at("13:30"))]
        assert hours.get_breaks_for_day(pendulum.date(2024, 11, 26)) == []

    def test_invalid_day_hours(self):
        with pytest.raises(ValueError, match="Opening time"):
            DayHours(time(17, 0), time(9, 0))


class TestStaffMember:
    """Tests for the bookable window and buffer zones."""

    def test_bookable_window_without_buffers(self):
        staff = make_staff()

        window = staff.bookable_window(pendulum.date(2024, 11, 25))

        assert window == TimeRange(start=at("09:00"), end=at("19:00"))

    def test_bookable_window_narrowed_by_buffers(self):
        """Buffers keep the edges of the working day free."""
        staff = make_staff(buffer_before=10, buffer_after=15)

        window = staff.bookable_window(pendulum.date(2024, 11, 25))

        assert window.start == at("09:10")
        assert window.end == at("18:45")

    def test_no_window_on_day_off_or_when_inactive(self):
        assert make_staff().bookable_window(pendulum.date(2024, 11, 24)) is None  # Sunday
        assert make_staff(active=False).bookable_window(pendulum.date(2024, 11, 25)) is None

    def test_buffers_consuming_the_day(self):
        staff = make_staff(buffer_before=300, buffer_after=300)

        assert staff.bookable_window(pendulum.date(2024, 11, 25)) is None

    def test_blocked_zone(self):
        staff = make_staff(buffer_before=5, buffer_after=10)

        zone = staff.blocked_zone(TimeRange(start=at("10:00"), end=at("11:00")))

        assert zone == TimeRange(start=at("09:55"), end=at("11:10"))


class TestServiceAndStatus:
    """Tests for services and appointment statuses."""

    def test_service_requires_positive_duration(self):
        with pytest.raises(ValueError, match="positive duration"):
            Service(id="cut", name="Haircut", duration_minutes=0, price=Decimal("10"))

    def test_service_rejects_negative_price(self):
        with pytest.raises(ValueError, match="negative price"):
            Service(id="cut", name="Haircut", duration_minutes=30, price=Decimal("-1"))

    @pytest.mark.parametrize(
        "status, blocks, terminal",
        [
            (AppointmentStatus.CONFIRMED, True, False),
            (AppointmentStatus.COMPLETED, True, True),
            (AppointmentStatus.CANCELLED, False, True),
            (AppointmentStatus.NO_SHOW, False, True),
        ],
    )
    def test_status_properties(self, status, blocks, terminal):
        assert status.blocks_time is blocks
        assert status.is_terminal is terminal


class TestSlot:
    """Tests for slot serialization and display."""

    def test_to_dict_uses_iso_8601(self):
        slot = Slot(time_range=TimeRange.from_start(at("10:00"), 45), available=True)

        assert slot.to_dict() == {
            "start": "2024-11-25T10:00:00+01:00",
            "end": "2024-11-25T10:45:00+01:00",
            "available": True,
        }

    def test_format_display(self):
        slot = Slot(time_range=TimeRange.from_start(at("10:00"), 45), available=False)

        assert slot.format_display() == "Monday, 25.11.2024 | 10:00 - 10:45 (taken)"
