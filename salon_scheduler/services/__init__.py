"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_flow import BookingFlow, BookingStep
from .booking_service import (
    AppointmentsResult,
    BookingResult,
    BookingService,
    SlotsResult,
    TimeOptionsResult,
    build_booking_service,
)
from .calendar_board import CalendarBoard
from .conflict_guard import ConflictGuard

__all__ = [
    "AppointmentsResult",
    "BookingFlow",
    "BookingResult",
    "BookingService",
    "BookingStep",
    "CalendarBoard",
    "ConflictGuard",
    "SlotsResult",
    "TimeOptionsResult",
    "build_booking_service",
]
