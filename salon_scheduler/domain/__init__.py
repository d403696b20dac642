"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    ConflictError,
    NoAvailabilityError,
    SchedulingError,
    StoreUnavailableError,
    ValidationError,
)
from .models import Appointment, AppointmentStatus, CustomerInfo, Service, Slot, StaffMember, TimeRange, WorkingHours
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "ConflictError",
    "CustomerInfo",
    "NoAvailabilityError",
    "SchedulingError",
    "Service",
    "Slot",
    "SlotCalculator",
    "StaffMember",
    "StoreUnavailableError",
    "TimeRange",
    "ValidationError",
    "WorkingHours",
]
