"""
Domain-specific exception hierarchy for the scheduling engine.
"""

from typing import Dict, Optional


class SchedulingError(Exception):
    """Base class for all application-level errors."""

    code = "scheduling_error"


class ValidationError(SchedulingError):
    """Raised when input is malformed or incomplete. ``errors`` maps field -> message."""

    code = "validation_error"

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(message or "; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class UnknownEntityError(ValidationError):
    """Raised when a tenant, staff member, service or appointment does not exist."""

    code = "not_found"

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__({kind: "unknown"}, f"Unknown {kind}: {identifier}")


class InvalidTransitionError(ValidationError):
    """Raised when an appointment status change is not allowed."""

    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            {"status": f"cannot change from {current} to {requested}"},
        )


class NoAvailabilityError(SchedulingError):
    """Raised when a staff/date/duration combination has no bookable slot."""

    code = "no_availability"


class ConflictError(SchedulingError):
    """Raised when the commit-time exclusivity check finds an overlap."""

    code = "conflict"

    def __init__(self, staff_id: str, message: Optional[str] = None):
        self.staff_id = staff_id
        super().__init__(message or f"Requested range overlaps an appointment of staff {staff_id}")


class StoreUnavailableError(SchedulingError):
    """Raised when the appointment store cannot be reached."""

    code = "store_unavailable"
