"""
Display-side calendar state with optimistic drag-and-drop rescheduling.
"""

import logging
from typing import Dict, Iterable, Optional

from pendulum import DateTime

from ..domain.exceptions import StoreUnavailableError
from ..domain.models import Appointment, TimeRange
from .booking_service import BookingResult, BookingService

logger = logging.getLogger(__name__)


class CalendarBoard:
    """
    Holds the ranges currently shown on a calendar.

    ``move`` shows the new range right away, asks the booking service to
    reschedule, and puts the old range back if the move is rejected or the
    store cannot be reached.
    """

    def __init__(self, service: BookingService, tenant_id: str, appointments: Iterable[Appointment]):
        self._service = service
        self._tenant_id = tenant_id
        self._displayed: Dict[str, TimeRange] = {
            appointment.id: appointment.time_range for appointment in appointments
        }

    def displayed_range(self, appointment_id: str) -> Optional[TimeRange]:
        return self._displayed.get(appointment_id)

    def move(self, appointment_id: str, new_start: DateTime, now: Optional[DateTime] = None) -> BookingResult:
        previous = self._displayed[appointment_id]
        self._displayed[appointment_id] = previous.shift_to(new_start)

        try:
            result = self._service.reschedule_appointment(
                self._tenant_id, appointment_id, new_start, now=now
            )
        except StoreUnavailableError:
            self._displayed[appointment_id] = previous
            raise

        if result.ok:
            self._displayed[appointment_id] = result.appointment.time_range
        else:
            logger.info("Reverting move of %s: %s", appointment_id, result.error_code)
            self._displayed[appointment_id] = previous

        return result
