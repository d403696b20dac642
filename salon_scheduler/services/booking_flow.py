"""
BookingFlow - state machine for the customer booking wizard.

The flow walks service -> staff -> date/time -> contact details ->
confirmation. The current step is a single tag driven by an explicit
transition table; each forward move is blocked until the guard of the step
being left passes. Entering CONFIRMATION commits through the booking
service. There is no hold phase: a slot shown as free can be taken by
someone else before confirmation, in which case the flow returns to
DATETIME_SELECTION with a refreshed slot list.
"""

import logging
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import ValidationError
from ..domain.models import Appointment, CustomerInfo, Slot
from ..domain.validation import customer_errors
from .booking_service import BookingResult, BookingService, Outcome, SlotsResult, parse_day

logger = logging.getLogger(__name__)


class BookingStep(str, Enum):
    SERVICE_SELECTION = "service_selection"
    STAFF_SELECTION = "staff_selection"
    DATETIME_SELECTION = "datetime_selection"
    CUSTOMER_DETAILS = "customer_details"
    CONFIRMATION = "confirmation"


STEP_ORDER: List[BookingStep] = list(BookingStep)


def _invalid(field_errors: Dict[str, str]) -> Outcome:
    return Outcome(
        error_code="validation_error",
        message="Some of the booking details are missing or invalid.",
        field_errors=field_errors,
    )


class BookingFlow:
    """
    Wizard state for one customer booking.

    Example:
        >>> flow = BookingFlow(service, "salon-1")
        >>> flow.select_services(["cut"])
        >>> flow.advance().ok
        True
        >>> flow.step
        BookingStep.STAFF_SELECTION
    """

    # Forward transitions: from_step -> to_step
    TRANSITIONS: ClassVar[Dict[BookingStep, BookingStep]] = {
        BookingStep.SERVICE_SELECTION: BookingStep.STAFF_SELECTION,
        BookingStep.STAFF_SELECTION: BookingStep.DATETIME_SELECTION,
        BookingStep.DATETIME_SELECTION: BookingStep.CUSTOMER_DETAILS,
        BookingStep.CUSTOMER_DETAILS: BookingStep.CONFIRMATION,
    }

    def __init__(
        self,
        service: BookingService,
        tenant_id: str,
        *,
        preferred_staff_id: Optional[str] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._service = service
        self._tenant_id = tenant_id
        self._preferred_staff_id = preferred_staff_id
        self._clock = clock or (lambda: pendulum.now("UTC"))

        self._step = BookingStep.SERVICE_SELECTION
        self._completed: List[BookingStep] = []
        self._staff_skipped = False

        self.service_ids: List[str] = []
        self.staff_id: Optional[str] = None
        self.day: Optional[Date] = None
        self.displayed_slots: List[Slot] = []
        self.selected_slot: Optional[Slot] = None
        self.customer: Optional[CustomerInfo] = None
        self.appointment: Optional[Appointment] = None
        self.last_error: Optional[Outcome] = None

    @property
    def step(self) -> BookingStep:
        return self._step

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def staff_skipped(self) -> bool:
        return self._staff_skipped

    def _require_step(self, step: BookingStep) -> None:
        if self._step is not step:
            raise RuntimeError(f"Action belongs to {step.value}, flow is at {self._step.value}")

    # Data entry, one method per step

    def select_services(self, service_ids: Sequence[str]) -> None:
        self._require_step(BookingStep.SERVICE_SELECTION)
        service_ids = list(service_ids)
        if service_ids != self.service_ids:
            # Duration changed, shown slots are no longer valid
            self.displayed_slots = []
            self.selected_slot = None
        self.service_ids = service_ids

    def select_staff(self, staff_id: str) -> None:
        self._require_step(BookingStep.STAFF_SELECTION)
        if staff_id != self.staff_id:
            self.displayed_slots = []
            self.selected_slot = None
        self.staff_id = staff_id

    def show_slots(self, day) -> SlotsResult:
        """Compute and remember the slots shown for ``day``."""
        self._require_step(BookingStep.DATETIME_SELECTION)
        result = self._service.get_available_slots(
            self._tenant_id,
            self.staff_id,
            day,
            service_ids=self.service_ids,
            now=self._clock(),
        )
        try:
            self.day = parse_day(day, self._staff_timezone())
        except ValidationError:
            self.day = None
        self.displayed_slots = list(result.slots)
        self.selected_slot = None
        return result

    def select_slot(self, start: DateTime) -> Outcome:
        """Pick one of the displayed slots that was marked available."""
        self._require_step(BookingStep.DATETIME_SELECTION)
        for slot in self.displayed_slots:
            if slot.start == start:
                if not slot.available:
                    return _invalid({"start": "slot is not available"})
                self.selected_slot = slot
                return Outcome()
        return _invalid({"start": "slot was not offered"})

    def enter_customer_details(self, customer: CustomerInfo) -> None:
        self._require_step(BookingStep.CUSTOMER_DETAILS)
        self.customer = customer

    # Guards

    def _guard_errors(self, step: BookingStep) -> Dict[str, str]:
        if step is BookingStep.SERVICE_SELECTION:
            return {} if self.service_ids else {"service_ids": "select at least one service"}
        if step is BookingStep.STAFF_SELECTION:
            if not self.staff_id:
                return {"staff_id": "select a staff member"}
            eligible = {member.id for member in self._service.eligible_staff(self._tenant_id)}
            return {} if self.staff_id in eligible else {"staff_id": "staff member is not bookable"}
        if step is BookingStep.DATETIME_SELECTION:
            errors = {}
            if self.day is None:
                errors["date"] = "select a date"
            if self.selected_slot is None:
                errors["start"] = "select an available time"
            return errors
        if step is BookingStep.CUSTOMER_DETAILS:
            return customer_errors(self.customer)
        return {}

    # Navigation

    def advance(self) -> Outcome:
        """
        Move to the next step if the current step's guard passes.

        Leaving CUSTOMER_DETAILS commits the booking.
        """
        if self._step is BookingStep.CONFIRMATION:
            raise RuntimeError("Booking is already confirmed")

        errors = self._guard_errors(self._step)
        if errors:
            outcome = _invalid(errors)
            self.last_error = outcome
            return outcome

        if self._step is BookingStep.CUSTOMER_DETAILS:
            return self._confirm()

        target = self.TRANSITIONS[self._step]
        self._mark_completed(self._step)

        if target is BookingStep.STAFF_SELECTION and self._try_skip_staff():
            self._mark_completed(BookingStep.STAFF_SELECTION)
            target = BookingStep.DATETIME_SELECTION

        self._transition(target)
        self.last_error = None
        return Outcome()

    def go_back(self, step: BookingStep) -> None:
        """Return to any step completed earlier in this flow."""
        if self._step is BookingStep.CONFIRMATION:
            raise RuntimeError("Booking is already confirmed")
        if step not in self._completed:
            raise ValueError(f"Cannot go back to {step.value}: step not completed")
        self._transition(step)

    def _mark_completed(self, step: BookingStep) -> None:
        if step not in self._completed:
            self._completed.append(step)

    def _transition(self, target: BookingStep) -> None:
        logger.debug("Booking flow %s: %s -> %s", self._tenant_id, self._step.value, target.value)
        self._step = target
        # Steps after the current one must be passed again
        position = STEP_ORDER.index(target)
        self._completed = [step for step in self._completed if STEP_ORDER.index(step) < position]

    def _try_skip_staff(self) -> bool:
        """
        Skip STAFF_SELECTION when the staff member is already known: a
        bookable preferred staff member, or the only eligible one.
        """
        eligible = [member.id for member in self._service.eligible_staff(self._tenant_id)]
        if self._preferred_staff_id and self._preferred_staff_id in eligible:
            chosen = self._preferred_staff_id
        elif len(eligible) == 1:
            chosen = eligible[0]
        else:
            self._staff_skipped = False
            return False

        if chosen != self.staff_id:
            self.displayed_slots = []
            self.selected_slot = None
        self.staff_id = chosen
        self._staff_skipped = True
        return True

    def _confirm(self) -> BookingResult:
        result = self._service.create_booking(
            self._tenant_id,
            self.staff_id,
            self.selected_slot.start,
            self.service_ids,
            self.customer,
            now=self._clock(),
        )

        if result.ok:
            self._mark_completed(BookingStep.CUSTOMER_DETAILS)
            self._transition(BookingStep.CONFIRMATION)
            self.appointment = result.appointment
            self.last_error = None
            logger.info("Booking flow confirmed appointment %s", result.appointment_id)
            return result

        self.last_error = result
        if result.error_code == "conflict" or "start" in result.field_errors:
            # The shown slot went stale; pick again from fresh data
            self._transition(BookingStep.DATETIME_SELECTION)
            self.show_slots(self.day)
        return result

    def _staff_timezone(self) -> str:
        for member in self._service.eligible_staff(self._tenant_id):
            if member.id == self.staff_id:
                return member.working_hours.timezone
        return "UTC"

    def to_dict(self) -> Dict[str, Any]:
        """Serializable snapshot of the flow state."""
        return {
            "tenant_id": self._tenant_id,
            "step": self._step.value,
            "completed": [step.value for step in self._completed],
            "service_ids": list(self.service_ids),
            "staff_id": self.staff_id,
            "staff_skipped": self._staff_skipped,
            "date": self.day.isoformat() if self.day else None,
            "selected_start": self.selected_slot.start.to_iso8601_string() if self.selected_slot else None,
            "appointment_id": self.appointment.id if self.appointment else None,
            "error": self.last_error.error_code if self.last_error else None,
        }
