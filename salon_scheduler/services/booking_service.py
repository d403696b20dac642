"""
Booking service: the operations exposed to API and UI callers.

The service coordinates the catalog, the staff directory, the slot
calculator and the conflict guard. Tenant and staff are explicit arguments
on every call; there is no ambient request context.

Expected outcomes (validation failures, conflicts, no availability) come
back as result objects. Only ``StoreUnavailableError`` propagates, and it is
never retried here since a failed commit may or may not have been written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date as std_date
from typing import Dict, List, Optional, Sequence

import pendulum
from pendulum import Date, DateTime

from ..adapters.protocols import AppointmentStore, ServiceCatalog, StaffDirectory
from ..adapters.sql_store import SqlAppointmentStore
from ..adapters.static_directory import StaticDirectory
from ..config import AppConfig
from ..domain.exceptions import (
    ConflictError,
    NoAvailabilityError,
    SchedulingError,
    UnknownEntityError,
    ValidationError,
)
from ..domain.models import Appointment, AppointmentStatus, CustomerInfo, Service, Slot, StaffMember, TimeRange
from ..domain.slot_calculator import SlotCalculator, TimeOption, group_slots_by_time
from ..domain.validation import customer_errors, require_aware, resolve_services, validate_within_schedule
from .conflict_guard import CommitPayload, ConflictGuard

logger = logging.getLogger(__name__)


ERROR_MESSAGES: Dict[str, str] = {
    "validation_error": "Some of the booking details are missing or invalid.",
    "not_found": "The requested item could not be found.",
    "invalid_transition": "This appointment can no longer be changed.",
    "no_availability": "There are no free times for this day. Please choose another day or staff member.",
    "conflict": "This time has just been booked by someone else. Please choose another time.",
}


@dataclass(frozen=True)
class Outcome:
    """Error part shared by all results. ``ok`` is True when nothing failed."""
    error_code: Optional[str] = None
    message: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error_code is None

    @staticmethod
    def error_fields(error: SchedulingError) -> dict:
        """Keyword arguments describing ``error`` for the user."""
        return {
            "error_code": error.code,
            "message": ERROR_MESSAGES.get(error.code, ERROR_MESSAGES["validation_error"]),
            "field_errors": dict(getattr(error, "errors", {})),
        }

    @classmethod
    def failure(cls, error: SchedulingError):
        return cls(**cls.error_fields(error))


@dataclass(frozen=True)
class BookingResult(Outcome):
    appointment: Optional[Appointment] = None

    @property
    def appointment_id(self) -> Optional[str]:
        return self.appointment.id if self.appointment is not None else None

    def to_dict(self) -> dict:
        if self.ok:
            return {"appointment_id": self.appointment_id}
        return {"error_code": self.error_code, "message": self.message, "field_errors": self.field_errors}


@dataclass(frozen=True)
class SlotsResult(Outcome):
    """All candidate slots; ``ok`` is False when none of them is bookable."""
    slots: List[Slot] = field(default_factory=list)
    duration_minutes: int = 0

    @classmethod
    def failure(cls, error: SchedulingError, slots: Optional[List[Slot]] = None) -> "SlotsResult":
        return cls(slots=list(slots or []), **cls.error_fields(error))

    @property
    def available_slots(self) -> List[Slot]:
        return [slot for slot in self.slots if slot.available]

    def to_list(self) -> List[dict]:
        return [slot.to_dict() for slot in self.slots]


@dataclass(frozen=True)
class TimeOptionsResult(Outcome):
    """Start times across all eligible staff; ``ok`` is False when nobody is free."""
    options: List[TimeOption] = field(default_factory=list)
    duration_minutes: int = 0

    @classmethod
    def failure(cls, error: SchedulingError, options: Optional[List[TimeOption]] = None) -> "TimeOptionsResult":
        return cls(options=list(options or []), **cls.error_fields(error))


@dataclass(frozen=True)
class AppointmentsResult(Outcome):
    appointments: List[Appointment] = field(default_factory=list)


def parse_day(value, tz: str) -> Date:
    """
    Interpret a date-only input in the tenant timezone.

    Accepts ``YYYY-MM-DD`` strings, dates, or datetimes (converted to the
    tenant timezone before taking the date).
    """
    if isinstance(value, DateTime):
        return value.in_timezone(tz).date()
    if isinstance(value, std_date):
        return pendulum.date(value.year, value.month, value.day)
    try:
        parsed = pendulum.from_format(str(value).strip(), "YYYY-MM-DD", tz=tz)
    except ValueError as exc:
        raise ValidationError({"date": "expected YYYY-MM-DD"}) from exc
    return parsed.date()


def parse_instant(value, field_name: str = "start") -> DateTime:
    """Parse an ISO 8601 instant; an explicit offset is required."""
    if isinstance(value, DateTime):
        require_aware(value, field_name)
        return value
    text = str(value).strip()
    has_offset = text.endswith("Z") or "+" in text[10:] or "-" in text[10:]
    if not has_offset:
        raise ValidationError({field_name: "must include a timezone offset"})
    try:
        parsed = pendulum.parse(text)
    except ValueError as exc:
        raise ValidationError({field_name: "invalid ISO 8601 timestamp"}) from exc
    if not isinstance(parsed, DateTime):
        raise ValidationError({field_name: "invalid ISO 8601 timestamp"})
    return parsed


def day_range(day: Date, tz: str) -> TimeRange:
    start = pendulum.datetime(day.year, day.month, day.day, tz=tz)
    return TimeRange(start=start, end=start.add(days=1))


class BookingService:
    """
    Exposed scheduling operations.

    Dependency inversion toward protocols makes it easy to plug in the SQL
    store or test doubles.
    """

    def __init__(
        self,
        catalog: ServiceCatalog,
        directory: StaffDirectory,
        store: AppointmentStore,
        calculator: SlotCalculator,
    ) -> None:
        self._catalog = catalog
        self._directory = directory
        self._store = store
        self._calculator = calculator
        self._guard = ConflictGuard(store)

    @property
    def calculator(self) -> SlotCalculator:
        return self._calculator

    def active_services(self, tenant_id: str) -> List[Service]:
        return self._catalog.list_active_services(tenant_id)

    def eligible_staff(self, tenant_id: str) -> List[StaffMember]:
        return self._directory.list_eligible_staff(tenant_id)

    def _staff(self, tenant_id: str, staff_id: str) -> StaffMember:
        for member in self._directory.list_eligible_staff(tenant_id):
            if member.id == staff_id:
                return member
        raise UnknownEntityError("staff", staff_id)

    def _services_by_id(self, tenant_id: str) -> Dict[str, Service]:
        return {service.id: service for service in self._catalog.list_active_services(tenant_id)}

    def _appointment(self, tenant_id: str, appointment_id: str) -> Appointment:
        appointment = self._store.get(appointment_id)
        if appointment is None or appointment.tenant_id != tenant_id:
            raise UnknownEntityError("appointment", appointment_id)
        return appointment

    def _check_lead_time(self, start: DateTime, now: DateTime) -> None:
        earliest = now.add(minutes=self._calculator.lead_time_minutes)
        if start < earliest:
            raise ValidationError({"start": "too close to the current time"})

    def _localize(self, tenant_id: str, appointment: Appointment) -> Appointment:
        """Express the appointment range in its staff member's timezone."""
        for member in self._directory.list_eligible_staff(tenant_id):
            if member.id == appointment.staff_id:
                return appointment.with_range(
                    appointment.time_range.in_timezone(member.working_hours.timezone)
                )
        return appointment

    def _slots(
        self,
        tenant_id: str,
        staff: StaffMember,
        day: Date,
        duration_minutes: int,
        now: DateTime,
    ) -> List[Slot]:
        tz = staff.working_hours.timezone
        existing = self._store.list_by_staff_and_date(tenant_id, staff.id, day_range(day, tz))
        return self._calculator.compute_slots(
            staff, day, duration_minutes, existing, now, tenant_id=tenant_id
        )

    def get_available_slots(
        self,
        tenant_id: str,
        staff_id: str,
        day,
        *,
        duration_minutes: Optional[int] = None,
        service_ids: Optional[Sequence[str]] = None,
        now: Optional[DateTime] = None,
    ) -> SlotsResult:
        """
        Compute slots for a staff member on a day.

        The duration comes either directly or as the sum of ``service_ids``.
        """
        now = now or pendulum.now("UTC")
        try:
            staff = self._staff(tenant_id, staff_id)
            if service_ids is not None:
                _, duration_minutes, _ = resolve_services(service_ids, self._services_by_id(tenant_id))
            if duration_minutes is None or duration_minutes <= 0:
                raise ValidationError({"duration_minutes": "must be greater than zero"})

            target_day = parse_day(day, staff.working_hours.timezone)
            slots = self._slots(tenant_id, staff, target_day, duration_minutes, now)
        except ValidationError as exc:
            return SlotsResult.failure(exc)

        if not any(slot.available for slot in slots):
            return SlotsResult.failure(NoAvailabilityError(), slots)
        return SlotsResult(slots=slots, duration_minutes=duration_minutes)

    def get_time_options(
        self,
        tenant_id: str,
        day,
        service_ids: Sequence[str],
        now: Optional[DateTime] = None,
    ) -> TimeOptionsResult:
        """
        Slots of every eligible staff member merged by start time, for
        callers offering "no preference". Choosing the staff member stays
        with the caller.
        """
        now = now or pendulum.now("UTC")
        try:
            _, duration, _ = resolve_services(service_ids, self._services_by_id(tenant_id))
            slots_by_staff: Dict[str, List[Slot]] = {}
            for staff in self.eligible_staff(tenant_id):
                target_day = parse_day(day, staff.working_hours.timezone)
                slots_by_staff[staff.id] = self._slots(tenant_id, staff, target_day, duration, now)
        except ValidationError as exc:
            return TimeOptionsResult.failure(exc)

        options = group_slots_by_time(slots_by_staff)
        if not any(option.available for option in options):
            return TimeOptionsResult.failure(NoAvailabilityError(), options)
        return TimeOptionsResult(options=options, duration_minutes=duration)

    def create_booking(
        self,
        tenant_id: str,
        staff_id: str,
        start,
        service_ids: Sequence[str],
        customer: Optional[CustomerInfo],
        *,
        now: Optional[DateTime] = None,
        source: str = "online",
    ) -> BookingResult:
        """
        Validate a request and commit it through the conflict guard.

        Returns:
            BookingResult with the appointment, or with error code
            ``validation_error``, ``not_found`` or ``conflict``
        """
        now = now or pendulum.now("UTC")
        try:
            errors: Dict[str, str] = dict(customer_errors(customer))
            services_total = None
            try:
                services_total = resolve_services(service_ids, self._services_by_id(tenant_id))
            except ValidationError as exc:
                errors.update(exc.errors)
            try:
                start = parse_instant(start)
            except ValidationError as exc:
                errors.update(exc.errors)
            if errors:
                raise ValidationError(errors)

            _, total_minutes, total_price = services_total
            staff = self._staff(tenant_id, staff_id)
            time_range = TimeRange.from_start(start, total_minutes)

            self._check_lead_time(start, now)
            validate_within_schedule(staff, time_range)

            appointment = self._guard.commit(
                tenant_id,
                staff,
                time_range,
                CommitPayload(
                    customer=customer,
                    service_ids=list(service_ids),
                    total_price=total_price,
                    source=source,
                ),
            )
        except (ValidationError, ConflictError) as exc:
            logger.info("Booking for tenant %s staff %s not created: %s", tenant_id, staff_id, exc.code)
            return BookingResult.failure(exc)

        return BookingResult(appointment=self._localize(tenant_id, appointment))

    def reschedule_appointment(
        self,
        tenant_id: str,
        appointment_id: str,
        new_start,
        *,
        now: Optional[DateTime] = None,
    ) -> BookingResult:
        """
        Move an appointment to ``new_start`` keeping its duration.

        Staying on the current range always passes the overlap check.
        """
        now = now or pendulum.now("UTC")
        try:
            new_start = parse_instant(new_start)
            appointment = self._appointment(tenant_id, appointment_id)
            staff = self._staff(tenant_id, appointment.staff_id)
            new_range = appointment.time_range.shift_to(new_start)

            if new_range != appointment.time_range:
                self._check_lead_time(new_start, now)
            validate_within_schedule(staff, new_range)

            moved = self._guard.recommit(appointment_id, new_range, staff)
        except (ValidationError, ConflictError) as exc:
            logger.info("Reschedule of %s rejected: %s", appointment_id, exc.code)
            return BookingResult.failure(exc)

        return BookingResult(appointment=self._localize(tenant_id, moved))

    def change_status(
        self,
        tenant_id: str,
        appointment_id: str,
        status: AppointmentStatus | str,
    ) -> BookingResult:
        """Complete, cancel or mark as no-show a confirmed appointment."""
        try:
            try:
                status = AppointmentStatus(status)
            except ValueError as exc:
                raise ValidationError({"status": f"unknown status {status}"}) from exc
            self._appointment(tenant_id, appointment_id)
            updated = self._store.set_status(appointment_id, status)
        except ValidationError as exc:
            return BookingResult.failure(exc)

        return BookingResult(appointment=self._localize(tenant_id, updated))

    def delete_appointment(self, tenant_id: str, appointment_id: str) -> bool:
        """Administrative removal; returns False if nothing was deleted."""
        try:
            self._appointment(tenant_id, appointment_id)
        except UnknownEntityError:
            return False
        logger.warning("Deleting appointment %s of tenant %s", appointment_id, tenant_id)
        return self._store.delete(appointment_id)

    def list_appointments(self, tenant_id: str, staff_id: str, day) -> AppointmentsResult:
        """Appointments of a staff member on a day, in any status."""
        try:
            staff = self._staff(tenant_id, staff_id)
            tz = staff.working_hours.timezone
            target_day = parse_day(day, tz)
        except ValidationError as exc:
            return AppointmentsResult.failure(exc)

        appointments = self._store.list_by_staff_and_date(tenant_id, staff.id, day_range(target_day, tz))
        return AppointmentsResult(
            appointments=[
                appointment.with_range(appointment.time_range.in_timezone(tz))
                for appointment in appointments
            ]
        )


def build_booking_service(config: AppConfig, store: Optional[AppointmentStore] = None) -> BookingService:
    """Wire the config-backed directory, the SQL store and the calculator."""
    directory = StaticDirectory.from_config(config)
    if store is None:
        store = SqlAppointmentStore.from_url(config.database_url)
    calculator = SlotCalculator(
        granularity_minutes=config.granularity_minutes,
        lead_time_minutes=config.minimum_lead_minutes,
    )
    return BookingService(catalog=directory, directory=directory, store=store, calculator=calculator)
