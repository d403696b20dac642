"""
Protocols describing the external collaborators of the scheduling engine.

The engine depends on these shapes only, so the static config-backed
directory, the SQL store or test doubles can be plugged in freely.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from ..domain.models import Appointment, AppointmentStatus, Service, StaffMember, TimeRange


class ServiceCatalog(Protocol):
    """Source of bookable services for a tenant."""

    def list_active_services(self, tenant_id: str) -> List[Service]:
        """Return active services of the tenant."""


class StaffDirectory(Protocol):
    """Source of staff members who may take bookings."""

    def list_eligible_staff(self, tenant_id: str) -> List[StaffMember]:
        """Return active, booking-eligible staff of the tenant."""


class AppointmentStore(Protocol):
    """
    Durable record of committed appointments.

    ``create`` and ``update`` must check for overlaps and write in one
    atomic step, raising ``ConflictError`` when another blocking
    appointment of the same tenant staff member intersects the padded
    range.
    """

    def create(
        self,
        *,
        tenant_id: str,
        staff_id: str,
        time_range: TimeRange,
        customer_name: str,
        customer_email: str,
        service_ids: Sequence[str],
        total_price: Decimal,
        notes: Optional[str] = None,
        source: str = "online",
        buffer_before: int = 0,
        buffer_after: int = 0,
    ) -> Appointment:
        ...

    def update(
        self,
        appointment_id: str,
        time_range: TimeRange,
        *,
        buffer_before: int = 0,
        buffer_after: int = 0,
    ) -> Appointment:
        ...

    def get(self, appointment_id: str) -> Appointment | None:
        ...

    def list_by_staff_and_date(
        self,
        tenant_id: str,
        staff_id: str,
        date_range: TimeRange,
    ) -> List[Appointment]:
        ...

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        ...

    def delete(self, appointment_id: str) -> bool:
        ...
