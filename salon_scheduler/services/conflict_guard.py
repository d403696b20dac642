"""
Conflict guard: the single entry point for writes that must keep staff
calendars free of overlaps.

The guard never checks and writes in two steps itself. It hands the range
together with the staff member's buffers to the store, whose ``create`` and
``update`` perform the overlap check and the write atomically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from ..adapters.protocols import AppointmentStore
from ..domain.exceptions import ConflictError
from ..domain.models import Appointment, CustomerInfo, StaffMember, TimeRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitPayload:
    """Data stored alongside a committed range."""
    customer: CustomerInfo
    service_ids: Sequence[str]
    total_price: Decimal
    source: str = "online"


class ConflictGuard:
    """Atomic check-and-commit for appointments."""

    def __init__(self, store: AppointmentStore) -> None:
        self._store = store

    def commit(
        self,
        tenant_id: str,
        staff: StaffMember,
        time_range: TimeRange,
        payload: CommitPayload,
    ) -> Appointment:
        """
        Record a new appointment for ``staff``.

        Raises:
            ConflictError: if the range meets another appointment of the
                staff member, buffers included; nothing is written then
        """
        try:
            return self._store.create(
                tenant_id=tenant_id,
                staff_id=staff.id,
                time_range=time_range,
                customer_name=payload.customer.name.strip(),
                customer_email=payload.customer.email.strip().lower(),
                service_ids=list(payload.service_ids),
                total_price=payload.total_price,
                notes=payload.customer.notes,
                source=payload.source,
                buffer_before=staff.buffer_before,
                buffer_after=staff.buffer_after,
            )
        except ConflictError:
            logger.info("Commit conflict for tenant %s staff %s at %s", tenant_id, staff.id, time_range)
            raise

    def recommit(
        self,
        appointment_id: str,
        new_range: TimeRange,
        staff: Optional[StaffMember] = None,
    ) -> Appointment:
        """
        Move an existing appointment; its own prior range never conflicts.

        Raises:
            ConflictError: if ``new_range`` meets a different appointment
        """
        buffer_before = staff.buffer_before if staff is not None else 0
        buffer_after = staff.buffer_after if staff is not None else 0
        try:
            return self._store.update(
                appointment_id,
                new_range,
                buffer_before=buffer_before,
                buffer_after=buffer_after,
            )
        except ConflictError:
            logger.info("Recommit conflict for appointment %s at %s", appointment_id, new_range)
            raise
