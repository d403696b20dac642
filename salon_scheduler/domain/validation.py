"""
Input validation for booking requests.

All checks run before the store is touched and report every offending
field at once.
"""

import re
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pendulum import DateTime

from .exceptions import ValidationError
from .models import CustomerInfo, Service, StaffMember, TimeRange

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Return the lower-cased email, or None if it is not a valid address."""
    if not email:
        return None
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return None
    return email


def resolve_services(
    service_ids: Sequence[str],
    catalog: Mapping[str, Service],
) -> Tuple[List[Service], int, Decimal]:
    """
    Look up the selected services and aggregate their duration and price.

    Returns:
        (services in request order, total minutes, total price)

    Raises:
        ValidationError: if nothing is selected, an id is unknown or
            inactive, or the aggregate duration is not positive
    """
    if not service_ids:
        raise ValidationError({"service_ids": "select at least one service"})

    services: List[Service] = []
    unknown: List[str] = []
    for service_id in service_ids:
        service = catalog.get(service_id)
        if service is None or not service.active:
            unknown.append(service_id)
            continue
        services.append(service)

    if unknown:
        raise ValidationError({"service_ids": f"unknown or inactive: {', '.join(unknown)}"})

    total_minutes = sum(service.duration_minutes for service in services)
    if total_minutes <= 0:
        raise ValidationError({"service_ids": "total duration must be positive"})

    total_price = sum((service.price for service in services), Decimal("0.00"))
    return services, total_minutes, total_price


def customer_errors(customer: Optional[CustomerInfo]) -> Dict[str, str]:
    """Collect missing or malformed contact fields."""
    if customer is None:
        return {"customer": "contact details are required"}

    errors: Dict[str, str] = {}
    if not (customer.name or "").strip():
        errors["name"] = "name is required"
    if not customer.email:
        errors["email"] = "email is required"
    elif normalize_email(customer.email) is None:
        errors["email"] = "invalid email format"
    if not customer.terms_accepted:
        errors["terms_accepted"] = "terms must be accepted"
    return errors


def validate_customer(customer: Optional[CustomerInfo]) -> None:
    errors = customer_errors(customer)
    if errors:
        raise ValidationError(errors)


def validate_within_schedule(staff: StaffMember, time_range: TimeRange) -> None:
    """
    Check that ``time_range`` lies inside the staff member's bookable window
    for its weekday and clear of breaks.
    """
    local = time_range.in_timezone(staff.working_hours.timezone)
    day = local.start.date()

    if not staff.bookable:
        raise ValidationError({"staff_id": "staff member is not bookable"})

    window = staff.bookable_window(day)
    if window is None or not window.contains(local):
        raise ValidationError({"start": "outside working hours"})

    for pause in staff.working_hours.get_breaks_for_day(day):
        if pause.overlaps(local):
            raise ValidationError({"start": "overlaps a break"})


def require_aware(value: DateTime, field_name: str = "start") -> None:
    if value.tzinfo is None:
        raise ValidationError({field_name: "must include a timezone offset"})
