"""
Shared fixtures: a tenant config, a SQLite-backed store and the booking service.
"""

from datetime import time

import pendulum
import pytest

from salon_scheduler.adapters.sql_store import SqlAppointmentStore
from salon_scheduler.config import AppConfig
from salon_scheduler.domain.models import CustomerInfo, DayHours, StaffMember, WorkingHours
from salon_scheduler.services.booking_service import build_booking_service

TZ = "Europe/Berlin"
TENANT = "salon-1"

# Sunday noon before the Monday most tests book on
NOW = pendulum.datetime(2024, 11, 24, 12, 0, tz=TZ)
MONDAY = pendulum.date(2024, 11, 25)


def at(hhmm: str, day: str = "2024-11-25") -> pendulum.DateTime:
    """Instant on ``day`` in the tenant timezone."""
    return pendulum.parse(f"{day} {hhmm}", tz=TZ)


def make_staff(
    staff_id: str = "anna",
    buffer_before: int = 0,
    buffer_after: int = 0,
    breaks=(),
    active: bool = True,
) -> StaffMember:
    """Staff member working Monday to Saturday, 09:00 - 19:00."""
    hours = DayHours(open_time=time(9, 0), close_time=time(19, 0), breaks=tuple(breaks))
    return StaffMember(
        id=staff_id,
        name=staff_id.title(),
        working_hours=WorkingHours(days={day: hours for day in range(6)}, timezone=TZ),
        active=active,
        buffer_before=buffer_before,
        buffer_after=buffer_after,
    )


def customer(name: str = "Mia Weber", email: str = "mia@example.com") -> CustomerInfo:
    return CustomerInfo(name=name, email=email, phone="+49 30 1234567", terms_accepted=True)


TENANT_DATA = {
    "id": TENANT,
    "name": "Salon Mitte",
    "timezone": TZ,
    "services": [
        {"id": "cut", "name": "Haircut", "duration_minutes": 40, "price": "35.00", "category": "hair"},
        {"id": "color", "name": "Coloring", "duration_minutes": 50, "price": "60.00", "category": "hair"},
        {"id": "blowdry", "name": "Blow-dry", "duration_minutes": 40, "price": "25.00"},
        {"id": "wash", "name": "Wash", "duration_minutes": 30, "price": "10.00"},
        {"id": "retired", "name": "Perm", "duration_minutes": 90, "price": "80.00", "active": False},
    ],
    "staff": [
        {
            "id": "anna",
            "name": "Anna",
            "working_hours": {
                day: {"open": "09:00", "close": "19:00"}
                for day in ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
            },
        },
        {
            "id": "ben",
            "name": "Ben",
            "buffer_minutes": 10,
            "working_hours": {
                "monday": {
                    "open": "12:00",
                    "close": "18:00",
                    "breaks": [{"start": "14:00", "end": "14:30"}],
                },
            },
        },
        {"id": "carl", "name": "Carl", "can_book": False},
    ],
}


def make_config(**overrides) -> AppConfig:
    data = {
        "granularity_minutes": 15,
        "minimum_lead_minutes": 30,
        "tenants": [TENANT_DATA, {"id": "salon-2", "timezone": TZ, "staff": [], "services": []}],
    }
    data.update(overrides)
    return AppConfig(**data)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'appointments.db'}"


@pytest.fixture
def store(database_url):
    store = SqlAppointmentStore.from_url(database_url)
    store.init_schema()
    yield store
    store.engine.dispose()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def service(config, store):
    return build_booking_service(config, store=store)
