"""
SQLAlchemy implementation of the appointment store.

Every mutation runs in one transaction that first bumps the staff member's
row in ``staff_calendars``. The bump takes a row lock (PostgreSQL, MySQL)
or the database write lock (SQLite, via ``BEGIN IMMEDIATE``), so overlap
check and write for one staff member are serialized by the database and
not by the process.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional, Sequence

import pendulum
from pendulum import DateTime
from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime as SADateTime,
    Engine,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from ..domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    StoreUnavailableError,
    UnknownEntityError,
    ValidationError,
)
from ..domain.models import BLOCKING_STATUSES, Appointment, AppointmentStatus, TimeRange

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class AppointmentRow(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_appointments_range"),
        Index("ix_appointments_tenant_staff_start", "tenant_id", "staff_id", "start_time"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    staff_id: Mapped[str] = mapped_column(String(64))
    # Naive UTC
    start_time: Mapped[datetime] = mapped_column(SADateTime())
    end_time: Mapped[datetime] = mapped_column(SADateTime())
    status: Mapped[str] = mapped_column(String(16), default=AppointmentStatus.CONFIRMED.value)
    customer_name: Mapped[str] = mapped_column(String(255))
    customer_email: Mapped[str] = mapped_column(String(255))
    service_ids: Mapped[list] = mapped_column(JSON, default=list)
    total_price_cents: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(16), default="online")
    created_at: Mapped[datetime] = mapped_column(SADateTime())
    updated_at: Mapped[datetime] = mapped_column(SADateTime())


class StaffCalendarRow(Base):
    """One row per tenant staff member; bumped by every write to serialize them."""
    __tablename__ = "staff_calendars"

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    staff_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)


def _to_utc_naive(value: DateTime) -> datetime:
    """Plain ``datetime`` in UTC without tzinfo, as stored in the database."""
    utc = value.in_timezone("UTC")
    return datetime(utc.year, utc.month, utc.day, utc.hour, utc.minute, utc.second, utc.microsecond)


def _from_utc_naive(value: datetime) -> DateTime:
    if value.tzinfo is not None:
        return pendulum.instance(value).in_timezone("UTC")
    return pendulum.datetime(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
        tz="UTC",
    )


def _to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def _to_domain(row: AppointmentRow) -> Appointment:
    return Appointment(
        id=row.id,
        tenant_id=row.tenant_id,
        staff_id=row.staff_id,
        time_range=TimeRange(
            start=_from_utc_naive(row.start_time),
            end=_from_utc_naive(row.end_time),
        ),
        status=AppointmentStatus(row.status),
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        service_ids=tuple(row.service_ids or ()),
        total_price=(Decimal(row.total_price_cents) / 100).quantize(Decimal("0.01")),
        notes=row.notes,
        source=row.source,
    )


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the appointment store.

    SQLite connections are switched to ``BEGIN IMMEDIATE`` so concurrent
    writers queue on the database lock instead of failing late.
    """
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.info("Appointment store engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


class SqlAppointmentStore:
    """
    Appointment store on top of a relational database.

    ``create`` and ``update`` are the atomic check-and-write operations the
    conflict guard relies on.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlAppointmentStore":
        return cls(create_store_engine(database_url))

    def init_schema(self) -> None:
        """Create missing tables."""
        try:
            Base.metadata.create_all(self.engine)
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError("Appointment store is unavailable") from exc

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except (OperationalError, InterfaceError) as exc:
            logger.error("Appointment store unavailable: %s", exc)
            raise StoreUnavailableError("Appointment store is unavailable") from exc
        finally:
            session.close()

    def ensure_calendar(self, tenant_id: str, staff_id: str) -> None:
        """Create the staff member's lock row if it does not exist yet."""
        try:
            with self._transaction() as session:
                if session.get(StaffCalendarRow, (tenant_id, staff_id)) is None:
                    session.add(StaffCalendarRow(tenant_id=tenant_id, staff_id=staff_id, version=0))
        except IntegrityError:
            # Another writer created the row first.
            logger.debug("Calendar row for %s/%s already present", tenant_id, staff_id)

    def _lock_calendar(self, session: Session, tenant_id: str, staff_id: str) -> None:
        result = session.execute(
            update(StaffCalendarRow)
            .where(StaffCalendarRow.tenant_id == tenant_id, StaffCalendarRow.staff_id == staff_id)
            .values(version=StaffCalendarRow.version + 1)
        )
        if result.rowcount == 0:
            session.add(StaffCalendarRow(tenant_id=tenant_id, staff_id=staff_id, version=1))
            session.flush()

    def _find_overlapping(
        self,
        session: Session,
        tenant_id: str,
        staff_id: str,
        time_range: TimeRange,
        buffer_before: int,
        buffer_after: int,
        exclude_id: Optional[str] = None,
    ) -> List[str]:
        """
        Ids of blocking appointments whose buffered range meets ``time_range``.

        An existing appointment keeps ``[start - buffer_before,
        end + buffer_after)`` free.
        """
        padded_end = _to_utc_naive(time_range.end.add(minutes=buffer_before))
        padded_start = _to_utc_naive(time_range.start.subtract(minutes=buffer_after))

        query = select(AppointmentRow.id).where(
            AppointmentRow.tenant_id == tenant_id,
            AppointmentRow.staff_id == staff_id,
            AppointmentRow.status.in_([status.value for status in BLOCKING_STATUSES]),
            AppointmentRow.start_time < padded_end,
            AppointmentRow.end_time > padded_start,
        )
        if exclude_id is not None:
            query = query.where(AppointmentRow.id != exclude_id)

        return list(session.scalars(query))

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
        """
        Insert a confirmed appointment unless it overlaps another one.

        Raises:
            ConflictError: if a blocking appointment intersects the range
            StoreUnavailableError: if the database cannot be reached
        """
        self.ensure_calendar(tenant_id, staff_id)

        with self._transaction() as session:
            self._lock_calendar(session, tenant_id, staff_id)

            clashes = self._find_overlapping(
                session, tenant_id, staff_id, time_range, buffer_before, buffer_after
            )
            if clashes:
                logger.warning(
                    "Rejected booking for staff %s at %s: overlaps %s",
                    staff_id, time_range, clashes,
                )
                raise ConflictError(staff_id)

            now = _to_utc_naive(pendulum.now("UTC"))
            row = AppointmentRow(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                staff_id=staff_id,
                start_time=_to_utc_naive(time_range.start),
                end_time=_to_utc_naive(time_range.end),
                status=AppointmentStatus.CONFIRMED.value,
                customer_name=customer_name,
                customer_email=customer_email,
                service_ids=list(service_ids),
                total_price_cents=_to_cents(total_price),
                notes=notes,
                source=source,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            appointment = _to_domain(row)

        logger.info("Committed appointment %s for staff %s at %s", appointment.id, staff_id, time_range)
        return appointment

    def update(
        self,
        appointment_id: str,
        time_range: TimeRange,
        *,
        buffer_before: int = 0,
        buffer_after: int = 0,
    ) -> Appointment:
        """
        Move an appointment to ``time_range``, ignoring its own prior range.

        Raises:
            UnknownEntityError: if the appointment does not exist
            ValidationError: if the appointment is no longer confirmed
            ConflictError: if another blocking appointment intersects
        """
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                raise UnknownEntityError("appointment", appointment_id)

            self._lock_calendar(session, row.tenant_id, row.staff_id)
            session.refresh(row)

            if row.status != AppointmentStatus.CONFIRMED.value:
                raise ValidationError({"status": f"a {row.status} appointment cannot be moved"})

            clashes = self._find_overlapping(
                session, row.tenant_id, row.staff_id, time_range, buffer_before, buffer_after,
                exclude_id=row.id,
            )
            if clashes:
                logger.warning(
                    "Rejected reschedule of %s to %s: overlaps %s",
                    appointment_id, time_range, clashes,
                )
                raise ConflictError(row.staff_id)

            row.start_time = _to_utc_naive(time_range.start)
            row.end_time = _to_utc_naive(time_range.end)
            row.updated_at = _to_utc_naive(pendulum.now("UTC"))
            session.flush()
            appointment = _to_domain(row)

        logger.info("Rescheduled appointment %s to %s", appointment_id, time_range)
        return appointment

    def get(self, appointment_id: str) -> Appointment | None:
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            return _to_domain(row) if row is not None else None

    def list_by_staff_and_date(
        self,
        tenant_id: str,
        staff_id: str,
        date_range: TimeRange,
    ) -> List[Appointment]:
        """All appointments of the tenant's ``staff_id`` intersecting ``date_range``, by start."""
        with self._transaction() as session:
            rows = session.scalars(
                select(AppointmentRow)
                .where(
                    AppointmentRow.tenant_id == tenant_id,
                    AppointmentRow.staff_id == staff_id,
                    AppointmentRow.start_time < _to_utc_naive(date_range.end),
                    AppointmentRow.end_time > _to_utc_naive(date_range.start),
                )
                .order_by(AppointmentRow.start_time)
            )
            return [_to_domain(row) for row in rows]

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """
        Move a confirmed appointment into a terminal status.

        Raises:
            UnknownEntityError: if the appointment does not exist
            InvalidTransitionError: unless going from confirmed to terminal
        """
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                raise UnknownEntityError("appointment", appointment_id)

            self._lock_calendar(session, row.tenant_id, row.staff_id)
            session.refresh(row)

            current = AppointmentStatus(row.status)
            if current.is_terminal or not status.is_terminal:
                raise InvalidTransitionError(current.value, status.value)

            row.status = status.value
            row.updated_at = _to_utc_naive(pendulum.now("UTC"))
            session.flush()
            appointment = _to_domain(row)

        logger.info("Appointment %s is now %s", appointment_id, status.value)
        return appointment

    def delete(self, appointment_id: str) -> bool:
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                return False
            session.delete(row)

        logger.info("Deleted appointment %s", appointment_id)
        return True
