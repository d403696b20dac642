"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.sql_store import SqlAppointmentStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError, StoreUnavailableError
from ..domain.models import CustomerInfo
from ..services.booking_service import BookingResult, BookingService, build_booking_service

app = typer.Typer(
    name="salon-scheduler",
    help="Compute bookable slots and manage salon appointments",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def configure_logging(level: str) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> tuple[AppConfig, BookingService]:
    try:
        config = AppConfig.load_from_yaml(config_file or get_default_config_path())
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    configure_logging(config.log_level)
    try:
        store = SqlAppointmentStore.from_url(config.database_url)
        store.init_schema()
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    return config, build_booking_service(config, store=store)


def _print_result(result: BookingResult, success_message: str) -> None:
    if result.ok:
        appointment = result.appointment
        console.print(f"[green]✓ {success_message}[/green]")
        console.print(f"   ID: {appointment.id}")
        console.print(f"   Time: {appointment.time_range}")
        console.print(f"   Status: {appointment.status.value}")
        return

    console.print(f"[bold red]✗ {result.message}[/bold red]")
    for field_name, problem in result.field_errors.items():
        console.print(f"   {field_name}: {problem}")
    raise typer.Exit(1)


@app.command()
def init_db(config_file: ConfigOption = None):
    """
    Create the appointment tables.
    """
    _load(config_file)
    console.print("[green]✓ Database schema ready.[/green]")


@app.command()
def list_services(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    config_file: ConfigOption = None,
):
    """
    List the active services of a tenant.
    """
    _, service = _load(config_file)
    try:
        services = service.active_services(tenant)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Minutes", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Category", style="dim")

    for item in services:
        table.add_row(item.id, item.name, str(item.duration_minutes), f"{item.price:.2f}", item.category or "")

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_staff(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    config_file: ConfigOption = None,
):
    """
    List staff members who can take bookings.
    """
    _, service = _load(config_file)
    try:
        staff = service.eligible_staff(tenant)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not staff:
        console.print("[yellow]No bookable staff configured for this tenant.[/yellow]")
        return

    table = Table(title="Bookable staff", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Buffer before/after", style="dim")

    for member in staff:
        table.add_row(member.id, member.name, f"{member.buffer_before}/{member.buffer_after} min")

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    staff: Annotated[str, typer.Argument(help="Staff id")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD) in the tenant timezone")],
    services: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Service id, repeatable")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also show taken slots")] = False,
    config_file: ConfigOption = None,
):
    """
    Show bookable slots for a staff member on a day.

    Examples:

        salon-scheduler slots salon-1 anna 2024-11-25 -s cut -s color

        salon-scheduler slots salon-1 anna 2024-11-25 --duration 45 --all
    """
    if not services and duration is None:
        console.print("[red]Error: pass --service or --duration.[/red]")
        raise typer.Exit(1)

    _, service = _load(config_file)
    try:
        result = service.get_available_slots(
            tenant,
            staff,
            day,
            duration_minutes=duration,
            service_ids=services or None,
        )
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if result.error_code not in (None, "no_availability"):
        console.print(f"[bold red]Error:[/bold red] {result.message}")
        for field_name, problem in result.field_errors.items():
            console.print(f"   {field_name}: {problem}")
        raise typer.Exit(1)

    shown = result.slots if show_all else result.available_slots
    console.print()
    if not result.ok:
        console.print(f"[yellow]⚠ {result.message}[/yellow]")
    else:
        console.print(f"[bold green]✓ {len(result.available_slots)} bookable slot(s):[/bold green]\n")

    for slot in shown:
        style = "" if slot.available else "dim"
        console.print(f"  {slot.format_display()}", style=style)
    console.print()


@app.command()
def book(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    staff: Annotated[str, typer.Argument(help="Staff id")],
    start: Annotated[str, typer.Argument(help="Start instant with offset, e.g. 2024-11-25T10:00:00+01:00")],
    services: Annotated[List[str], typer.Option("--service", "-s", help="Service id, repeatable")],
    name: Annotated[str, typer.Option("--name", help="Customer name")],
    email: Annotated[str, typer.Option("--email", help="Customer email")],
    phone: Annotated[Optional[str], typer.Option("--phone", help="Customer phone")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the appointment")] = None,
    accept_terms: Annotated[bool, typer.Option("--accept-terms", help="Customer accepted the terms")] = False,
    config_file: ConfigOption = None,
):
    """
    Book an appointment.
    """
    _, service = _load(config_file)
    customer = CustomerInfo(
        name=name,
        email=email,
        phone=phone,
        notes=notes,
        terms_accepted=accept_terms,
    )
    try:
        result = service.create_booking(tenant, staff, start, services, customer, source="manual")
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    _print_result(result, "Appointment booked")


@app.command()
def reschedule(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_start: Annotated[str, typer.Argument(help="New start instant with offset")],
    config_file: ConfigOption = None,
):
    """
    Move an appointment to a new start time.
    """
    _, service = _load(config_file)
    try:
        result = service.reschedule_appointment(tenant, appointment_id, new_start)
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    _print_result(result, "Appointment moved")


@app.command()
def status(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_status: Annotated[str, typer.Argument(help="completed, cancelled or no_show")],
    config_file: ConfigOption = None,
):
    """
    Complete, cancel or mark an appointment as no-show.
    """
    _, service = _load(config_file)
    try:
        result = service.change_status(tenant, appointment_id, new_status)
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    _print_result(result, "Status updated")


@app.command()
def appointments(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    staff: Annotated[str, typer.Argument(help="Staff id")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    List the appointments of a staff member on a day.
    """
    _, service = _load(config_file)
    try:
        result = service.list_appointments(tenant, staff, day)
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not result.ok:
        console.print(f"[bold red]Error:[/bold red] {result.message}")
        for field_name, problem in result.field_errors.items():
            console.print(f"   {field_name}: {problem}")
        raise typer.Exit(1)

    items = result.appointments

    if not items:
        console.print("[yellow]No appointments.[/yellow]")
        return

    table = Table(title=f"Appointments {day}", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="bold yellow")
    table.add_column("Customer")
    table.add_column("Status")
    table.add_column("Price", justify="right")
    table.add_column("ID", style="dim")

    for item in items:
        table.add_row(
            str(item.time_range),
            item.customer_name,
            item.status.value,
            f"{item.total_price:.2f}",
            item.id,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salon-scheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
