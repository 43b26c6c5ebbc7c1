"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_repository import InMemoryBookingRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingSlotsError, ClosedDayError, OutsideWorkingHoursError
from ..domain.slot_calculator import SlotCalculator
from ..services.booking_service import AvailabilityService, BookingService

app = typer.Typer(
    name="bookingslots",
    help="Compute bookable appointment slots from working hours, bookings and time off",
    add_completion=False
)

console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Invalid date '{value}', expected YYYY-MM-DD: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date to list slots for (YYYY-MM-DD)")],
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service name from the catalog")] = None,
    package: Annotated[Optional[str], typer.Option("--package", "-p", help="Package name; overrides the service duration")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", help="Staff id or name")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the slot list as JSON")] = False,
):
    """
    List the slot grid for a day.

    Examples:

        bookingslots slots 2025-01-06 --service haircut

        bookingslots slots 2025-01-06 -s haircut --staff ada --json
    """
    try:
        config = _load_config(config_file)
        day = _parse_date(date, config.timezone)
        duration = config.duration_for(service=service, package=package)
        staff_id = config.resolve_staff(staff)

        service_layer = AvailabilityService(
            repository=InMemoryBookingRepository.from_config(config),
            slot_calculator=SlotCalculator(
                step_minutes=config.slot_step_minutes,
                timezone=config.timezone,
            ),
        )
        result = asyncio.run(
            service_layer.get_slots(
                business_id=config.business.id,
                day=day,
                duration_minutes=duration,
                staff_id=staff_id,
            )
        )

        if as_json:
            console.print_json(json.dumps(result.to_dict()))
            return

        console.print()
        if result.closed:
            console.print(f"[yellow]⚠ {result.message}[/yellow]\n")
            return

        table = Table(
            title=f"{config.business.name} - {day.format('dddd, DD.MM.YYYY')} ({duration} min)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Time", style="bold")
        table.add_column("Status")

        for slot in result.slots:
            status = "[green]available[/green]" if slot.available else "[dim]booked[/dim]"
            table.add_row(str(slot.time), status)

        console.print(table)
        available = sum(1 for slot in result.slots if slot.available)
        console.print(f"\n[bold green]✓ {available} of {len(result.slots)} slot(s) available[/bold green]\n")

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (BookingSlotsError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    date: Annotated[str, typer.Argument(help="Date of the booking (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service name from the catalog")] = None,
    package: Annotated[Optional[str], typer.Option("--package", "-p", help="Package name")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", help="Staff id or name")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
):
    """
    Check a requested start time against existing bookings.

    Exits with code 2 when the slot is taken.
    """
    try:
        config = _load_config(config_file)
        day = _parse_date(date, config.timezone)
        duration = config.duration_for(service=service, package=package)
        staff_id = config.resolve_staff(staff)

        booking_service = BookingService(
            repository=InMemoryBookingRepository.from_config(config),
            timezone=config.timezone,
            payment_expiry_minutes=config.payment_expiry_minutes,
        )
        try:
            interval, conflicts = asyncio.run(
                booking_service.check_slot(
                    business_id=config.business.id,
                    day=day,
                    start_time=time,
                    duration_minutes=duration,
                    staff_id=staff_id,
                )
            )
        except (ClosedDayError, OutsideWorkingHoursError) as e:
            console.print(f"[yellow]⚠ {e}[/yellow]")
            raise typer.Exit(2)

        if conflicts:
            console.print(f"[bold red]✗ {interval} is no longer available[/bold red]")
            for booking in conflicts:
                console.print(f"  overlaps {booking.interval} ({booking.status.value})")
            raise typer.Exit(2)

        console.print(f"[bold green]✓ {interval} is available[/bold green]")

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (BookingSlotsError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_services(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    )
):
    """
    List the configured services and packages.
    """
    try:
        config = _load_config(config_file)

        if not config.services and not config.packages:
            console.print("[yellow]No services defined in the config file.[/yellow]")
            return

        table = Table(
            title="Catalog",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name", style="bold yellow")
        table.add_column("Kind", style="dim")
        table.add_column("Duration", justify="right")

        for entry in config.services:
            table.add_row(entry.name, "service", f"{entry.duration_minutes} min")
        for entry in config.packages:
            table.add_row(entry.name, "package", f"{entry.duration_minutes} min")

        console.print()
        console.print(table)
        console.print()

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (BookingSlotsError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
