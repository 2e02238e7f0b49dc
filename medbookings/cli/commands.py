"""CLI commands for MedBookings scheduling."""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from medbookings.config import get_settings

app = typer.Typer(
    name="medbookings",
    help="Recurring availability and slot scheduling for MedBookings",
    add_completion=False,
)
console = Console()

_DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]


@app.command()
def preview(
    start: datetime = typer.Argument(..., formats=_DATETIME_FORMATS, help="First occurrence start (local time)"),
    end: datetime = typer.Argument(..., formats=_DATETIME_FORMATS, help="First occurrence end (local time)"),
    recurrence: str = typer.Option("NONE", "--type", "-t", help="NONE, DAILY, WEEKLY, MONTHLY or CUSTOM"),
    interval: int = typer.Option(1, "--interval", "-i", help="Repeat every N days/weeks/months"),
    days: Optional[list[int]] = typer.Option(None, "--day", "-d", help="Weekday for WEEKLY, 0=Sunday (repeatable)"),
    day_of_month: Optional[int] = typer.Option(None, "--day-of-month", help="Day of month for MONTHLY"),
    week_of_month: Optional[int] = typer.Option(None, "--week-of-month", help="1-4, or -1 for the last week"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Stop after N occurrences"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="Last date of the series (YYYY-MM-DD)"),
    exceptions: Optional[list[str]] = typer.Option(None, "--except", help="Date to skip (repeatable)"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA timezone (defaults to settings)"),
    rule: str = typer.Option("CONTINUOUS", "--rule", "-r", help="CONTINUOUS, ON_THE_HOUR or ON_THE_HALF_HOUR"),
    durations: Optional[list[int]] = typer.Option(None, "--duration", help="Service duration in minutes (repeatable)"),
    until: Optional[datetime] = typer.Option(None, "--until", formats=["%Y-%m-%d"], help="Preview horizon"),
    show_slots: bool = typer.Option(False, "--slots", help="List every slot"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Expand a window's recurrence and show the slots it would produce."""
    from medbookings.scheduling.availability import preview_window
    from medbookings.scheduling.errors import SchedulingError
    from medbookings.scheduling.models import (
        PreviewRequest,
        RecurrencePattern,
        SchedulingRule,
        ServiceOffering,
    )
    from medbookings.scheduling.recurrence import describe_pattern
    from medbookings.scheduling.timezone import get_zone, to_local

    try:
        scheduling_rule = SchedulingRule(rule.upper())
    except ValueError:
        console.print(f"[red]Invalid scheduling rule: {rule}[/red]")
        raise typer.Exit(1)

    settings = get_settings()
    zone_name = tz or settings.default_timezone
    try:
        zone = get_zone(zone_name)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    pattern = RecurrencePattern(
        type=recurrence.upper(),
        interval=interval,
        days_of_week=days or None,
        day_of_month=day_of_month,
        week_of_month=week_of_month,
        count=count,
        end_date=end_date,
        exceptions=exceptions or [],
    )
    if any(d <= 0 for d in (durations or [])):
        console.print("[red]Durations must be positive[/red]")
        raise typer.Exit(1)
    services = [ServiceOffering(service_id=uuid.uuid4(), duration=d) for d in (durations or [])]

    request = PreviewRequest(
        start_time=start,
        end_time=end,
        recurrence_pattern=pattern,
        scheduling_rule=scheduling_rule,
        services=services,
        timezone=zone_name,
        until=until.date() if until else None,
    )

    try:
        result = preview_window(request, settings)
    except SchedulingError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    occurrences, slots = result.occurrences, result.slots
    description = describe_pattern(pattern)
    upcoming = result.next_occurrence

    if output_json:
        payload = {
            "description": description,
            "timezone": zone_name,
            "occurrences": [occ.model_dump(mode="json") for occ in occurrences],
            "slot_count": len(slots),
            "next_occurrence": upcoming.model_dump(mode="json") if upcoming else None,
            "aligned_start": result.aligned_start,
            "efficiency": [e.model_dump(mode="json") for e in result.efficiency],
        }
        console.print_json(json.dumps(payload))
        return

    console.print(f"[bold]{description}[/bold] ({zone_name})\n")
    if not result.aligned_start:
        console.print(f"[yellow]Window start is not on a {scheduling_rule.value} boundary; the first slot starts later[/yellow]")

    table = Table(title="Occurrences")
    table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Note")
    for occ in occurrences:
        local_start = to_local(occ.start_time, zone)
        local_end = to_local(occ.end_time, zone)
        table.add_row(
            str(occ.occurrence_number + 1),
            local_start.strftime("%a %Y-%m-%d"),
            local_start.strftime("%H:%M"),
            local_end.strftime("%H:%M"),
            "[yellow]exception[/yellow]" if occ.is_exception else "",
        )
    console.print(table)

    if services:
        counts = Table(title="Slots per service")
        counts.add_column("Duration")
        counts.add_column("Slots", justify="right")
        counts.add_column("Utilization", justify="right")
        usage = {e.service_id: e for e in result.efficiency}
        for service in services:
            n = sum(1 for s in slots if s.service_id == service.service_id)
            counts.add_row(f"{service.duration} min", str(n), f"{usage[service.service_id].utilization_rate:.0%}")
        console.print(counts)

    if show_slots and slots:
        slot_table = Table(title="Slots")
        slot_table.add_column("Start")
        slot_table.add_column("End")
        slot_table.add_column("Minutes", justify="right")
        for slot in slots:
            slot_table.add_row(
                to_local(slot.start_time, zone).strftime("%Y-%m-%d %H:%M"),
                to_local(slot.end_time, zone).strftime("%H:%M"),
                str(slot.duration_minutes),
            )
        console.print(slot_table)

    console.print(f"\n{len(occurrences)} occurrence(s), {len(slots)} slot(s)")
    if upcoming is not None:
        console.print(f"Next: {to_local(upcoming.start_time, zone).strftime('%a %Y-%m-%d %H:%M')}")


@app.command("init-db")
def init_db_command():
    """Create the database tables (development only)."""
    from medbookings.core.database import init_db

    settings = get_settings()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Creating tables...", total=None)
        asyncio.run(init_db())
        progress.update(task, completed=True)

    console.print(f"[green]Database initialized: {settings.database_url.split('@')[-1]}[/green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting MedBookings API server on {host}:{port}")
    uvicorn.run(
        "medbookings.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version():
    """Show version information."""
    from medbookings import __version__

    console.print(f"MedBookings scheduling v{__version__}")


if __name__ == "__main__":
    app()
