"""CLI commands for RecoveryOS."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from recovery_os.config import get_settings

app = typer.Typer(
    name="recovery-os",
    help="Recovery-day timelines and task scheduling for surgery protocols",
    add_completion=False,
)
console = Console()


def _load_protocol(protocol_file: Path):
    """Read and validate a protocol JSON file, exiting on any problem."""
    from recovery_os.timeline import InvalidProtocolError, Protocol, validate_protocol

    if not protocol_file.exists():
        console.print(f"[red]Protocol file not found: {protocol_file}[/red]")
        raise typer.Exit(1)

    try:
        protocol = Protocol.model_validate(json.loads(protocol_file.read_text()))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Could not read protocol: {e}[/red]")
        raise typer.Exit(1)

    try:
        validate_protocol(protocol)
    except InvalidProtocolError as e:
        console.print(f"[red]Invalid protocol: {e}[/red]")
        raise typer.Exit(1)

    return protocol


def _parse_date(value: Optional[str], name: str):
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Invalid {name}: {value}. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)


def _phase_table(surgery_type: Optional[str] = None):
    from recovery_os.timeline import PhaseRegistry

    settings = get_settings()
    registry = PhaseRegistry.from_names(settings.phase_granularity, settings.surgery_phase_granularity)
    return registry.table_for(surgery_type)


def _clinic_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().clinic_timezone)


@app.command()
def validate(
    protocol_file: Path = typer.Argument(..., help="Protocol JSON file"),
):
    """Check a protocol's task ids and recurrence rules."""
    protocol = _load_protocol(protocol_file)
    recurring = sum(1 for t in protocol.tasks if t.recurrence is not None)
    console.print(
        f"[green]Protocol {protocol.id} is valid[/green] "
        f"({len(protocol.tasks)} tasks, {recurring} recurring)"
    )


@app.command()
def timeline(
    protocol_file: Path = typer.Argument(..., help="Protocol JSON file"),
    surgery_date: str = typer.Option(..., "--surgery-date", "-s", help="Surgery date (YYYY-MM-DD)"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluate as of this date (default: today)"),
    start: Optional[int] = typer.Option(None, "--start", help="First recovery day"),
    end: Optional[int] = typer.Option(None, "--end", help="Last recovery day"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a protocol's week-by-week timeline for a surgery date."""
    from recovery_os.timeline import SurgeryAnchor, build_timeline, phase_label

    settings = get_settings()
    protocol = _load_protocol(protocol_file)
    anchor = SurgeryAnchor(surgery_date=_parse_date(surgery_date, "surgery date"))
    start_day = settings.timeline_start_day if start is None else start
    end_day = settings.timeline_end_day if end is None else end
    if start_day > end_day:
        console.print(f"[red]--start {start_day} is after --end {end_day}[/red]")
        raise typer.Exit(1)

    phases = _phase_table(protocol.surgery_type)
    tl = build_timeline(
        protocol,
        anchor,
        start_day,
        end_day,
        as_of=_parse_date(as_of, "as-of date"),
        phases=phases,
        tz=_clinic_tz(),
    )

    if output_json:
        payload = {
            "protocol_id": protocol.id,
            "current_day": tl.current_day,
            "weeks": [w.model_dump(mode="json") for w in tl.weeks],
            "summary": tl.summary().model_dump(mode="json"),
        }
        console.print_json(json.dumps(payload))
        return

    table = Table(title=f"{protocol.name or protocol.id} ({protocol.surgery_type})")
    table.add_column("Week")
    table.add_column("Days")
    table.add_column("Tasks", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Missed", justify="right")
    table.add_column("Pending", justify="right")
    table.add_column("Alerts")

    for week in tl.weeks:
        counts = week.task_counts
        label = week.label
        if week.start_day <= tl.current_day <= week.end_day:
            label = f"[bold]{label}[/bold]"
        table.add_row(
            label,
            f"{week.start_day}..{week.end_day}",
            str(counts.total),
            str(counts.completed),
            f"[red]{counts.missed}[/red]" if counts.missed else "0",
            str(counts.pending),
            "!" if week.has_notifications else "",
        )
    console.print(table)

    summary = tl.summary()
    console.print(
        Panel(
            f"[bold]Current Day:[/bold] {tl.current_day}\n"
            f"[bold]Phase:[/bold] {phase_label(phases.phase_for(tl.current_day))}\n"
            f"[bold]Compliance:[/bold] {summary.compliance_pct}%\n"
            f"[bold]Days With Missed Tasks:[/bold] {len(summary.days_with_missed)}",
            title="Summary",
        )
    )


@app.command()
def day(
    protocol_file: Path = typer.Argument(..., help="Protocol JSON file"),
    recovery_day: int = typer.Argument(..., help="Recovery day (0 = surgery)"),
    surgery_date: Optional[str] = typer.Option(
        None, "--surgery-date", "-s", help="Surgery date (YYYY-MM-DD), needed for weekday rules"
    ),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluate as of this date (default: today)"),
    current_day: Optional[int] = typer.Option(
        None, "--current-day", "-c", help="Patient's current day (overrides --as-of)"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List the tasks a protocol schedules on one recovery day."""
    from recovery_os.timeline import day_for, day_label, phase_label, tasks_for_day

    protocol = _load_protocol(protocol_file)
    surgery = _parse_date(surgery_date, "surgery date")
    if current_day is None:
        if surgery:
            current_day = day_for(surgery, _parse_date(as_of, "as-of date"), tz=_clinic_tz())
        else:
            current_day = recovery_day

    phases = _phase_table(protocol.surgery_type)
    instances = tasks_for_day(
        protocol, recovery_day, current_day, phases=phases, surgery_date=surgery
    )

    if output_json:
        console.print_json(json.dumps([i.model_dump(mode="json") for i in instances]))
        return

    phase = phase_label(phases.phase_for(recovery_day))
    table = Table(title=f"{day_label(recovery_day)} - {phase}")
    table.add_column("#", justify="right")
    table.add_column("Task ID")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Required")
    table.add_column("Status")
    for inst in instances:
        table.add_row(
            str(inst.position),
            inst.task_definition_id,
            inst.task_type.value,
            inst.title,
            "yes" if inst.required else "no",
            inst.status.value,
        )
    console.print(table)

    if not instances:
        console.print("[dim]No tasks scheduled on this day[/dim]")


@app.command()
def init_db():
    """Create the database tables."""
    from recovery_os.core.database import get_database_url, init_db as create_tables

    asyncio.run(create_tables())
    console.print(f"[green]Database initialized:[/green] {get_database_url()}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind (default: from settings)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind (default: from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting RecoveryOS API server on {host}:{port}")
    uvicorn.run(
        "recovery_os.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version():
    """Show version information."""
    from recovery_os import __version__

    console.print(f"RecoveryOS v{__version__}")


if __name__ == "__main__":
    app()
