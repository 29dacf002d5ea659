"""Click CLI commands for dropsnag."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dropsnag.config import load_dotenv, load_settings
from dropsnag.errors import DropsnagError
from dropsnag.models import Weekday
from dropsnag.notifications import DATE_FORMAT
from dropsnag.scheduler import parse_clock_time, plan_wake, resolve_timezone
from dropsnag.web.schemas import SubmitReservationRequest

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """dropsnag: claim restaurant reservations the moment they drop."""
    _setup_logging(verbose)


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option(
    "--config", "config_file", type=click.Path(exists=True), default=None,
    help="YAML settings file.",
)
def serve(port: int, host: str, config_file: str | None) -> None:
    """Run the reservation intake API and drop scheduler."""
    import uvicorn

    from dropsnag.web.app import create_app

    load_dotenv()
    try:
        settings = load_settings(config_file)
    except DropsnagError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    app = create_app(settings=settings)
    console.print(f"[bold green]dropsnag[/bold green] -> http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


@main.command()
@click.argument("submission_file", type=click.Path(exists=True))
def plan(submission_file: str) -> None:
    """Show when a submission would fire, without contacting Resy."""
    try:
        data = yaml.safe_load(Path(submission_file).read_text())
        body = SubmitReservationRequest.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Invalid submission: {e}[/red]")
        sys.exit(1)

    post_time = parse_clock_time(body.reservation_post_time)
    tz = resolve_timezone(body.time_zone_string)
    weekday = Weekday.parse(body.weekday_string)
    problems = []
    if post_time is None:
        problems.append(f"Unable to parse time {body.reservation_post_time}")
    if body.reservation_post_days_offset < 0:
        problems.append("Day offset must be 0 or greater")
    if tz is None:
        problems.append(f"Invalid time zone: {body.time_zone_string}")
    if weekday is None:
        problems.append(f"Invalid weekday: {body.weekday_string}")
    if body.num_seats <= 0:
        problems.append("Number of seats must be > 0")
    for requested in body.requested_times:
        if parse_clock_time(requested.time) is None:
            problems.append(f"Invalid time: {requested.time}")
    if problems:
        for problem in problems:
            console.print(f"[red]{problem}[/red]")
        sys.exit(1)

    wake = plan_wake(
        post_time, body.reservation_post_days_offset, tz, weekday, datetime.now(tz)
    )

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Restaurant", body.name)
    table.add_row("Party size", str(body.num_seats))
    table.add_row("Weekday", weekday.name.title())
    table.add_row("Earliest date", wake.eligible_at.strftime(DATE_FORMAT))
    table.add_row("Drop time", wake.attempt_at.strftime("%Y-%m-%d %H:%M %Z"))
    table.add_row("Arms at", wake.arm_at.strftime("%Y-%m-%d %H:%M %Z"))
    for i, requested in enumerate(body.requested_times, 1):
        table_type = f" ({requested.table_type})" if requested.table_type else ""
        table.add_row(f"Priority #{i}", f"{requested.time}{table_type}")

    console.print(Panel(table, title="Drop Plan"))
