"""CLI entrypoint for the VM reconciler."""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import Settings
from .exceptions import ReconcilerError
from .inventory import default_control_plane, load_inventory
from .models import ActualVm
from .planner import plan
from .reconciler import ControlPlane, Reconciler

app = typer.Typer(
    name="vm-reconciler",
    help="Drive VMs toward their desired state on a pool of hosts",
    add_completion=False,
)
console = Console()
logger = structlog.get_logger()


def configure_logging(level: str) -> None:
    """Configure structured JSON logging at ``level``."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def _load(**overrides: Any) -> tuple[Settings, ControlPlane]:
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level)
    if settings.inventory_path:
        control_plane = load_inventory(settings.inventory_path)
    else:
        control_plane = default_control_plane()
    return settings, control_plane


def _vm_table(control_plane: ControlPlane) -> Table:
    table = Table(title="Virtual Machines")
    table.add_column("VM", justify="right")
    table.add_column("State")
    table.add_column("Target")
    table.add_column("Host", justify="right")
    table.add_column("CPU", justify="right")
    table.add_column("Memory (MB)", justify="right")
    for desired in control_plane.desired_vms:
        actual = control_plane.actual_for(desired.id)
        if actual is None:
            table.add_row(str(desired.id), "-", desired.target_state.value, "-", "-", "-")
            continue
        table.add_row(
            str(actual.id),
            actual.state.value,
            desired.target_state.value,
            str(actual.host_id) if actual.host_id is not None else "-",
            str(actual.cpu),
            str(actual.memory_mb),
        )
    return table


def _host_table(control_plane: ControlPlane) -> Table:
    table = Table(title="Hosts")
    table.add_column("Host", justify="right")
    table.add_column("Alive")
    table.add_column("CPU used/total", justify="right")
    table.add_column("Memory used/total (MB)", justify="right")
    for host in control_plane.hosts:
        table.add_row(
            str(host.id),
            "yes" if host.is_alive else "no",
            f"{host.used_cpu}/{host.total_cpu}",
            f"{host.used_memory_mb}/{host.total_memory_mb}",
        )
    return table


@app.command()
def run(
    inventory: Optional[Path] = typer.Option(None, help="YAML inventory file"),
    ticks: Optional[int] = typer.Option(None, min=1, help="Stop after this many ticks"),
    interval: Optional[float] = typer.Option(None, help="Seconds between ticks"),
    seed: Optional[int] = typer.Option(None, help="Seed for boot outcomes"),
) -> None:
    """Run the reconciliation loop."""
    try:
        settings, control_plane = _load(
            inventory_path=inventory,
            max_ticks=ticks,
            tick_interval_seconds=interval,
            random_seed=seed,
        )
    except (ReconcilerError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    logger.info("Starting VM reconciler", timestamp=datetime.now(UTC).isoformat())
    try:
        Reconciler(control_plane, settings=settings).run()
    except ReconcilerError as e:
        logger.exception("Reconciler stopped on inconsistent state", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")

    console.print(_vm_table(control_plane))
    console.print(_host_table(control_plane))


@app.command("plan")
def plan_command(
    inventory: Optional[Path] = typer.Option(None, help="YAML inventory file"),
) -> None:
    """Show the next action for every VM without applying it."""
    try:
        _, control_plane = _load(inventory_path=inventory)
    except (ReconcilerError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title="Planned Actions")
    table.add_column("VM", justify="right")
    table.add_column("State")
    table.add_column("Target")
    table.add_column("Action")
    for desired in control_plane.desired_vms:
        actual = control_plane.actual_for(desired.id) or ActualVm(id=desired.id)
        action = plan(desired, actual, control_plane.hosts)
        table.add_row(
            str(desired.id),
            actual.state.value,
            desired.target_state.value,
            action.describe(),
        )
    console.print(table)


@app.command()
def hosts(
    inventory: Optional[Path] = typer.Option(None, help="YAML inventory file"),
) -> None:
    """Show the host registry."""
    try:
        _, control_plane = _load(inventory_path=inventory)
    except (ReconcilerError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(_host_table(control_plane))


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
