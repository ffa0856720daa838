from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import db
from .config import COORDINATOR_URI
from .errors import TopologyError
from .helpers import list_available_topologies, load_topology, setup_logging
from .memory import InMemoryCluster
from .models import Namespace
from .pipeline import build_plan, cluster_status, run_plan
from .ranges import format_bound

app = typer.Typer(help="ZoneWeaver - zone-based shard topology initializer")
console = Console()


def fail(error: TopologyError):
    """Print the failing step and exit non-zero."""
    step = error.step or "unknown"
    console.print(f"[bold red]✗ Step {step} failed:[/bold red] {escape(str(error))}")
    raise typer.Exit(code=1)


def print_plan(plan):
    table = Table(title="Topology plan")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Operation")
    for i, operation in enumerate(plan, 1):
        table.add_row(str(i), operation.step, escape(operation.describe()))
    console.print(table)


def print_report(report):
    table = Table(title="Topology report")
    table.add_column("Step")
    table.add_column("Operation")
    table.add_column("Status")
    for result in report.results:
        style = "green" if result.status == "applied" else "dim"
        table.add_row(
            result.operation.step,
            escape(result.operation.describe()),
            f"[{style}]{result.status}[/{style}]",
        )
    console.print(table)


@app.command()
def apply(
    topology_name: str = typer.Argument(..., help="Topology JSON file, or name of one in topologies/"),
    coordinator: str = typer.Option(COORDINATOR_URI, "--coordinator", "-c", help="mongos connection URI"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run against an in-memory cluster instead"),
):
    """Apply a topology to the cluster. Safe to re-run."""
    setup_logging("cli")

    try:
        topology = load_topology(topology_name)
        plan = build_plan(topology)
        console.rule(f"[bold green]Applying {topology.namespace.full_name}[/bold green]")
        client = InMemoryCluster() if dry_run else db.connect(coordinator)
        with client:
            report = run_plan(client, plan)
    except TopologyError as e:
        fail(e)

    print_report(report)
    console.print(
        f"✅ Topology applied: {report.applied_count} applied, {report.skipped_count} already in place"
    )


@app.command()
def plan(
    topology_name: str = typer.Argument(..., help="Topology JSON file, or name of one in topologies/"),
):
    """Print the ordered operations for a topology without contacting the cluster."""
    try:
        operations = build_plan(load_topology(topology_name))
    except TopologyError as e:
        fail(e)
    print_plan(operations)


@app.command()
def status(
    coordinator: str = typer.Option(COORDINATOR_URI, "--coordinator", "-c", help="mongos connection URI"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="database.collection to inspect"),
):
    """Show registered shards, their zones and, optionally, a collection's zone ranges."""
    try:
        ns = Namespace.parse(namespace) if namespace else None
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    try:
        with db.connect(coordinator) as client:
            info = cluster_status(client, ns)
    except TopologyError as e:
        fail(e)

    shards = Table(title="Shards")
    shards.add_column("Shard")
    shards.add_column("Host")
    shards.add_column("Zones")
    for shard_id, shard in info["shards"].items():
        shards.add_row(shard_id, shard["host"], ", ".join(shard["zones"]))
    console.print(shards)

    if ns is None:
        return
    if info["key"] is None:
        console.print(f"[yellow]{ns.full_name} is not sharded[/yellow]")
        return
    console.print(f"Shard key: {dict(info['key'])}")
    ranges = Table(title=f"Zone ranges for {ns.full_name}")
    ranges.add_column("Zone")
    ranges.add_column("Min (inclusive)")
    ranges.add_column("Max (exclusive)")
    for zone_range in info["ranges"]:
        ranges.add_row(
            zone_range.zone_label,
            format_bound(zone_range.min_bound),
            format_bound(zone_range.max_bound),
        )
    console.print(ranges)


@app.command()
def list_topologies():
    """List all available topologies."""
    topologies = list_available_topologies()

    if topologies:
        console.print("[bold green]Available topologies:[/bold green]")
        for name in topologies:
            console.print(f"  • {name}")
    else:
        console.print("[yellow]No topologies found in topologies/ directory[/yellow]")


def main():
    app()


if __name__ == "__main__":
    main()
