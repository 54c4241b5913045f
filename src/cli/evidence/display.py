"""Display functions for evidence commands."""

from typing import Dict, List

from cli.core.context import Context
from lala.evidence import get_tablename_from_location
from lala.models import ModelVersion
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box


def _format_time(value) -> str:
    if value is None:
        return '-'
    return value.strftime('%Y-%m-%d %H:%M:%S')


def display_relation_graph(ctx: Context, root_table: str, graph: Dict[str, List]):
    """Display discovered tables with the number of relevant ids each."""
    ctx.console.print(f"Tables related to [bold]{root_table}[/]:", style="bold underline")

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("#", style="dim", width=4)
    table.add_column("Table", style="cyan bold")
    table.add_column("Ids", justify="right")
    if ctx.verbose:
        table.add_column("Relevant ids")

    for i, (name, ids) in enumerate(graph.items(), 1):
        row = [str(i), name, f"{len(ids):,}"]
        if ctx.verbose:
            row.append(', '.join(str(value) for value in ids))
        table.add_row(*row)

    ctx.console.print(table)


def display_stored_files(ctx: Context, locations: Dict[str, str]):
    """Display where pseudonymized tables were written."""
    table = Table(box=box.SIMPLE)
    table.add_column("Table", style="cyan bold")
    table.add_column("File")
    for name, location in locations.items():
        table.add_row(name, location)
    ctx.console.print(table)


def display_version(ctx: Context, version: ModelVersion):
    """Display a model version and its evidence items."""

    grid = Table(show_header=False, box=None, padding=(0, 2))
    grid.add_column("Field", style="cyan bold")
    grid.add_column("Value")

    grid.add_row("Version ID", str(version.id))
    grid.add_row("Name", version.name or 'N/A')
    if version.config is not None:
        grid.add_row("Model", f"{version.config.model_id} ({version.config.target})")
        grid.add_row("Analysis interval", version.config.analysis_interval)
    grid.add_row("Test set size", f"{version.relative_test_set_size:.0%}")
    grid.add_row("Contexts", ', '.join(str(c) for c in version.context_id_list) or 'N/A')
    grid.add_row("Started", _format_time(version.time_creation_started))
    grid.add_row("Finished", _format_time(version.time_creation_finished))

    status = Text()
    if version.error:
        status.append("Failed", style="red")
        status.append(f"  {version.error}")
    elif version.is_finished:
        status.append("Finished", style="green")
    else:
        status.append("In progress", style="yellow")
    grid.add_row("Status", status)

    panel = Panel(grid, title=f"Model Version: [bold]{version.id}[/]", expand=False, border_style="blue")
    ctx.console.print(panel)

    if not version.evidence:
        ctx.console.print("No evidence gathered.", style="yellow")
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim")
    table.add_column("Evidence", style="magenta")
    table.add_column("Table", style="cyan")
    table.add_column("Finished")
    if ctx.verbose:
        table.add_column("File")

    for evidence in version.evidence:
        location = evidence.serialized_file_location
        row = [
            str(evidence.id),
            evidence.name,
            (get_tablename_from_location(location) if location else None) or '',
            _format_time(evidence.time_collection_finished),
        ]
        if ctx.verbose:
            row.append(location or '')
        table.add_row(*row)

    ctx.console.print(table)
