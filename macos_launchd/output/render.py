"""Output rendering for job states."""

import json
from io import StringIO

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich import box

from macos_launchd.models import ServiceState


def render_human(states: list[ServiceState]) -> str:
    """
    Render job states as a table using Rich.
    
    Args:
        states: Job states to render, in display order
    
    Returns:
        Formatted string suitable for terminal display
    """
    output_buffer = StringIO()
    console = Console(file=output_buffer, width=120, force_terminal=True)
    
    if not states:
        console.print(Text("No launchd jobs found", style="dim"))
        return output_buffer.getvalue()
    
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Label", style="bold")
    table.add_column("Running", justify="center")
    table.add_column("Enabled", justify="center")
    table.add_column("Path", style="dim", overflow="fold")
    
    for state in states:
        table.add_row(
            state.label,
            _flag(state.running, "running", "stopped"),
            _flag(state.enabled, "enabled", "disabled"),
            state.path
        )
    
    console.print(table)
    
    running = sum(1 for s in states if s.running)
    disabled = sum(1 for s in states if not s.enabled)
    console.print(
        f"[bold]{len(states)}[/bold] jobs, [green]{running} running[/green], "
        f"[yellow]{disabled} disabled[/yellow]"
    )
    
    return output_buffer.getvalue()


def _flag(value: bool, yes: str, no: str) -> Text:
    if value:
        return Text(yes, style="green")
    return Text(no, style="yellow")


def render_json(states: list[ServiceState]) -> str:
    """Render job states as a JSON array with stable key order."""
    return json.dumps(
        [state.model_dump(mode="json") for state in states],
        indent=2,
        sort_keys=True
    )
