"""Command-line interface for launchd job management."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from macos_launchd import __version__
from macos_launchd.config import load_config, save_example_config
from macos_launchd.engine import Session, create_session
from macos_launchd.errors import NotFoundError
from macos_launchd.output.render import render_human, render_json


app = typer.Typer(
    help="Inspect and change the running and enabled state of launchd jobs.",
    no_args_is_help=True,
    add_completion=False
)

err_console = Console(stderr=True)

EXIT_NOT_FOUND = 1
EXIT_USAGE = 2
EXIT_FAILURE = 3


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"macos-launchd version {__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    handler = RichHandler(console=err_console, show_path=False, show_time=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


def _fail(message: str, code: int) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=code)


def _session(ctx: typer.Context) -> Session:
    """Create the session on first use so generate-config works without one."""
    state = ctx.ensure_object(dict)
    if "session" not in state:
        try:
            config = load_config(state.get("config_file"))
        except (FileNotFoundError, ValueError) as e:
            _fail(f"loading configuration: {e}", EXIT_USAGE)
        _setup_logging("DEBUG" if state.get("verbose") else config.log_level)
        state["session"] = create_session(config)
    return state["session"]


def _run(action, *args, **kwargs):
    """Invoke an operation, mapping errors to exit codes."""
    try:
        return action(*args, **kwargs)
    except NotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except (RuntimeError, OSError) as e:
        # LaunchdError and sw_vers failures are both RuntimeErrors
        _fail(str(e), EXIT_FAILURE)


def _print_states(states, as_json: bool) -> None:
    if as_json:
        print(render_json(states))
    else:
        print(render_human(states), end="")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to configuration file (default: ~/.macos-launchd.yaml)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every launchctl call and plist decision"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    state = ctx.ensure_object(dict)
    state["config_file"] = config_file
    state["verbose"] = verbose


@app.command("list")
def list_jobs(
    ctx: typer.Context,
    json: bool = typer.Option(False, "--json", help="Output results in JSON format")
) -> None:
    """
    Show every job found in the search directories.

    Examples:
        macos-launchd list
        macos-launchd list --json
    """
    session = _session(ctx)
    states = _run(session.controller.instances)
    _print_states(states, json)


@app.command()
def status(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label, e.g. com.example.agent"),
    json: bool = typer.Option(False, "--json", help="Output results in JSON format")
) -> None:
    """Show whether one job is running and enabled."""
    session = _session(ctx)
    states = [_run(session.controller.status, label)]
    _print_states(states, json)


def _enable_option():
    return typer.Option(
        None,
        "--enable/--disable",
        help="Enabled flag to leave behind (default: whatever launchctl sets)"
    )


@app.command()
def start(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label"),
    enable: Optional[bool] = _enable_option()
) -> None:
    """Load a job."""
    session = _session(ctx)
    _run(session.controller.start, label, enable=enable)
    err_console.print(f"[green]✓[/green] Started {label}")


@app.command()
def stop(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label"),
    enable: Optional[bool] = _enable_option()
) -> None:
    """Unload a job."""
    session = _session(ctx)
    _run(session.controller.stop, label, enable=enable)
    err_console.print(f"[green]✓[/green] Stopped {label}")


@app.command()
def restart(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label"),
    enable: Optional[bool] = _enable_option()
) -> None:
    """Unload and then load a job."""
    session = _session(ctx)
    _run(session.controller.restart, label, enable=enable)
    err_console.print(f"[green]✓[/green] Restarted {label}")


@app.command()
def enable(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label")
) -> None:
    """Allow a job to load, without loading it."""
    session = _session(ctx)
    _run(session.controller.enable, label)
    err_console.print(f"[green]✓[/green] Enabled {label}")


@app.command()
def disable(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Job label")
) -> None:
    """Prevent a job from loading, without unloading it."""
    session = _session(ctx)
    _run(session.controller.disable, label)
    err_console.print(f"[green]✓[/green] Disabled {label}")


@app.command("generate-config")
def generate_config(
    output: Path = typer.Argument(..., help="Where to write the example configuration")
) -> None:
    """Write an example configuration file."""
    try:
        save_example_config(output)
    except OSError as e:
        _fail(f"generating config: {e}", EXIT_USAGE)
    print(f"✓ Example configuration saved to {output}", file=sys.stderr)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
