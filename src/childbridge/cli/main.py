import typer
from pathlib import Path
from typing import Optional

from childbridge import __version__
from childbridge.cli.formatter import OutputFormatter
from childbridge.config.loader import load_settings
from childbridge.runtime.host import run_child_bridge

app = typer.Typer(name="childbridge", help="Child bridge process for a single plugin", rich_markup_mode=None)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a childbridge.yaml settings file."),
    storage_path: Optional[Path] = typer.Option(None, "--storage-path", help="Default storage directory."),
    grace_period: Optional[float] = typer.Option(None, "--grace-period", help="Seconds before a forced exit after a signal."),
    liveness_interval: Optional[float] = typer.Option(None, "--liveness-interval", help="Seconds between parent liveness checks."),
):
    """
    Start the child bridge and wait for commands from the parent on stdin.
    """
    try:
        settings = load_settings(
            config,
            storage_path=storage_path,
            grace_period_seconds=grace_period,
            liveness_interval_seconds=liveness_interval,
        )
    except ValueError as e:
        OutputFormatter.log(str(e), severity="error")
        raise typer.Exit(code=2)

    exit_code = run_child_bridge(settings)
    raise typer.Exit(code=exit_code)


@app.command()
def settings(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a childbridge.yaml settings file."),
):
    """
    Print the effective settings as JSON.
    """
    try:
        effective = load_settings(config)
    except ValueError as e:
        OutputFormatter.log(str(e), severity="error")
        raise typer.Exit(code=2)

    OutputFormatter.print_data(effective)


@app.command()
def version():
    """
    Print the childbridge version.
    """
    typer.echo(__version__)

if __name__ == "__main__":
    app()
