"""RideOps CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

# Import command modules
from .commands import captures, jobs
from .utils import runtime

console = Console()

# Create main Typer app
app = typer.Typer(
    name="rideops",
    help="🚗 RideOps - Ride lifecycle maintenance jobs",
    rich_markup_mode="rich",
)

# Maintenance commands live at the top level
app.command("sweep")(jobs.sweep)
app.command("runs")(jobs.runs)
app.command("scheduler")(jobs.scheduler)
app.command("drain")(captures.drain)
app.command("requeue")(captures.requeue)
app.command("release-stuck")(captures.release_stuck)
app.command("stats")(captures.stats)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """🌐 Serve the admin HTTP API"""
    import uvicorn

    settings = runtime.get_cli_settings()
    uvicorn.run(
        "rideops.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )


@app.command()
def version():
    """📎 Show version information"""
    settings = runtime.get_cli_settings()

    console.print(Panel(
        f"🚗 [bold cyan]{settings.app_name}[/bold cyan]\n\n"
        f"• Version: [green]{settings.version}[/green]\n"
        f"• Environment: [yellow]{settings.environment}[/yellow]\n"
        f"• Payment gateway: [blue]{settings.payment_gateway.value}[/blue]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    🚗 RideOps CLI - Operator tooling for ride maintenance jobs

    Sweep expired ride conversations, drain the payment capture queue and
    inspect the job run history.
    """
    if version:
        console.print(f"RideOps v{runtime.get_cli_settings().version}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
