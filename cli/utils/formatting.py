"""Rich Formatting Utilities for Operator CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "blue",
    "completed": "green",
    "failed": "red",
    "running": "blue",
    "succeeded": "green",
    "canceled": "dim",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def _styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def format_amount(amount: int, currency: str = "cad") -> str:
    """Format an amount in minor units, e.g. 5000 -> 50.00 CAD"""
    return f"{amount / 100:,.2f} {currency.upper()}"


def create_drain_table(result: dict[str, Any]) -> Table:
    """Create a formatted table for the outcomes of one drain pass"""
    table = Table(title="Capture Drain", box=box.ROUNDED)

    table.add_column("Task", justify="left", style="cyan", no_wrap=True)
    table.add_column("Intent", justify="left", style="magenta", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Error", justify="left", style="white")

    for outcome in result.get("outcomes", []):
        table.add_row(
            outcome.get("task_id", "")[:8],
            outcome.get("payment_intent_id", "")[:8],
            _styled_status(outcome.get("status", "")),
            outcome.get("error_code") or "—",
        )

    return table


def create_stats_panel(stats: dict[str, Any]) -> Panel:
    """Create formatted panel for capture queue statistics"""
    by_status = stats.get("by_status", {})
    content = f"""
💳 [bold blue]Capture Queue[/bold blue]

• Total Tasks: [blue]{stats.get("total_tasks", 0)}[/blue]
• Pending: [yellow]{by_status.get("pending", 0)}[/yellow] ({format_amount(stats.get("pending_amount", 0))})
• Processing: [blue]{by_status.get("processing", 0)}[/blue]
• Completed: [green]{by_status.get("completed", 0)}[/green]
• Failed: [red]{by_status.get("failed", 0)}[/red]
• Stuck: [magenta]{stats.get("stuck_count", 0)}[/magenta]
"""

    failed_by_code = stats.get("failed_by_error_code") or {}
    if failed_by_code:
        content += "\n[bold]Failures by error code[/bold]\n"
        for code, count in sorted(failed_by_code.items()):
            content += f"• {code}: [red]{count}[/red]\n"

    border = "red" if stats.get("stuck_count", 0) else "green"
    return Panel(content, title="Queue Overview", border_style=border)


def create_job_runs_table(runs: list[dict[str, Any]]) -> Table:
    """Create formatted table for job run history"""
    table = Table(title="Job Runs", box=box.ROUNDED)

    table.add_column("Run", justify="left", style="cyan", no_wrap=True)
    table.add_column("Job", justify="left", style="magenta")
    table.add_column("Trigger", justify="center", style="white")
    table.add_column("Status", justify="center")
    table.add_column("Started", justify="left", style="yellow")
    table.add_column("Duration", justify="right", style="white")

    for run in runs:
        duration = run.get("duration_seconds")
        table.add_row(
            str(run.get("id", ""))[:8],
            run.get("job_name", ""),
            run.get("trigger", ""),
            _styled_status(run.get("status", "")),
            str(run.get("started_at", ""))[:19],
            f"{duration:.2f}s" if duration is not None else "—",
        )

    return table


def create_sweep_panel(result: dict[str, Any]) -> Panel:
    """Create formatted panel for a retention sweep result"""
    window = result.get("retention_window_hours", 0)
    if result.get("status") == "dry_run":
        content = (
            f"🔍 [bold]Dry run[/bold]\n\n"
            f"• Conversations eligible: [yellow]{result.get('eligible_count', 0)}[/yellow]\n"
            f"• Retention window: [blue]{window}h[/blue]"
        )
        return Panel(content, title="Retention Sweep", border_style="yellow")

    content = (
        f"🧹 [bold]Sweep finished[/bold]\n\n"
        f"• Conversations deleted: [green]{result.get('deleted_count', 0)}[/green]\n"
        f"• Job runs pruned: [cyan]{result.get('job_runs_deleted', 0)}[/cyan]\n"
        f"• Retention window: [blue]{window}h[/blue]"
    )
    return Panel(content, title="Retention Sweep", border_style="green")
