"""Job Commands - Retention sweep, run history and the scheduler loop"""

import asyncio

import typer
from rich.console import Console

from rideops.v1.infra.jobs.registry_init import RETENTION_SWEEP
from rideops.v1.infra.jobs.schemas import JobRunResponse
from rideops.v1.infra.jobs.service import JobRunService

from ..utils import runtime
from ..utils.formatting import (
    create_job_runs_table,
    create_sweep_panel,
    print_error,
    print_info,
    print_warning,
)

console = Console()


def sweep(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Count eligible conversations without deleting"
    ),
):
    """🧹 Delete conversations of rides terminal for longer than the retention window"""

    async def _sweep():
        async with runtime.open_session_factory() as session_factory:
            runner = runtime.build_runner(session_factory)
            return await runner.run_once(RETENTION_SWEEP, dry_run=dry_run)

    job_run = runtime.run(_sweep())

    if job_run.status != "succeeded":
        print_error(f"Retention sweep failed: {job_run.error_message}")
        raise typer.Exit(1)

    console.print(create_sweep_panel(job_run.result or {}))


def runs(
    job_name: str | None = typer.Option(None, "--job", "-j", help="Filter by task name"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of runs to show"),
):
    """📜 Show recent job runs"""

    async def _runs():
        service = JobRunService(runtime.get_cli_settings())
        async with runtime.open_session_factory() as session_factory:
            async with session_factory() as session:
                return await service.list_runs(session, job_name=job_name, limit=limit)

    job_runs, total = runtime.run(_runs())
    if not job_runs:
        print_info("No job runs recorded yet")
        return

    rows = []
    for job_run in job_runs:
        run_data = JobRunResponse.model_validate(job_run)
        run_data.duration_seconds = job_run.get_duration_seconds()
        rows.append(run_data.model_dump(mode="json"))

    console.print(create_job_runs_table(rows))
    console.print(f"[dim]Showing {len(rows)} of {total} runs[/dim]")


def scheduler():
    """⏱️ Run all scheduled tasks on their intervals until interrupted"""

    async def _schedule():
        async with runtime.open_session_factory() as session_factory:
            runner = runtime.build_runner(session_factory)
            for name in runner.registry.list():
                interval_s = runner.registry.get(name).interval_s
                print_info(f"Scheduling {name} every {interval_s}s")
            try:
                await runner.start()
            except asyncio.CancelledError:
                await runner.stop()
                raise

    try:
        runtime.run(_schedule())
    except KeyboardInterrupt:
        print_warning("Scheduler stopped")
