"""Capture Commands - Drain the capture queue and act on failed captures"""

from datetime import timedelta
from uuid import UUID

import typer
from rich.console import Console

from rideops.v1.captures.service import CaptureQueueService
from rideops.v1.infra.jobs.registry_init import CAPTURE_DRAIN
from rideops.v1.infra.jobs.runner import JobRunner

from ..utils import runtime
from ..utils.formatting import (
    create_drain_table,
    create_stats_panel,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()


def drain(
    batch_size: int | None = typer.Option(
        None, "--batch-size", "-b", help="Maximum tasks to process (default from settings)"
    ),
):
    """💳 Process pending capture tasks against the payment gateway"""

    async def _drain():
        async with runtime.open_session_factory() as session_factory:
            runner: JobRunner = runtime.build_runner(session_factory)
            return await runner.run_once(CAPTURE_DRAIN, batch_size=batch_size)

    print_info("Draining capture queue...")
    job_run = runtime.run(_drain())

    if job_run.status != "succeeded":
        print_error(f"Capture drain failed: {job_run.error_message}")
        raise typer.Exit(1)

    result = job_run.result or {}
    if result.get("outcomes"):
        console.print(create_drain_table(result))

    summary = (
        f"{result.get('completed', 0)} completed, {result.get('failed', 0)} failed, "
        f"{result.get('timed_out', 0)} timed out"
    )
    if result.get("timed_out"):
        print_warning(f"Drain finished: {summary}")
    else:
        print_success(f"Drain finished: {summary}")


def requeue(
    task_id: UUID = typer.Argument(..., help="Capture task ID to move back to pending"),
):
    """🔁 Requeue a failed capture task"""

    async def _requeue() -> bool:
        service = CaptureQueueService(runtime.get_cli_settings())
        async with runtime.open_session_factory() as session_factory:
            async with session_factory() as session:
                return await service.requeue_task(session, task_id)

    if not runtime.run(_requeue()):
        print_error(f"Capture task {task_id} not found or not failed")
        raise typer.Exit(1)

    print_success(f"Capture task {task_id} requeued")


def release_stuck(
    older_than: int = typer.Option(
        900, "--older-than", help="Seconds since the last attempt (minimum 60)", min=60
    ),
):
    """🔓 Return processing tasks with an old last attempt to pending"""

    async def _release() -> int:
        service = CaptureQueueService(runtime.get_cli_settings())
        async with runtime.open_session_factory() as session_factory:
            async with session_factory() as session:
                return await service.release_stuck(
                    session, older_than=timedelta(seconds=older_than)
                )

    released = runtime.run(_release())
    print_success(f"Released {released} stuck capture task(s)")


def stats():
    """📊 Show capture queue statistics"""

    async def _stats():
        service = CaptureQueueService(runtime.get_cli_settings())
        async with runtime.open_session_factory() as session_factory:
            async with session_factory() as session:
                return await service.get_stats(session)

    queue_stats = runtime.run(_stats())
    console.print(create_stats_panel(queue_stats.model_dump()))
