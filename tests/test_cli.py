"""Tests for CLI commands"""

import asyncio
from uuid import uuid4

import pytest
from typer.testing import CliRunner

from cli.main import app
from rideops.config.settings import Settings
from rideops.infra.database import Database
from rideops.v1.captures.models import PaymentIntent
from rideops.v1.captures.service import CaptureQueueService
from rideops.v1.infra.jobs import models as job_models  # noqa: F401
from rideops.v1.rides.models import Conversation, Ride, RideStatus

from conftest import T0


# Test fixtures
@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    """Point the CLI at a file-backed SQLite database with the schema created"""
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr("cli.utils.runtime.get_cli_settings", lambda: settings)

    async def _create_schema():
        database = Database(settings)
        await database.create_all()
        await database.close()

    asyncio.run(_create_schema())
    return settings


def _seed(settings: Settings, stage_captures: bool = True) -> None:
    """Insert a ride completed long ago with a conversation and a staged capture"""

    async def _insert():
        database = Database(settings)
        async with database.SessionLocal() as session:
            ride = Ride(
                status=RideStatus.COMPLETED.value,
                completed_at=T0,
                updated_at=T0,
            )
            session.add(ride)
            await session.flush()
            session.add(Conversation(ride_id=ride.id))
            session.add(
                PaymentIntent(ride_id=ride.id, external_reference_id="pi_cli", amount=5000)
            )
            await session.flush()
            if stage_captures:
                await CaptureQueueService(settings).on_parent_completed(session, ride.id)
            await session.commit()
        await database.close()

    asyncio.run(_insert())


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner, cli_settings):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Version Info" in result.stdout
        assert "1.0.0" in result.stdout

    def test_help_lists_maintenance_commands(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("sweep", "drain", "requeue", "stats", "runs", "scheduler", "serve"):
            assert command in result.stdout


class TestCaptureCommands:
    """Test capture queue commands"""

    def test_drain_captures_pending_tasks(self, runner, cli_settings):
        _seed(cli_settings)

        result = runner.invoke(app, ["drain", "--batch-size", "5"])

        assert result.exit_code == 0
        assert "Drain finished: 1 completed" in result.stdout

    def test_stats(self, runner, cli_settings):
        _seed(cli_settings)

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "Queue Overview" in result.stdout
        assert "50.00 CAD" in result.stdout

    def test_requeue_unknown_task(self, runner, cli_settings):
        result = runner.invoke(app, ["requeue", str(uuid4())])

        assert result.exit_code == 1
        assert "not found or not failed" in result.stdout

    def test_release_stuck_minimum(self, runner, cli_settings):
        result = runner.invoke(app, ["release-stuck", "--older-than", "10"])

        assert result.exit_code != 0


class TestJobCommands:
    """Test sweep and run history commands"""

    def test_sweep_dry_run_then_sweep(self, runner, cli_settings):
        _seed(cli_settings, stage_captures=False)

        dry = runner.invoke(app, ["sweep", "--dry-run"])
        assert dry.exit_code == 0
        assert "Dry run" in dry.stdout

        swept = runner.invoke(app, ["sweep"])
        assert swept.exit_code == 0
        assert "Sweep finished" in swept.stdout

    def test_runs_lists_history(self, runner, cli_settings):
        _seed(cli_settings)
        runner.invoke(app, ["drain"])

        result = runner.invoke(app, ["runs"])

        assert result.exit_code == 0
        assert "Job Runs" in result.stdout
        assert "Showing 1 of 1 runs" in result.stdout

    def test_runs_empty(self, runner, cli_settings):
        result = runner.invoke(app, ["runs"])

        assert result.exit_code == 0
        assert "No job runs recorded yet" in result.stdout
