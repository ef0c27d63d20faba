"""In-process runtime for CLI commands: database, runner and event loop"""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.logging import setup_logging
from rideops.config.settings import Settings, settings
from rideops.infra.database import Database
from rideops.v1.captures.gateway import PaymentGateway
from rideops.v1.core.registries import JobRegistry
from rideops.v1.infra.jobs.registry_init import register_job_tasks
from rideops.v1.infra.jobs.runner import JobRunner

T = TypeVar("T")


def get_cli_settings() -> Settings:
    """Settings used by every CLI command"""
    return settings


@asynccontextmanager
async def open_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Open a database for the duration of one command"""
    database = Database(get_cli_settings())
    try:
        yield database.SessionLocal
    finally:
        await database.close()


def build_runner(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway | None = None,
) -> JobRunner:
    """Build a runner over a private registry holding all scheduled tasks"""
    cli_settings = get_cli_settings()
    registry = JobRegistry()
    register_job_tasks(cli_settings, gateway=gateway, registry=registry)
    return JobRunner(cli_settings, session_factory, registry=registry)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion with logging configured"""
    setup_logging()
    return asyncio.run(coro)
